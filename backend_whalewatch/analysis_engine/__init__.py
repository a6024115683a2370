"""
Analysis engine: whale detection, flow classification, address patterns,
and the model-tier/prompt selection used by the background worker.

Rule-based and deterministic: every output is a pure function of its
inputs and the static known-entity table.
"""

from backend_whalewatch.analysis_engine.detector import classify, detect_whales, summarize_whales
from backend_whalewatch.analysis_engine.models import TransactionPatterns, WhaleTransaction
from backend_whalewatch.analysis_engine.patterns import PatternConfig, analyze_patterns

__all__ = [
    "PatternConfig",
    "TransactionPatterns",
    "WhaleTransaction",
    "analyze_patterns",
    "classify",
    "detect_whales",
    "summarize_whales",
]
