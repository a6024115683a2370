"""
Backend Whale Watch: asynchronous whale transaction analysis service.

Detects and classifies Bitcoin whale transactions, enriches them with address
pattern analysis, and offloads long-running AI analysis to background jobs
that HTTP callers poll for completion.
"""

__version__ = "0.1.0"
