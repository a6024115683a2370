"""
Agent worker: detached AI analysis of queued whale jobs.
"""

from backend_whalewatch.agent_worker.model_client import ModelClient
from backend_whalewatch.agent_worker.worker import AnalysisWorker, process_analysis_job

__all__ = ["AnalysisWorker", "ModelClient", "process_analysis_job"]
