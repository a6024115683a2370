"""
Analysis job store: lifecycle of submitted whale analyses for polling callers.
"""

from backend_whalewatch.jobs.store import (
    AnalysisJob,
    InMemoryJobStore,
    JobStatus,
    JobStore,
    get_job_store,
    reset_job_store,
)

__all__ = [
    "AnalysisJob",
    "InMemoryJobStore",
    "JobStatus",
    "JobStore",
    "get_job_store",
    "reset_job_store",
]
