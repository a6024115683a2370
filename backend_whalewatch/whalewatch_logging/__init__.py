"""
Structured logging for Backend Whale Watch.

JSON logs with timestamp, event_type, job_id and address context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_whalewatch.whalewatch_logging.logger import bind_job, get_logger

__all__ = ["bind_job", "get_logger"]
