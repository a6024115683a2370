"""
Background analysis worker.

Takes a queued job, prices the whale, profiles both of its addresses when an
address fetch is configured, picks a model tier, calls the AI provider, and
writes the terminal result back to the job store. Runs detached from the
request that created the job; each job is isolated, so one failure never
affects another. No retries at this level: a failed job stays failed.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from backend_whalewatch.agent_worker.model_client import (
    PROVIDER_NAME,
    ModelClient,
    extract_response_text,
    finish_reason,
    parse_analysis_json,
    split_reasoning,
    token_usage,
)
from backend_whalewatch.analysis_engine.deep_dive import DeepDiveResult, fetch_deep_dive
from backend_whalewatch.analysis_engine.model_selector import get_tier_params, select_model
from backend_whalewatch.analysis_engine.prompts import build_request
from backend_whalewatch.config.settings import Settings
from backend_whalewatch.core.exceptions import JobError, JobErrorCode
from backend_whalewatch.gateway.models import AddressProfile
from backend_whalewatch.gateway.price import PriceClient
from backend_whalewatch.jobs.store import JobStatus, JobStore
from backend_whalewatch.whalewatch_logging import bind_job, get_logger

logger = get_logger(__name__)

MIN_CONCURRENCY = 1
INTERRUPTED_MESSAGE = f"{JobErrorCode.MODEL_CALL_FAILED.value}: analysis interrupted before completion"


def process_analysis_job(
    job_id: str,
    store: JobStore,
    settings: Settings,
    model_client: ModelClient,
    price_client: PriceClient,
    model_preference: str | None = None,
    address_fetch: Callable[[str], AddressProfile] | None = None,
) -> None:
    """
    Run one job to a terminal state. Ordinary failures never propagate.

    With address_fetch (usually AddressProfileCache.get_or_fetch) both whale
    addresses are profiled first; the prompt gets the on-chain context and
    the job metadata keeps it under "blockchain_data". Degraded profiles are
    reported as limitations and never fail the job.

    Failures are recorded on the job as "<CODE>: <message>". Whatever happens,
    the job does not stay in analyzing.
    """
    log = bind_job(job_id)
    job = store.get_job(job_id)
    if job is None:
        log.error("job_not_found", error_code=JobErrorCode.JOB_NOT_FOUND.value)
        return

    started = time.monotonic()
    try:
        store.mark_analyzing(job_id)
        whale = job.whale
        log.info("job_analyzing", tx_hash=whale.tx_hash, amount=whale.amount)

        price = price_client.fetch_btc_price()
        value_usd = whale.amount * price
        deep_dive: DeepDiveResult | None = None
        if address_fetch is not None:
            deep_dive = fetch_deep_dive(whale.from_address, whale.to_address, address_fetch)
        model = select_model(whale.amount, model_preference, settings)
        body = build_request(
            whale,
            price,
            value_usd,
            get_tier_params(model, settings),
            enable_thinking=settings.enable_thinking,
            deep_dive=deep_dive,
        )
        log.info("model_call_started", model=model, btc_price=price, enable_thinking=settings.enable_thinking)

        data = model_client.generate(model, body)
        reasoning, json_text = split_reasoning(extract_response_text(data))
        result = parse_analysis_json(json_text)

        processing_ms = int((time.monotonic() - started) * 1000)
        metadata: dict[str, Any] = {
            "model": model,
            "provider": PROVIDER_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "processing_time_ms": processing_ms,
            "thinking_enabled": settings.enable_thinking,
            "btc_price_usd": price,
            "token_usage": token_usage(data),
            "finish_reason": finish_reason(data),
            "blockchain_data": deep_dive.to_dict() if deep_dive else None,
            "blockchain_data_available": bool(deep_dive and deep_dive.success),
        }
        store.mark_completed(job_id, result, reasoning, metadata)
        log.info(
            "job_completed",
            model=model,
            processing_time_ms=processing_ms,
            has_reasoning=reasoning is not None,
        )
    except JobError as e:
        store.mark_failed(job_id, e.to_job_message())
        log.warning("job_failed", error_code=e.code.value, error=e.detail)
    except Exception as e:
        store.mark_failed(job_id, f"{JobErrorCode.MODEL_CALL_FAILED.value}: {e}")
        log.exception("job_failed_unexpected", error=str(e))
    finally:
        current = store.get_job(job_id)
        if current is not None and current.status == JobStatus.ANALYZING:
            store.mark_failed(job_id, INTERRUPTED_MESSAGE)
            log.error("job_left_analyzing", error=INTERRUPTED_MESSAGE)


@dataclass
class WorkerStats:
    """Counters for submitted and finished jobs (read by /health)."""

    submitted: int = 0
    finished: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_submitted(self) -> None:
        with self._lock:
            self.submitted += 1

    def record_finished(self) -> None:
        with self._lock:
            self.finished += 1

    def to_dict(self) -> dict[str, int]:
        with self._lock:
            return {
                "submitted": self.submitted,
                "finished": self.finished,
                "in_flight": self.submitted - self.finished,
            }


class AnalysisWorker:
    """
    Bounded pool of analysis threads.

    submit() is fire and forget for the HTTP layer: the returned Future is for
    tests and shutdown, never awaited by a request handler.
    """

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        *,
        max_workers: int | None = None,
        model_client: ModelClient | None = None,
        price_client: PriceClient | None = None,
        address_fetch: Callable[[str], AddressProfile] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._max_workers = max(MIN_CONCURRENCY, int(max_workers or settings.worker_max_concurrency))
        self._model_client = model_client or ModelClient(
            settings.model_api_base_url,
            settings.model_api_key,
            timeout_sec=settings.model_timeout_sec,
        )
        self._price_client = price_client or PriceClient(settings.price_api_url)
        self._address_fetch = address_fetch
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="analysis")
        self.stats = WorkerStats()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def _run(self, job_id: str, model_preference: str | None) -> None:
        try:
            process_analysis_job(
                job_id,
                self._store,
                self._settings,
                self._model_client,
                self._price_client,
                model_preference=model_preference,
                address_fetch=self._address_fetch,
            )
        finally:
            self.stats.record_finished()

    def submit(self, job_id: str, model_preference: str | None = None) -> Future[None]:
        self.stats.record_submitted()
        logger.info("job_submitted", job_id=job_id, model_preference=model_preference)
        return self._executor.submit(self._run, job_id, model_preference)

    def shutdown(self, wait: bool = True) -> None:
        logger.info("analysis_worker_stopping", wait=wait, **self.stats.to_dict())
        self._executor.shutdown(wait=wait)
