"""
FastAPI server: job submission/polling plus whale and deep-dive lookups.

POST /whale-watch/analyze returns 202 with a job id immediately; the analysis
runs on the background worker pool and is polled via GET /jobs/{job_id}.
Config via env (see backend_whalewatch.config).
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, Literal

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_whalewatch import __version__
from backend_whalewatch.agent_worker.worker import AnalysisWorker
from backend_whalewatch.analysis_engine.deep_dive import fetch_deep_dive
from backend_whalewatch.analysis_engine.detector import classify, detect_whales, summarize_whales
from backend_whalewatch.analysis_engine.models import WhaleTransaction
from backend_whalewatch.config import Settings, get_settings
from backend_whalewatch.core.exceptions import JobErrorCode
from backend_whalewatch.gateway.cache import AddressProfileCache
from backend_whalewatch.gateway.client import BlockchainClient
from backend_whalewatch.gateway.price import PriceClient
from backend_whalewatch.jobs.store import JobStore, get_job_store
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Dependencies (process-wide, created lazily; tests override via dependency_overrides)
# -----------------------------------------------------------------------------

_lock = threading.Lock()
_worker: AnalysisWorker | None = None
_blockchain_client: BlockchainClient | None = None
_address_cache: AddressProfileCache | None = None


def get_app_settings() -> Settings:
    return get_settings()


def get_store() -> JobStore:
    return get_job_store()


def get_worker() -> AnalysisWorker:
    global _worker
    cache = get_address_cache()
    with _lock:
        if _worker is None:
            _worker = AnalysisWorker(get_job_store(), get_settings(), address_fetch=cache.get_or_fetch)
        return _worker


def get_blockchain_client() -> BlockchainClient:
    global _blockchain_client
    with _lock:
        if _blockchain_client is None:
            settings = get_settings()
            _blockchain_client = BlockchainClient(
                settings.blockchain_api_url,
                api_key=settings.blockchain_api_key,
                max_retries=settings.blockchain_max_retries,
            )
        return _blockchain_client


def get_address_cache() -> AddressProfileCache:
    global _address_cache
    client = get_blockchain_client()
    with _lock:
        if _address_cache is None:
            _address_cache = AddressProfileCache(
                client.fetch_address_profile_safe,
                ttl_sec=get_settings().address_cache_ttl_sec,
            )
        return _address_cache


def get_price_client() -> PriceClient:
    return PriceClient(get_settings().price_api_url)


def shutdown_worker(wait: bool = True) -> None:
    global _worker
    with _lock:
        worker, _worker = _worker, None
    if worker is not None:
        worker.shutdown(wait=wait)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    """POST /whale-watch/analyze body: the whale to analyze."""

    tx_hash: str = Field(..., min_length=1, description="Transaction hash")
    amount: float = Field(..., gt=0, description="Amount in BTC")
    amount_usd: float = Field(0.0, ge=0, description="USD value at detection time")
    from_address: str = Field("unknown", description="Primary sending address")
    to_address: str = Field("unknown", description="Primary receiving address")
    timestamp: str = Field("", description="ISO 8601 detection timestamp")
    type: str | None = Field(None, description="Prior classification; recomputed when absent")
    description: str | None = Field(None, description="Prior classification description")
    model_preference: Literal["flash", "pro"] | None = Field(
        None, description="Force a model tier instead of the amount-based choice"
    )

    def to_whale(self) -> WhaleTransaction:
        whale = WhaleTransaction.from_dict(self.model_dump(exclude={"model_preference"}))
        if self.type is None:
            c = classify(whale)
            whale = replace(whale, type=c.type, description=c.description)
        return whale


class AnalyzeResponse(BaseModel):
    """POST /whale-watch/analyze response."""

    job_id: str = Field(..., description="Job id to poll at /jobs/{job_id}")
    status: str = Field(..., description="Initial job status (queued)")


class DeepDiveRequest(BaseModel):
    """POST /whale-watch/deep-dive body."""

    from_address: str = Field(..., min_length=1, max_length=128, description="Source address")
    to_address: str = Field(..., min_length=1, max_length=128, description="Destination address")


# -----------------------------------------------------------------------------
# Lifespan: worker pool lives for the app lifetime
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the analysis worker pool; drain it on shutdown."""
    worker = get_worker()
    logger.info("api_worker_pool_started", max_workers=worker.max_workers)
    yield
    shutdown_worker(wait=True)
    logger.info("api_worker_pool_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend Whale Watch API",
    description="Bitcoin whale detection with asynchronous AI analysis jobs.",
    version=__version__,
    lifespan=lifespan,
)


@app.post("/whale-watch/analyze", response_model=AnalyzeResponse, status_code=202)
def submit_analysis(
    body: AnalyzeRequest,
    store: JobStore = Depends(get_store),
    worker: AnalysisWorker = Depends(get_worker),
) -> AnalyzeResponse:
    """
    Create a queued job and hand it to the worker pool. Returns immediately;
    the caller polls GET /jobs/{job_id} for the result.
    """
    whale = body.to_whale()
    job = store.create_job(whale)
    worker.submit(job.id, model_preference=body.model_preference)
    return AnalyzeResponse(job_id=job.id, status=job.status.value)


@app.get("/jobs/{job_id}")
def get_job(job_id: str, store: JobStore = Depends(get_store)) -> dict[str, Any]:
    """Polling view: status, and result/reasoning/metadata or error once terminal."""
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"{JobErrorCode.JOB_NOT_FOUND.value}: {job_id}")
    return job.to_dict()


@app.get("/whale-watch/whales")
def list_whales(
    threshold_btc: float | None = Query(None, gt=0, description="Override the whale threshold (BTC)"),
    settings: Settings = Depends(get_app_settings),
    client: BlockchainClient = Depends(get_blockchain_client),
    price_client: PriceClient = Depends(get_price_client),
) -> dict[str, Any]:
    """Whales among current unconfirmed transactions, with a summary."""
    threshold = threshold_btc or settings.whale_threshold_btc
    price = price_client.fetch_btc_price()
    whales = detect_whales(client.fetch_unconfirmed_transactions(), threshold, price)
    logger.info("whales_listed", count=len(whales), threshold_btc=threshold)
    return {
        "threshold_btc": threshold,
        "btc_price_usd": price,
        "whales": [w.to_dict() for w in whales],
        "summary": summarize_whales(whales),
    }


@app.post("/whale-watch/deep-dive")
def deep_dive(
    body: DeepDiveRequest,
    cache: AddressProfileCache = Depends(get_address_cache),
) -> dict[str, Any]:
    """Both address profiles plus flow patterns; degraded data is reported, not fatal."""
    from_address = body.from_address.strip()
    to_address = body.to_address.strip()
    if not from_address or not to_address:
        raise HTTPException(status_code=400, detail="from_address and to_address must be non-empty")
    return fetch_deep_dive(from_address, to_address, cache.get_or_fetch).to_dict()


@app.get("/health")
def health(store: JobStore = Depends(get_store)) -> dict[str, Any]:
    """Liveness probe: API is up."""
    out: dict[str, Any] = {"status": "ok", "version": __version__}
    if _worker is not None:
        out["worker"] = _worker.stats.to_dict()
    out["jobs"] = len(store)
    return out


@app.get("/debug/cache")
def debug_cache(cache: AddressProfileCache = Depends(get_address_cache)) -> dict[str, Any]:
    """Address cache size and (truncated) keys."""
    return cache.stats()


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
