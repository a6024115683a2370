"""
Main entrypoint: validate configuration, then run the FastAPI server.

The analysis worker pool is started and drained by the app lifespan, so the
process is a single uvicorn server. Exits 1 when required configuration
(GEMINI_API_KEY) is missing or malformed.

Env: GEMINI_API_KEY (required), WHALE_THRESHOLD_BTC, WORKER_MAX_CONCURRENCY, API_HOST, API_PORT, etc.

API only: uvicorn backend_whalewatch.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os
import sys

# Configure structured JSON logging before other imports that may log
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Validate settings, then serve the API in the main thread."""
    from backend_whalewatch.config import get_settings, validate_settings_at_startup

    report = validate_settings_at_startup()
    for warning in report["warnings"]:
        logger.warning("main_config_warning", message=warning)
    if not report["valid"]:
        for error in report["errors"]:
            logger.error("main_config_error", message=error)
        sys.exit(1)

    settings = get_settings()

    from backend_whalewatch.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
