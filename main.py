"""Main entry point for Site Ingest."""

import os
import uvicorn

from site_ingest.core.config import settings
from site_ingest.core.logging import logger


def main():
    """Run the Site Ingest API server."""
    logger.info("Starting Site Ingest API server")

    # Dev mode: enable auto-reload (set DEV_MODE=1 or UVICORN_RELOAD=1)
    dev_mode = os.environ.get("DEV_MODE", "0") == "1" or os.environ.get("UVICORN_RELOAD", "0") == "1"
    port = int(os.environ.get("PORT", "8000"))

    if dev_mode:
        logger.info("Running in DEV MODE with auto-reload enabled")
        uvicorn.run(
            "site_ingest.api.main:app",
            host="0.0.0.0",
            port=port,
            reload=True,
            reload_dirs=["src"],
            reload_excludes=["*.db", "*.log", "__pycache__", "storage/*", "logs/*"],
            log_level=settings.LOG_LEVEL.lower(),
        )
    else:
        # Jobs live in process memory, so a single worker serves every job poll
        logger.info("Running in PRODUCTION MODE with a single worker")
        uvicorn.run(
            "site_ingest.api.main:app",
            host="0.0.0.0",
            port=port,
            reload=False,
            workers=1,
            log_level=settings.LOG_LEVEL.lower(),
        )


if __name__ == "__main__":
    main()
