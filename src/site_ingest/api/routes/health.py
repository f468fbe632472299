"""Health check endpoints."""
import time
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends

from ...core.config import settings
from ...core.security import verify_api_key
from ...services.job_runner import JobRunner
from ..dependencies import get_job_runner


router = APIRouter()


@router.get("/health", summary="Basic health check")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.APP_VERSION,
        "service": settings.APP_NAME
    }


@router.get("/health/detailed", summary="Detailed health check")
async def detailed_health_check(
    runner: JobRunner = Depends(get_job_runner),
    api_key: str = Depends(verify_api_key)
) -> Dict[str, Any]:
    """Detailed health check with system metrics and job runner load."""
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage('/')

    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.APP_VERSION,
        "service": settings.APP_NAME,
        "system": {
            "memory_percent": memory.percent,
            "cpu_percent": psutil.cpu_percent(interval=None),
            "disk_percent": disk.percent
        },
        "jobs": {
            "active": runner.active_count,
            "queued": runner.queued_count,
            "concurrency": runner.concurrency
        },
        "configuration": {
            "debug": settings.DEBUG,
            "jobs_concurrency": settings.JOBS_CONCURRENCY,
            "default_max_urls": settings.INGEST_DEFAULT_MAX_URLS,
            "default_url_concurrency": settings.INGEST_DEFAULT_URL_CONCURRENCY
        }
    }
