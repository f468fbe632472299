"""Custom exception handlers."""
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import IngestError
from ..core.logging import logger


async def ingest_exception_handler(request: Request, exc: IngestError):
    """Handle ingestion-specific exceptions."""
    if exc.status_code >= 500:
        logger.error(f"Ingest error: {exc.message}", extra={"details": exc.details})
    else:
        logger.warning(f"Ingest error: {exc.message}", extra={"details": exc.details})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "type": "ingest_error",
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with proper logging."""
    logger.warning(
        f"HTTP error: {exc.status_code} - {exc.detail}",
        extra={"path": str(request.url), "method": request.method}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "type": "http_error"
        },
        headers=getattr(exc, "headers", None)
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": "internal_error"
        }
    )


# Exception handler registry
exception_handlers = {
    IngestError: ingest_exception_handler,
    HTTPException: http_exception_handler,
    Exception: global_exception_handler,
}
