"""Domain exceptions shared by the store, pipeline and API layers."""
from typing import Any, Dict, Optional


class IngestError(Exception):
    """Base exception for ingestion-related errors."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(IngestError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} not found",
            status_code=404,
            details={"entity": entity, "id": entity_id}
        )


class InvalidURLError(IngestError):
    """Exception raised for invalid or off-domain URLs."""

    def __init__(self, url: str, reason: str = "Invalid URL"):
        super().__init__(
            f"{reason}: {url}",
            status_code=400,
            details={"url": url}
        )


class InvalidTransitionError(IngestError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, kind: str, current: str, target: str, reason: Optional[str] = None):
        message = f"Illegal {kind} transition {current} -> {target}"
        super().__init__(
            f"{message}: {reason}" if reason else message,
            status_code=409,
            details={"kind": kind, "from": current, "to": target}
        )


class CapabilityError(IngestError):
    """Raised when a remote extraction service fails or is unreachable."""

    def __init__(self, capability: str, message: str, status: Optional[int] = None):
        super().__init__(
            message,
            status_code=502,
            details={"capability": capability, "upstream_status": status}
        )
        self.capability = capability


class JobCancelledError(IngestError):
    """Raised at a cooperative checkpoint once a job's token has been cancelled."""

    def __init__(self, message: str = "Job cancelled"):
        super().__init__(message, status_code=499)
