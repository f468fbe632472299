"""Job status models."""
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import uuid

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Job status enumeration."""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class JobType(str, Enum):
    """Kinds of background work the runner executes."""
    DOMAIN_INGESTION = "DOMAIN_INGESTION"


class Job(BaseModel):
    """In-memory record of one background job."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str
    status: JobStatus = JobStatus.QUEUED
    input: Any = None
    progress: Dict[str, Any] = Field(default_factory=lambda: {"stage": "queued"})
    result: Any = None
    error: Optional[Dict[str, str]] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)
