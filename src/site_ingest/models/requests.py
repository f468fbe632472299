"""Ingestion options and API request schemas."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .records import CrawlStatus, TaskType


class ScreenshotFormat(str, Enum):
    """Image formats the screenshot service can produce."""
    PNG = "png"
    JPEG = "jpeg"


class TechnologiesScope(str, Enum):
    """Whether technologies are detected once per domain or once per URL."""
    DOMAIN = "domain"
    PER_URL = "per_url"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TechnologiesScope":
        """Map free-form scope input onto a scope, defaulting to whole-domain."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized in ("per_url", "per-url", "perurl", "url", "urls", "all"):
            return cls.PER_URL
        return cls.DOMAIN


class ScreenshotOptions(BaseModel):
    """Options forwarded to the screenshot and section capture service."""
    format: ScreenshotFormat = Field(default=ScreenshotFormat.PNG, description="Image format")
    full_page: bool = Field(default=True, description="Capture the full scrollable page")
    adblock: bool = Field(default=True, description="Block ads and cookie banners")
    wait_ms: int = Field(default=500, ge=0, description="Delay after load before capture")
    timeout_ms: int = Field(default=90_000, ge=1, description="Capture timeout")


class TechnologiesOptions(BaseModel):
    """Options for technology detection."""
    scope: TechnologiesScope = Field(
        default=TechnologiesScope.DOMAIN,
        description="Detect once for the whole domain or for every URL"
    )
    timeout_ms: int = Field(default=60_000, ge=1, description="Detection timeout")

    @field_validator("scope", mode="before")
    @classmethod
    def _coerce_scope(cls, value):
        return TechnologiesScope.parse(value)


class ColorsOptions(BaseModel):
    """Options for prominent color extraction."""
    enabled: bool = Field(default=True, description="Run the COLORS sub-task")
    timeout_ms: int = Field(default=60_000, ge=1, description="Extraction timeout")
    sample_screens: int = Field(default=3, ge=1, description="Viewport samples to analyse")
    adblock: bool = True
    block_images: Optional[bool] = None


class IngestOptions(BaseModel):
    """
    Options for a single domain ingestion.

    Numeric bounds are enforced by the pipeline itself, so this model accepts
    any integer; the API request model narrows them further.
    """
    platform_hint: Optional[str] = Field(
        default=None,
        description="Platform override for page discovery (e.g. 'shopify')"
    )
    max_urls: Optional[int] = Field(default=None, description="Maximum discovered URLs to crawl")
    url_concurrency: Optional[int] = Field(default=None, description="URLs crawled in parallel")
    screenshot: ScreenshotOptions = Field(default_factory=ScreenshotOptions)
    technologies: TechnologiesOptions = Field(default_factory=TechnologiesOptions)
    colors: ColorsOptions = Field(default_factory=ColorsOptions)


class IngestRequest(IngestOptions):
    """Request body for POST /domains/{domain_id}/ingest."""
    max_urls: int = Field(default=20, ge=1, le=200, description="Maximum discovered URLs to crawl")
    url_concurrency: int = Field(default=3, ge=1, le=20, description="URLs crawled in parallel")


class CreateDomainRequest(BaseModel):
    """Request body for POST /domains."""
    domain: str = Field(..., min_length=1, description="Host or URL of the domain")
    create_homepage_url: bool = Field(default=True, description="Register the homepage URL immediately")


class CreateCrawlRequest(BaseModel):
    """Request body for POST /urls/{url_id}/crawls."""
    tasks: List[TaskType] = Field(
        default_factory=lambda: [TaskType.SCREENSHOT, TaskType.TECHNOLOGIES],
        min_length=1,
        description="Sub-tasks to track on the crawl"
    )


class PatchCrawlRequest(BaseModel):
    """Request body for PATCH /crawls/{crawl_id}; omitted fields are left unchanged."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[CrawlStatus] = None
    http_status: Optional[int] = None
    title: Optional[str] = None
    final_url: Optional[str] = None
    content_hash: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    crawled_at: Optional[str] = None


class PatchTaskRequest(BaseModel):
    """Request body for PATCH /crawls/{crawl_id}/tasks/{task_type}."""
    model_config = ConfigDict(extra="forbid")

    status: CrawlStatus = Field(..., description="New task status; RUNNING counts a new attempt")
    error: Optional[str] = Field(default=None, description="Stored only when status is FAILED")
