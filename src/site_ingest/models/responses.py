"""API response schemas."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .job import Job


class _FromRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class DomainResponse(_FromRecord):
    id: str
    host: str
    canonical_url: str
    created_at: str
    updated_at: str


class UrlResponse(_FromRecord):
    id: str
    domain_id: str
    path: str
    normalized_url: str
    type: str
    is_canonical: bool
    created_at: str
    updated_at: str


class CrawlRunResponse(_FromRecord):
    """Response schema for a crawl run."""
    id: str
    domain_id: str
    status: str
    job_id: Optional[str] = None
    options_json: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    created_at: str
    updated_at: str


class CrawlTaskResponse(_FromRecord):
    id: str
    type: str
    status: str
    attempts: int
    last_attempt_at: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    error: Optional[str] = None


class ScreenshotResponse(_FromRecord):
    id: str
    kind: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: str
    storage_key: str
    public_url: str
    prominent_color: Optional[str] = None


class SectionScreenshotResponse(_FromRecord):
    id: str
    index: int
    clip_json: Optional[str] = None
    element_json: Optional[str] = None
    format: str
    storage_key: str
    public_url: str


class TechnologyResponse(_FromRecord):
    id: str
    slug: str
    name: str
    website_url: Optional[str] = None


class CrawlTechnologyResponse(_FromRecord):
    technology: TechnologyResponse
    confidence: Optional[float] = None


class UrlCrawlResponse(_FromRecord):
    """Response schema for one URL crawl with its sub-task states and artifacts."""
    id: str
    url_id: str
    crawl_run_id: Optional[str] = None
    status: str
    http_status: Optional[int] = None
    title: Optional[str] = None
    final_url: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    crawled_at: Optional[str] = None
    tasks: List[CrawlTaskResponse] = []
    screenshots: List[ScreenshotResponse] = []
    sections: List[SectionScreenshotResponse] = []
    technologies: List[CrawlTechnologyResponse] = []


class CrawlRunDetailResponse(CrawlRunResponse):
    crawls: List[UrlCrawlResponse] = []


class IngestResponse(BaseModel):
    """Response schema for an accepted ingestion request."""
    crawl_run: CrawlRunResponse
    job: Job
