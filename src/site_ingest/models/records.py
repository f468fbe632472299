"""Enumerations and record types for the entities kept in the ingest store."""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CrawlStatus(str, Enum):
    """Lifecycle shared by CrawlRun, UrlCrawl and CrawlTask rows."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TaskType(str, Enum):
    """Extraction sub-task kinds attached to a UrlCrawl."""
    SCREENSHOT = "SCREENSHOT"
    TECHNOLOGIES = "TECHNOLOGIES"
    SECTIONS = "SECTIONS"
    COLORS = "COLORS"
    CATEGORIES = "CATEGORIES"
    CONTENT = "CONTENT"


class UrlType(str, Enum):
    """Coarse semantic type of a page."""
    HOMEPAGE = "HOMEPAGE"
    ABOUT = "ABOUT"
    CONTACT = "CONTACT"
    PRICING = "PRICING"
    BLOG = "BLOG"
    CAREERS = "CAREERS"
    DOCS = "DOCS"
    TERMS = "TERMS"
    PRIVACY = "PRIVACY"
    OTHER = "OTHER"


class ScreenshotKind(str, Enum):
    FULL_PAGE = "FULL_PAGE"


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class Domain(_Record):
    id: str
    host: str
    canonical_url: str
    created_at: str
    updated_at: str


@dataclass
class Url(_Record):
    id: str
    domain_id: str
    path: str
    normalized_url: str
    type: str
    is_canonical: bool
    created_at: str
    updated_at: str


@dataclass
class CrawlRun(_Record):
    id: str
    domain_id: str
    status: str
    job_id: Optional[str]
    options_json: Optional[str]
    error: Optional[str]
    started_at: Optional[str]
    finished_at: Optional[str]
    created_at: str
    updated_at: str


@dataclass
class CrawlTask(_Record):
    id: str
    crawl_id: str
    type: str
    status: str
    attempts: int
    last_attempt_at: Optional[str]
    started_at: Optional[str]
    finished_at: Optional[str]
    error: Optional[str]
    created_at: str
    updated_at: str


@dataclass
class Screenshot(_Record):
    id: str
    crawl_id: str
    kind: str
    width: Optional[int]
    height: Optional[int]
    format: str
    storage_key: str
    public_url: str
    prominent_color: Optional[str]
    created_at: str


@dataclass
class SectionScreenshot(_Record):
    id: str
    crawl_id: str
    index: int
    clip_json: Optional[str]
    element_json: Optional[str]
    format: str
    storage_key: str
    public_url: str
    created_at: str


@dataclass
class Technology(_Record):
    id: str
    slug: str
    name: str
    website_url: Optional[str]


@dataclass
class CrawlTechnology(_Record):
    technology: Technology
    confidence: Optional[float]


@dataclass
class UrlCrawl(_Record):
    """One visit of one URL, with its tasks and produced artifacts."""
    id: str
    url_id: str
    crawl_run_id: Optional[str]
    status: str
    http_status: Optional[int]
    title: Optional[str]
    content_hash: Optional[str]
    final_url: Optional[str]
    error: Optional[str]
    started_at: Optional[str]
    finished_at: Optional[str]
    crawled_at: Optional[str]
    created_at: str
    updated_at: str
    tasks: List[CrawlTask] = field(default_factory=list)
    screenshots: List[Screenshot] = field(default_factory=list)
    sections: List[SectionScreenshot] = field(default_factory=list)
    technologies: List[CrawlTechnology] = field(default_factory=list)

    def task(self, task_type: TaskType) -> Optional[CrawlTask]:
        """Return this crawl's task of the given type, if it was created."""
        for task in self.tasks:
            if task.type == task_type.value:
                return task
        return None
