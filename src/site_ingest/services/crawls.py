"""Manual URL crawls: creation, history and status reporting by outside workers."""
from typing import Any, List, Optional, Sequence

from ..core.exceptions import NotFoundError
from ..core.logging import logger
from ..models.records import CrawlStatus, CrawlTask, TaskType, Technology, Url, UrlCrawl
from ..utils.concurrency import clamp_int
from .ingest_store import IngestStore

DEFAULT_CRAWL_TASKS = (TaskType.SCREENSHOT, TaskType.TECHNOLOGIES)


class CrawlService:
    """
    Crawls created outside an ingestion run.

    The caller drives each crawl through its states; every change still goes
    through the store's transition checks, so a FAILED task can be re-attempted
    and its ``attempts`` counter grows with each RUNNING report.
    """

    def __init__(self, store: IngestStore):
        self.store = store

    def _require_url(self, url_id: str) -> Url:
        url = self.store.get_url(url_id)
        if url is None:
            raise NotFoundError("Url", url_id)
        return url

    def create_crawl(self, url_id: str, tasks: Optional[Sequence[TaskType]] = None) -> UrlCrawl:
        """
        Create a PENDING crawl for a URL.

        Args:
            url_id: URL to crawl
            tasks: Task types to track (default: SCREENSHOT and TECHNOLOGIES)

        Raises:
            NotFoundError: If the URL does not exist
        """
        url = self._require_url(url_id)
        crawl = self.store.create_crawl(url.id, list(tasks or DEFAULT_CRAWL_TASKS))
        logger.info(f"Created crawl {crawl.id} for {url.normalized_url}")
        return crawl

    def list_crawls_for_url(self, url_id: str, limit: int = 50) -> List[UrlCrawl]:
        """A URL's crawl history, newest first; ``limit`` is clamped to [1, 200]."""
        url = self._require_url(url_id)
        return self.store.list_crawls_for_url(url.id, limit=clamp_int(limit, 1, 200, 50))

    def patch_crawl(self, crawl_id: str, status: Optional[CrawlStatus] = None, **fields: Any) -> UrlCrawl:
        return self.store.patch_crawl(crawl_id, status, **fields)

    def patch_task(
        self,
        crawl_id: str,
        task_type: TaskType,
        status: CrawlStatus,
        error: Optional[str] = None,
    ) -> CrawlTask:
        task = self.store.patch_task(crawl_id, task_type, status, error=error)
        logger.info(f"Crawl {crawl_id} {task_type.value} -> {status.value} (attempt {task.attempts})")
        return task

    def get_technology(self, slug: str) -> Technology:
        technology = self.store.get_technology(slug)
        if technology is None:
            raise NotFoundError("Technology", slug)
        return technology
