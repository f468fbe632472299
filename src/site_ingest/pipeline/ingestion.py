"""
Domain ingestion pipeline.

Discovers a bounded set of pages for a domain, materializes them as URLs,
then crawls each URL with a fan-out of extraction sub-tasks (screenshot,
colors, technologies, sections) whose outcomes are settled independently.
"""
import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..capabilities import Capabilities, CaptureResult
from ..capabilities.adapters import (
    DEFAULT_PLATFORM,
    DetectedTechnology,
    DiscoveredPage,
    detect_platform,
    extension_for_content_type,
    guess_url_type,
    normalize_pages_result,
    normalize_prominent_color_result,
    normalize_technologies_result,
    pick_technology_hints,
    safe_json,
)
from ..core.config import settings
from ..core.exceptions import IngestError, InvalidURLError, JobCancelledError
from ..core.logging import logger
from ..models.records import CrawlStatus, Domain, Screenshot, TaskType, Url, UrlType
from ..models.requests import IngestOptions, TechnologiesScope
from ..services.ingest_store import IngestStore, utc_now
from ..services.storage import StorageService
from ..utils.cancellation import CancellationToken
from ..utils.concurrency import clamp_int, run_with_limit
from ..utils.url_utils import NormalizedUrl, normalize_url_for_domain_host
from .policy import CrawlFinalization, TaskOutcome, finalize_crawl

ProgressCallback = Callable[[Dict[str, Any]], Any]

# Fast, shallow scan used to pick a discovery strategy
DISCOVERY_DETECTION = {"fast": True, "recursive": False, "max_depth": 1, "max_urls": 3}


@dataclass
class CrawlSummary:
    url_id: str
    crawl_id: str
    status: str


@dataclass
class IngestionSummary:
    """What an ingestion produced, in discovery order."""
    domain_id: str
    urls_created_or_updated: int
    crawls: List[CrawlSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class _CapturedScreenshot:
    record: Screenshot
    capture: CaptureResult


@dataclass
class _IngestionRun:
    """State shared by every URL worker of one ingestion."""
    domain: Domain
    options: IngestOptions
    token: CancellationToken
    update: ProgressCallback
    crawl_run_id: Optional[str]
    scope: TechnologiesScope
    discovery_technologies: List[DetectedTechnology] = field(default_factory=list)
    discovery_error: Optional[BaseException] = None
    technology_ids: Optional[Dict[str, str]] = None
    precomputed_technologies: Dict[str, List[DetectedTechnology]] = field(default_factory=dict)
    total: int = 0
    completed: int = 0


def _error_message(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or error.__class__.__name__


def _noop_update(patch: Dict[str, Any]) -> None:
    return None


class IngestionPipeline:
    """
    Runs one domain ingestion against the store, object storage and the
    remote extraction services.
    """

    def __init__(self, store: IngestStore, storage: StorageService, capabilities: Capabilities):
        self.store = store
        self.storage = storage
        self.capabilities = capabilities

    async def ingest_domain(
        self,
        domain_id: str,
        options: Optional[IngestOptions] = None,
        update: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        crawl_run_id: Optional[str] = None,
    ) -> IngestionSummary:
        """
        Ingest a domain.

        Args:
            domain_id: Domain to ingest
            options: Ingestion options; bounds are clamped here
            update: Callback receiving ``{"progress": {...}}`` patches
            cancel_token: Checked before discovery, before URL
                materialization and at the start of every URL worker
            crawl_run_id: CrawlRun the created UrlCrawls belong to

        Returns:
            IngestionSummary with one entry per crawled URL

        Raises:
            NotFoundError: If the domain does not exist
            CapabilityError: If page discovery fails
            JobCancelledError: If the token fires at a checkpoint
        """
        options = options or IngestOptions()
        domain = self.store.require_domain(domain_id)

        max_urls = clamp_int(
            options.max_urls if options.max_urls is not None else settings.INGEST_DEFAULT_MAX_URLS,
            1, settings.INGEST_MAX_URLS_LIMIT, settings.INGEST_DEFAULT_MAX_URLS
        )
        url_concurrency = clamp_int(
            options.url_concurrency if options.url_concurrency is not None else settings.INGEST_DEFAULT_URL_CONCURRENCY,
            1, settings.INGEST_URL_CONCURRENCY_LIMIT, settings.INGEST_DEFAULT_URL_CONCURRENCY
        )

        run = _IngestionRun(
            domain=domain,
            options=options,
            token=cancel_token or CancellationToken(),
            update=update or _noop_update,
            crawl_run_id=crawl_run_id,
            scope=TechnologiesScope.parse(options.technologies.scope),
        )
        logger.info(
            f"Starting ingestion for {domain.host} (max_urls={max_urls}, "
            f"url_concurrency={url_concurrency}, scope={run.scope.value})"
        )

        platform_hint = await self._detect_for_discovery(run)

        run.token.raise_if_cancelled()
        pages = await self._discover_pages(run, platform_hint, max_urls)

        run.token.raise_if_cancelled()
        urls = self._materialize_urls(run, pages)

        run.total = len(urls)
        run.update({"progress": {"stage": "crawling_urls", "urls": run.total, "completed": 0}})
        self._prepare_technologies(run, urls)

        crawls = await run_with_limit(
            url_concurrency,
            urls,
            lambda url, index: self._crawl_url(run, url),
        )

        run.update({"progress": {"stage": "done", "crawled_urls": len(crawls)}})
        failed = sum(1 for crawl in crawls if crawl.status == CrawlStatus.FAILED.value)
        logger.info(f"Finished ingestion for {domain.host}: {len(crawls)} crawls, {failed} failed")

        return IngestionSummary(
            domain_id=domain.id,
            urls_created_or_updated=len(urls),
            crawls=crawls,
        )

    # ==================== Discovery ====================

    async def _detect_for_discovery(self, run: _IngestionRun) -> str:
        """
        Run the shallow technology scan that informs page discovery.

        A failure here is not fatal: the platform falls back to generic and
        the error is replayed by each whole-domain TECHNOLOGIES sub-task.
        """
        hint = (run.options.platform_hint or "").strip().lower() or None
        if run.scope != TechnologiesScope.DOMAIN and hint is not None:
            return hint

        run.update({"progress": {"stage": "detecting_technologies_for_discovery"}})
        try:
            raw = await self.capabilities.technologies_finder.technologies(
                run.domain.canonical_url,
                timeout_ms=run.options.technologies.timeout_ms,
                cancel_token=run.token,
                **DISCOVERY_DETECTION,
            )
            run.discovery_technologies = normalize_technologies_result(raw)
        except Exception as e:
            run.discovery_error = e
            logger.warning(f"Technology detection for discovery failed on {run.domain.host}: {e}")
            run.update({"progress": {
                "stage": "detecting_technologies_for_discovery_failed",
                "error": _error_message(e),
            }})
            return hint or DEFAULT_PLATFORM

        return hint or detect_platform(run.discovery_technologies) or DEFAULT_PLATFORM

    async def _discover_pages(
        self,
        run: _IngestionRun,
        platform_hint: str,
        max_urls: int,
    ) -> List[Tuple[NormalizedUrl, UrlType]]:
        hints = pick_technology_hints(run.discovery_technologies)
        run.update({"progress": {
            "stage": "discovering_pages",
            "platform": platform_hint,
            "technologies": len(hints),
        }})

        raw = await self.capabilities.pages_finder.pages(
            run.domain.canonical_url,
            platform_hint=platform_hint,
            technologies=hints or None,
            cancel_token=run.token,
        )
        return self._select_pages(normalize_pages_result(raw), run.domain.host, max_urls)

    @staticmethod
    def _select_pages(
        pages: List[DiscoveredPage],
        domain_host: str,
        max_urls: int,
    ) -> List[Tuple[NormalizedUrl, UrlType]]:
        """Keep same-site pages, first occurrence per normalized address, up to ``max_urls``."""
        selected: Dict[str, Tuple[NormalizedUrl, UrlType]] = {}
        for page in pages:
            if len(selected) >= max_urls:
                break
            try:
                normalized = normalize_url_for_domain_host(page.url, domain_host)
            except InvalidURLError:
                logger.debug(f"Skipping discovered page outside {domain_host}: {page.url}")
                continue
            if normalized.normalized_url not in selected:
                selected[normalized.normalized_url] = (normalized, guess_url_type(page.label))
        return list(selected.values())

    def _materialize_urls(
        self,
        run: _IngestionRun,
        pages: List[Tuple[NormalizedUrl, UrlType]],
    ) -> List[Url]:
        run.update({"progress": {"stage": "upserting_urls", "discovered_urls": len(pages)}})

        urls = [
            self.store.upsert_url(
                run.domain.id,
                normalized.path,
                normalized.normalized_url,
                url_type=url_type,
                is_canonical=url_type == UrlType.HOMEPAGE,
            )
            for normalized, url_type in pages
        ]

        if not any(url.type == UrlType.HOMEPAGE.value for url in urls):
            home = normalize_url_for_domain_host(run.domain.canonical_url, run.domain.host)
            homepage = self.store.upsert_url(
                run.domain.id, home.path, home.normalized_url,
                url_type=UrlType.HOMEPAGE, is_canonical=True
            )
            positions = [i for i, url in enumerate(urls) if url.id == homepage.id]
            if positions:
                urls[positions[0]] = homepage
            else:
                urls.insert(0, homepage)

        return urls

    def _prepare_technologies(self, run: _IngestionRun, urls: List[Url]) -> None:
        """Reuse the discovery scan so it is not repeated per URL."""
        if not run.discovery_technologies:
            return
        if run.scope == TechnologiesScope.DOMAIN:
            run.technology_ids = self.store.upsert_technologies(run.discovery_technologies)
            return
        homepage = next((url for url in urls if url.type == UrlType.HOMEPAGE.value), None)
        if homepage is not None:
            run.precomputed_technologies[homepage.id] = run.discovery_technologies

    # ==================== Per-URL crawl ====================

    async def _crawl_url(self, run: _IngestionRun, url: Url) -> CrawlSummary:
        run.token.raise_if_cancelled()

        task_types = [TaskType.SCREENSHOT]
        if run.options.colors.enabled:
            task_types.append(TaskType.COLORS)
        task_types.append(TaskType.TECHNOLOGIES)
        if url.type == UrlType.HOMEPAGE.value:
            task_types.append(TaskType.SECTIONS)

        crawl = self.store.create_crawl(url.id, task_types, crawl_run_id=run.crawl_run_id)
        self.store.patch_crawl(crawl.id, status=CrawlStatus.RUNNING)

        screenshot_task = asyncio.ensure_future(self._take_screenshot(run, crawl.id, url))
        subtasks: Dict[TaskType, "asyncio.Future[Any]"] = {TaskType.SCREENSHOT: screenshot_task}
        if TaskType.COLORS in task_types:
            subtasks[TaskType.COLORS] = asyncio.ensure_future(
                self._extract_colors(run, crawl.id, url, screenshot_task)
            )
        subtasks[TaskType.TECHNOLOGIES] = asyncio.ensure_future(self._detect_technologies(run, crawl.id, url))
        if TaskType.SECTIONS in task_types:
            subtasks[TaskType.SECTIONS] = asyncio.ensure_future(self._capture_sections(run, crawl.id, url))

        try:
            settled = await asyncio.gather(*subtasks.values(), return_exceptions=True)
        except asyncio.CancelledError:
            # gather() has already cancelled the sub-tasks; wait for them to unwind
            settled = await asyncio.gather(*subtasks.values(), return_exceptions=True)
            self._settle_crawl(crawl.id, url, subtasks, settled, cancelled=True)
            raise

        final = self._settle_crawl(crawl.id, url, subtasks, settled)

        run.completed += 1
        run.update({"progress": {"stage": "crawling_urls", "urls": run.total, "completed": run.completed}})
        return CrawlSummary(url_id=url.id, crawl_id=crawl.id, status=final.status.value)

    def _settle_crawl(
        self,
        crawl_id: str,
        url: Url,
        subtasks: Dict[TaskType, "asyncio.Future[Any]"],
        settled: List[Any],
        cancelled: bool = False,
    ) -> CrawlFinalization:
        """
        Record every sub-task's outcome and finalize the crawl.

        A cancelled crawl always ends FAILED, whatever its gating tasks did.
        """
        outcomes = []
        for task_type, result in zip(subtasks, settled):
            if isinstance(result, asyncio.CancelledError):
                result = JobCancelledError()
            if isinstance(result, BaseException):
                outcome = TaskOutcome.failure(task_type, result)
                logger.warning(f"{task_type.value} failed for {url.normalized_url}: {outcome.error}")
                self.store.patch_task(crawl_id, task_type, CrawlStatus.FAILED, error=outcome.error)
            else:
                outcome = TaskOutcome.success(task_type, result)
                self.store.patch_task(crawl_id, task_type, CrawlStatus.SUCCESS)
            outcomes.append(outcome)

        final = finalize_crawl(outcomes)
        if cancelled:
            final = CrawlFinalization(status=CrawlStatus.FAILED, error=final.error or JobCancelledError().message)
        captured = outcomes[0].value if outcomes[0].ok else None
        now = utc_now()
        self.store.patch_crawl(
            crawl_id,
            status=final.status,
            error=final.error,
            finished_at=now,
            crawled_at=now,
            final_url=(captured.capture.final_url if captured else None) or url.normalized_url,
            http_status=captured.capture.http_status if captured else None,
            title=captured.capture.title if captured else None,
        )
        return final

    async def _take_screenshot(self, run: _IngestionRun, crawl_id: str, url: Url) -> _CapturedScreenshot:
        self.store.patch_task(crawl_id, TaskType.SCREENSHOT, CrawlStatus.RUNNING)
        capture = await self.capabilities.screenshotter.screenshot(
            url.normalized_url, run.options.screenshot, cancel_token=run.token
        )

        ext = extension_for_content_type(capture.content_type)
        storage_key = f"screenshots/{run.domain.host}/{crawl_id}.{ext}"
        public_url = await self.storage.put(storage_key, capture.data)
        record = self.store.add_screenshot(crawl_id, format=ext, storage_key=storage_key, public_url=public_url)
        return _CapturedScreenshot(record=record, capture=capture)

    async def _extract_colors(
        self,
        run: _IngestionRun,
        crawl_id: str,
        url: Url,
        screenshot_task: "asyncio.Future[_CapturedScreenshot]",
    ) -> Optional[str]:
        """Extract the prominent color and attach it to this crawl's screenshot."""
        self.store.patch_task(crawl_id, TaskType.COLORS, CrawlStatus.RUNNING)
        extraction = asyncio.ensure_future(self.capabilities.colors_extractor.extract(
            url.normalized_url, run.options.colors, cancel_token=run.token
        ))
        try:
            try:
                # Shielded so cancelling this sub-task never cancels the screenshot
                captured = await asyncio.shield(screenshot_task)
            except Exception as e:
                raise IngestError(f"screenshot unavailable ({_error_message(e)})") from e
            result = await extraction
        finally:
            if not extraction.done():
                extraction.cancel()
            elif not extraction.cancelled():
                extraction.exception()

        prominent_color = normalize_prominent_color_result(result)
        self.store.set_screenshot_color(captured.record.id, prominent_color)
        return prominent_color

    async def _detect_technologies(self, run: _IngestionRun, crawl_id: str, url: Url) -> int:
        self.store.patch_task(crawl_id, TaskType.TECHNOLOGIES, CrawlStatus.RUNNING)

        if run.scope == TechnologiesScope.DOMAIN:
            if run.discovery_error is not None:
                raise IngestError(_error_message(run.discovery_error))
            return self.store.set_technologies(crawl_id, run.discovery_technologies, run.technology_ids)

        technologies = run.precomputed_technologies.get(url.id)
        if technologies is None:
            raw = await self.capabilities.technologies_finder.technologies(
                url.normalized_url,
                timeout_ms=run.options.technologies.timeout_ms,
                cancel_token=run.token,
            )
            technologies = normalize_technologies_result(raw)
        return self.store.set_technologies(crawl_id, technologies)

    async def _capture_sections(self, run: _IngestionRun, crawl_id: str, url: Url) -> int:
        self.store.patch_task(crawl_id, TaskType.SECTIONS, CrawlStatus.RUNNING)
        result = await self.capabilities.screenshotter.sections(
            url.normalized_url, run.options.screenshot, cancel_token=run.token
        )

        ext = extension_for_content_type(result.content_type)
        items = []
        for position, section in enumerate(result.sections):
            if not section.data:
                continue
            index = section.index if section.index is not None else position
            storage_key = f"sections/{run.domain.host}/{crawl_id}/{index}.{ext}"
            public_url = await self.storage.put(storage_key, section.data)
            items.append({
                "index": index,
                "clip_json": safe_json(section.clip),
                "element_json": safe_json(section.element),
                "format": ext,
                "storage_key": storage_key,
                "public_url": public_url,
            })

        return self.store.set_sections(crawl_id, items)
