"""CrawlRun lifecycle: request an ingestion, run it as a job, record the outcome."""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import NotFoundError
from ..core.logging import logger
from ..models.job import Job, JobType
from ..models.records import CrawlRun, CrawlStatus, UrlCrawl
from ..models.requests import IngestOptions
from ..pipeline.ingestion import IngestionPipeline
from ..utils.concurrency import clamp_int
from .ingest_store import IngestStore
from .job_runner import CANCELLED_MESSAGE, JobContext, JobRunner


class CrawlRunService:
    """Ties a durable CrawlRun record to an in-memory ingestion job."""

    def __init__(self, store: IngestStore, runner: JobRunner, pipeline: IngestionPipeline):
        self.store = store
        self.runner = runner
        self.pipeline = pipeline

    def request_domain_crawl_run(
        self,
        domain_id: str,
        options: Optional[IngestOptions] = None,
    ) -> Tuple[CrawlRun, Job]:
        """
        Create a PENDING crawl run for a domain and enqueue its ingestion job.

        Args:
            domain_id: Domain to ingest
            options: Ingestion options, stored on the run as JSON

        Returns:
            Tuple of (crawl run linked to the job, queued job)

        Raises:
            NotFoundError: If the domain does not exist
        """
        domain = self.store.require_domain(domain_id)
        options = options or IngestOptions()
        crawl_run = self.store.create_crawl_run(domain.id, options.model_dump_json())

        async def handler(context: JobContext) -> Dict[str, Any]:
            return await self._run(crawl_run.id, domain.id, options, context)

        job = self.runner.enqueue(
            JobType.DOMAIN_INGESTION.value,
            {"domain_id": domain.id, "crawl_run_id": crawl_run.id, "options": options.model_dump(mode="json")},
            handler,
        )
        crawl_run = self.store.set_crawl_run_job(crawl_run.id, job.id)
        logger.info(f"Requested crawl run {crawl_run.id} for {domain.host} (job {job.id})")
        return crawl_run, job

    async def _run(
        self,
        crawl_run_id: str,
        domain_id: str,
        options: IngestOptions,
        context: JobContext,
    ) -> Dict[str, Any]:
        self.store.transition_crawl_run(crawl_run_id, CrawlStatus.RUNNING)
        try:
            summary = await self.pipeline.ingest_domain(
                domain_id,
                options,
                update=context.update,
                cancel_token=context.cancel_token,
                crawl_run_id=crawl_run_id,
            )
        except asyncio.CancelledError:
            self.store.transition_crawl_run(crawl_run_id, CrawlStatus.FAILED, error=CANCELLED_MESSAGE)
            logger.warning(f"Crawl run {crawl_run_id} cancelled")
            raise
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            self.store.transition_crawl_run(crawl_run_id, CrawlStatus.FAILED, error=message)
            logger.error(f"Crawl run {crawl_run_id} failed: {message}")
            raise

        self.store.transition_crawl_run(crawl_run_id, CrawlStatus.SUCCESS, error=None)
        return {**summary.to_dict(), "crawl_run_id": crawl_run_id}

    def get_crawl_run(self, crawl_run_id: str) -> CrawlRun:
        crawl_run = self.store.get_crawl_run(crawl_run_id)
        if crawl_run is None:
            raise NotFoundError("CrawlRun", crawl_run_id)
        return crawl_run

    def list_crawl_runs_for_domain(
        self,
        domain_id: str,
        limit: int = 50,
        status: Optional[CrawlStatus] = None,
    ) -> List[CrawlRun]:
        """List a domain's crawl runs newest first; ``limit`` is clamped to [1, 200]."""
        self.store.require_domain(domain_id)
        return self.store.list_crawl_runs_for_domain(
            domain_id,
            limit=clamp_int(limit, 1, 200, 50),
            status=status,
        )

    def list_crawls(self, crawl_run_id: str) -> List[UrlCrawl]:
        self.get_crawl_run(crawl_run_id)
        return self.store.list_crawls_for_run(crawl_run_id)

    def get_crawl(self, crawl_id: str) -> UrlCrawl:
        """Get one URL crawl with its tasks and artifacts."""
        crawl = self.store.get_crawl(crawl_id)
        if crawl is None:
            raise NotFoundError("UrlCrawl", crawl_id)
        return crawl
