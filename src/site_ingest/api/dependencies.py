"""FastAPI dependencies and the service container they resolve from."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from ..capabilities import Capabilities, build_capabilities
from ..core.logging import logger
from ..pipeline.ingestion import IngestionPipeline
from ..services.crawl_runs import CrawlRunService
from ..services.crawls import CrawlService
from ..services.domains import DomainService
from ..services.ingest_store import IngestStore
from ..services.job_runner import JobRunner
from ..services.storage import StorageService

SHUTDOWN_TIMEOUT_SECONDS = 30.0


@dataclass
class ServiceContainer:
    """Every long-lived component of one application instance."""
    store: IngestStore
    storage: StorageService
    capabilities: Capabilities
    runner: JobRunner
    pipeline: IngestionPipeline
    domains: DomainService
    crawl_runs: CrawlRunService
    crawls: CrawlService

    @classmethod
    def build(
        cls,
        db_path: Optional[str] = None,
        storage_dir: Optional[str] = None,
        capabilities: Optional[Capabilities] = None,
        jobs_concurrency: Optional[int] = None,
    ) -> "ServiceContainer":
        """Wire the services together; omitted arguments come from settings."""
        store = IngestStore(db_path)
        storage = StorageService(storage_dir)
        capabilities = capabilities or build_capabilities()
        runner = JobRunner(jobs_concurrency)
        pipeline = IngestionPipeline(store, storage, capabilities)
        return cls(
            store=store,
            storage=storage,
            capabilities=capabilities,
            runner=runner,
            pipeline=pipeline,
            domains=DomainService(store),
            crawl_runs=CrawlRunService(store, runner, pipeline),
            crawls=CrawlService(store),
        )

    async def aclose(self) -> None:
        logger.info("Stopping job runner and closing capability clients")
        await self.runner.shutdown(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        await self.capabilities.aclose()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_domain_service(container: ServiceContainer = Depends(get_container)) -> DomainService:
    return container.domains


def get_crawl_run_service(container: ServiceContainer = Depends(get_container)) -> CrawlRunService:
    return container.crawl_runs


def get_crawl_service(container: ServiceContainer = Depends(get_container)) -> CrawlService:
    return container.crawls


def get_job_runner(container: ServiceContainer = Depends(get_container)) -> JobRunner:
    return container.runner
