"""Tests for the crawl run service and its job wiring."""

import asyncio
import json

import pytest

from site_ingest.core.exceptions import CapabilityError, NotFoundError
from site_ingest.models.job import JobStatus, JobType
from site_ingest.models.records import CrawlStatus
from site_ingest.models.requests import ColorsOptions, IngestOptions
from site_ingest.pipeline.ingestion import IngestionPipeline
from site_ingest.services.crawl_runs import CrawlRunService
from site_ingest.services.domains import DomainService
from site_ingest.services.job_runner import JobRunner

from conftest import make_capabilities


@pytest.fixture
def runner():
    return JobRunner(concurrency=2)


@pytest.fixture
def service(store, runner, pipeline):
    return CrawlRunService(store, runner, pipeline)


class TestRequestCrawlRun:
    """Test requesting and running a domain crawl."""

    @pytest.mark.asyncio
    async def test_single_url_run_succeeds(self, store, runner, service, domain):
        options = IngestOptions(max_urls=1, colors=ColorsOptions(enabled=False))

        crawl_run, job = service.request_domain_crawl_run(domain.id, options)

        assert crawl_run.status == CrawlStatus.PENDING.value
        assert crawl_run.job_id == job.id
        assert json.loads(crawl_run.options_json)["max_urls"] == 1
        assert job.type == JobType.DOMAIN_INGESTION.value
        assert job.input["domain_id"] == domain.id
        assert job.input["crawl_run_id"] == crawl_run.id
        assert job.input["options"]["colors"]["enabled"] is False

        await runner.join()

        run = service.get_crawl_run(crawl_run.id)
        assert run.status == CrawlStatus.SUCCESS.value
        assert run.error is None
        assert run.started_at is not None
        assert run.finished_at is not None

        crawls = service.list_crawls(crawl_run.id)
        assert len(crawls) == 1
        assert {t.type for t in crawls[0].tasks} == {"SCREENSHOT", "TECHNOLOGIES", "SECTIONS"}
        assert crawls[0].crawl_run_id == crawl_run.id

        assert job.status == JobStatus.SUCCEEDED
        assert job.result["crawl_run_id"] == crawl_run.id
        assert job.result["urls_created_or_updated"] == 1
        assert job.result["crawls"][0]["status"] == "SUCCESS"
        assert job.progress == {"stage": "done"}

    @pytest.mark.asyncio
    async def test_discovery_failure_fails_run_and_job(self, store, storage, runner, domain):
        capabilities = make_capabilities()
        capabilities.pages_finder.pages.side_effect = CapabilityError(
            "pages-finder", "pages-finder returned HTTP 503: unavailable", 503
        )
        service = CrawlRunService(store, runner, IngestionPipeline(store, storage, capabilities))

        crawl_run, job = service.request_domain_crawl_run(domain.id)
        await runner.join()

        run = service.get_crawl_run(crawl_run.id)
        assert run.status == CrawlStatus.FAILED.value
        assert run.error == "pages-finder returned HTTP 503: unavailable"
        assert service.list_crawls(crawl_run.id) == []

        assert job.status == JobStatus.FAILED
        assert job.error == {"message": "pages-finder returned HTTP 503: unavailable"}

    @pytest.mark.asyncio
    async def test_cancelled_job_fails_run(self, store, runner, service, domain):
        crawl_run, job = service.request_domain_crawl_run(domain.id)

        assert runner.cancel(job.id, "stopped by operator")
        await runner.join()

        run = service.get_crawl_run(crawl_run.id)
        assert run.status == CrawlStatus.FAILED.value
        assert run.error == "stopped by operator"
        assert job.status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_shutdown_timeout_fails_run_crawls_and_tasks(self, store, storage, domain):
        capabilities = make_capabilities()
        capturing = asyncio.Event()

        async def hang(*args, **kwargs):
            capturing.set()
            await asyncio.sleep(30)

        capabilities.screenshotter.screenshot.side_effect = hang
        runner = JobRunner(concurrency=1)
        service = CrawlRunService(store, runner, IngestionPipeline(store, storage, capabilities))
        options = IngestOptions(colors=ColorsOptions(enabled=False))

        crawl_run, job = service.request_domain_crawl_run(domain.id, options)
        await asyncio.wait_for(capturing.wait(), 5)
        await runner.shutdown(timeout=0.1)

        assert job.status == JobStatus.FAILED
        assert job.error == {"message": "Job cancelled"}

        run = service.get_crawl_run(crawl_run.id)
        assert run.status == CrawlStatus.FAILED.value
        assert run.error == "Job cancelled"
        assert run.finished_at is not None

        crawls = service.list_crawls(crawl_run.id)
        assert len(crawls) == 2
        for crawl in crawls:
            assert crawl.status == CrawlStatus.FAILED.value
            assert crawl.finished_at is not None
            assert "screenshot: Job cancelled" in crawl.error
            tasks = {task.type: task for task in crawl.tasks}
            assert tasks["SCREENSHOT"].status == "FAILED"
            assert tasks["SCREENSHOT"].error == "Job cancelled"
            assert all(task.status in ("SUCCESS", "FAILED") for task in crawl.tasks)

    def test_unknown_domain(self, service, runner):
        with pytest.raises(NotFoundError):
            service.request_domain_crawl_run("missing")
        assert runner.list() == []


class TestQueries:
    """Test crawl run lookups."""

    @pytest.mark.asyncio
    async def test_list_runs_newest_first(self, runner, service, domain):
        first, _ = service.request_domain_crawl_run(domain.id)
        second, _ = service.request_domain_crawl_run(domain.id)
        await runner.join()

        runs = service.list_crawl_runs_for_domain(domain.id)
        assert [r.id for r in runs] == [second.id, first.id]
        assert [r.id for r in service.list_crawl_runs_for_domain(domain.id, limit=0)] == [second.id]
        assert service.list_crawl_runs_for_domain(domain.id, status=CrawlStatus.FAILED) == []

    def test_missing_entities(self, service):
        with pytest.raises(NotFoundError):
            service.get_crawl_run("missing")
        with pytest.raises(NotFoundError):
            service.list_crawls("missing")
        with pytest.raises(NotFoundError):
            service.get_crawl("missing")
        with pytest.raises(NotFoundError):
            service.list_crawl_runs_for_domain("missing")


class TestDomainService:
    """Test domain creation and URL registration."""

    def test_create_domain_registers_homepage(self, store):
        domains = DomainService(store)

        domain, created = domains.create_domain("https://www.Example.com/shop")

        assert created is True
        assert domain.host == "www.example.com"
        assert domain.canonical_url == "https://www.example.com"
        urls = domains.list_urls(domain.id)
        assert [(u.normalized_url, u.type, u.is_canonical) for u in urls] == [
            ("https://www.example.com/", "HOMEPAGE", True)
        ]

        again, created_again = domains.create_domain("www.example.com", create_homepage_url=False)
        assert created_again is False
        assert again.id == domain.id

    def test_upsert_url_normalizes_onto_domain(self, store, domain):
        domains = DomainService(store)

        url = domains.upsert_url(domain.id, "https://www.example.com/pricing/?plan=pro")

        assert url.normalized_url == "https://example.com/pricing"
        assert url.path == "/pricing"
