"""Integration tests for API endpoints."""

import time

import pytest
from fastapi.testclient import TestClient

from site_ingest.api.dependencies import ServiceContainer
from site_ingest.api.main import create_app
from site_ingest.core.config import settings
from site_ingest.core.exceptions import CapabilityError

from conftest import PNG_BYTES, make_capabilities

API = settings.API_V1_PREFIX
HEADERS = {"X-API-Key": settings.API_KEY_SECRET}


def _client(temp_dir, capabilities=None):
    container = ServiceContainer.build(
        db_path=str(temp_dir / "api.db"),
        storage_dir=str(temp_dir / "assets"),
        capabilities=capabilities or make_capabilities(),
        jobs_concurrency=1,
    )
    return TestClient(create_app(container))


def _wait_for_job(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"{API}/jobs/{job_id}", headers=HEADERS).json()
        if job["status"] in ("SUCCEEDED", "FAILED"):
            return job
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


@pytest.fixture
def client(temp_dir):
    with _client(temp_dir) as test_client:
        yield test_client


def _create_domain(client, value="example.com"):
    return client.post(f"{API}/domains", json={"domain": value}, headers=HEADERS)


class TestBasics:
    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time" in response.headers

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == settings.APP_NAME

    def test_detailed_health(self, client):
        response = client.get(f"{API}/health/detailed", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["jobs"] == {"active": 0, "queued": 0, "concurrency": 1}
        assert "memory_percent" in data["system"]

    def test_invalid_api_key(self, client):
        response = client.get(f"{API}/domains", headers={"X-API-Key": "invalid_key"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid API key", "type": "http_error"}

    def test_missing_api_key(self, client):
        assert client.get(f"{API}/domains").status_code == 422


class TestDomainEndpoints:
    """Test domain registration and lookup."""

    def test_create_domain_is_idempotent(self, client):
        first = _create_domain(client, "https://Example.com/about")
        second = _create_domain(client, "example.com")

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["canonical_url"] == "https://example.com"

        listed = client.get(f"{API}/domains", headers=HEADERS).json()
        assert [d["host"] for d in listed] == ["example.com"]

    def test_create_domain_registers_homepage(self, client):
        domain_id = _create_domain(client).json()["id"]

        urls = client.get(f"{API}/domains/{domain_id}/urls", headers=HEADERS).json()

        assert [(u["normalized_url"], u["type"], u["is_canonical"]) for u in urls] == [
            ("https://example.com/", "HOMEPAGE", True)
        ]
        assert client.get(
            f"{API}/domains/{domain_id}/urls", params={"type": "ABOUT"}, headers=HEADERS
        ).json() == []

    def test_invalid_domain(self, client):
        response = _create_domain(client, "https://")

        assert response.status_code == 400
        assert response.json()["type"] == "ingest_error"

    def test_unknown_domain(self, client):
        response = client.get(f"{API}/domains/missing", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "Domain not found"
        assert response.json()["details"] == {"entity": "Domain", "id": "missing"}


class TestIngestion:
    """Test the ingest, poll and inspect flow."""

    def test_ingest_and_inspect(self, client):
        domain_id = _create_domain(client).json()["id"]

        response = client.post(
            f"{API}/domains/{domain_id}/ingest",
            json={"max_urls": 1, "colors": {"enabled": False}},
            headers=HEADERS,
        )

        assert response.status_code == 202
        body = response.json()
        assert body["crawl_run"]["status"] == "PENDING"
        assert body["crawl_run"]["job_id"] == body["job"]["id"]
        assert body["job"]["type"] == "DOMAIN_INGESTION"

        job = _wait_for_job(client, body["job"]["id"])
        assert job["status"] == "SUCCEEDED"
        assert job["result"]["crawl_run_id"] == body["crawl_run"]["id"]

        run = client.get(f"{API}/crawl-runs/{body['crawl_run']['id']}", headers=HEADERS).json()
        assert run["status"] == "SUCCESS"
        assert len(run["crawls"]) == 1
        crawl = run["crawls"][0]
        assert {t["type"] for t in crawl["tasks"]} == {"SCREENSHOT", "TECHNOLOGIES", "SECTIONS"}

        detail = client.get(f"{API}/crawls/{crawl['id']}", headers=HEADERS).json()
        assert detail["status"] == "SUCCESS"
        assert [s["index"] for s in detail["sections"]] == [0, 2]
        assert {t["technology"]["slug"] for t in detail["technologies"]} == {"react", "cloudflare"}
        assert client.get(f"{API}/technologies/react", headers=HEADERS).json()["name"] == "React"

        image = client.get(detail["screenshots"][0]["public_url"])
        assert image.status_code == 200
        assert image.content == PNG_BYTES

        runs = client.get(f"{API}/domains/{domain_id}/crawl-runs", headers=HEADERS).json()
        assert [r["id"] for r in runs] == [body["crawl_run"]["id"]]
        assert client.get(f"{API}/jobs", headers=HEADERS).json()[0]["id"] == job["id"]

    def test_ingest_without_body_uses_defaults(self, client):
        domain_id = _create_domain(client).json()["id"]

        response = client.post(f"{API}/domains/{domain_id}/ingest", headers=HEADERS)

        assert response.status_code == 202
        job = _wait_for_job(client, response.json()["job"]["id"])
        assert job["input"]["options"]["max_urls"] == 20
        assert job["status"] == "SUCCEEDED"

    def test_discovery_failure_fails_run(self, temp_dir):
        capabilities = make_capabilities()
        capabilities.pages_finder.pages.side_effect = CapabilityError("pages_finder", "pages_finder request failed")

        with _client(temp_dir, capabilities) as client:
            domain_id = _create_domain(client).json()["id"]
            body = client.post(f"{API}/domains/{domain_id}/ingest", json={}, headers=HEADERS).json()

            job = _wait_for_job(client, body["job"]["id"])
            run = client.get(f"{API}/crawl-runs/{body['crawl_run']['id']}", headers=HEADERS).json()

        assert job["status"] == "FAILED"
        assert job["error"] == {"message": "pages_finder request failed"}
        assert run["status"] == "FAILED"
        assert run["error"] == "pages_finder request failed"
        assert run["crawls"] == []

    def test_ingest_validation(self, client):
        domain_id = _create_domain(client).json()["id"]

        response = client.post(f"{API}/domains/{domain_id}/ingest", json={"max_urls": 500}, headers=HEADERS)

        assert response.status_code == 422

    def test_ingest_unknown_domain(self, client):
        response = client.post(f"{API}/domains/missing/ingest", json={}, headers=HEADERS)

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "path",
        ["/jobs/missing", "/crawl-runs/missing", "/crawls/missing", "/urls/missing/crawls", "/technologies/missing"],
    )
    def test_unknown_resources(self, client, path):
        response = client.get(f"{API}{path}", headers=HEADERS)

        assert response.status_code == 404


class TestCrawlEndpoints:
    """Test manual crawls reported by an outside worker."""

    def _homepage_id(self, client):
        domain_id = _create_domain(client).json()["id"]
        return client.get(f"{API}/domains/{domain_id}/urls", headers=HEADERS).json()[0]["id"]

    def test_manual_crawl_lifecycle(self, client):
        url_id = self._homepage_id(client)

        created = client.post(f"{API}/urls/{url_id}/crawls", json={"tasks": ["SCREENSHOT"]}, headers=HEADERS)
        assert created.status_code == 201
        crawl_id = created.json()["id"]
        assert created.json()["crawl_run_id"] is None
        assert [t["type"] for t in created.json()["tasks"]] == ["SCREENSHOT"]

        task_url = f"{API}/crawls/{crawl_id}/tasks/SCREENSHOT"
        early = client.patch(task_url, json={"status": "FAILED"}, headers=HEADERS)
        assert early.status_code == 409
        assert early.json()["details"] == {"kind": "task", "from": "PENDING", "to": "FAILED"}

        running = client.patch(f"{API}/crawls/{crawl_id}", json={"status": "RUNNING"}, headers=HEADERS)
        assert running.json()["status"] == "RUNNING"

        client.patch(task_url, json={"status": "RUNNING"}, headers=HEADERS)
        failed = client.patch(task_url, json={"status": "FAILED", "error": "timeout"}, headers=HEADERS).json()
        assert (failed["status"], failed["error"], failed["attempts"]) == ("FAILED", "timeout", 1)

        retried = client.patch(task_url, json={"status": "RUNNING"}, headers=HEADERS).json()
        assert (retried["status"], retried["error"], retried["attempts"]) == ("RUNNING", None, 2)

        assert client.patch(task_url, json={"status": "SUCCESS"}, headers=HEADERS).status_code == 200
        done = client.patch(
            f"{API}/crawls/{crawl_id}",
            json={"status": "SUCCESS", "http_status": 200, "title": "Home"},
            headers=HEADERS,
        ).json()
        assert (done["status"], done["http_status"], done["title"]) == ("SUCCESS", 200, "Home")
        assert done["finished_at"] is not None

        history = client.get(f"{API}/urls/{url_id}/crawls", headers=HEADERS).json()
        assert [c["id"] for c in history] == [crawl_id]

    def test_create_crawl_without_body(self, client):
        url_id = self._homepage_id(client)

        response = client.post(f"{API}/urls/{url_id}/crawls", headers=HEADERS)

        assert response.status_code == 201
        assert [t["type"] for t in response.json()["tasks"]] == ["SCREENSHOT", "TECHNOLOGIES"]

    def test_crawl_validation(self, client):
        url_id = self._homepage_id(client)
        crawl_id = client.post(f"{API}/urls/{url_id}/crawls", headers=HEADERS).json()["id"]

        assert client.post(f"{API}/urls/{url_id}/crawls", json={"tasks": []}, headers=HEADERS).status_code == 422
        assert client.patch(f"{API}/crawls/{crawl_id}", json={"bogus": 1}, headers=HEADERS).status_code == 422
        assert client.patch(
            f"{API}/crawls/{crawl_id}/tasks/BOGUS", json={"status": "RUNNING"}, headers=HEADERS
        ).status_code == 422
        assert client.patch(
            f"{API}/crawls/{crawl_id}/tasks/SECTIONS", json={"status": "RUNNING"}, headers=HEADERS
        ).status_code == 404
        assert client.patch(f"{API}/crawls/{crawl_id}", json={"status": "SUCCESS"}, headers=HEADERS).status_code == 409
