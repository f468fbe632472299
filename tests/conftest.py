"""Pytest fixtures for Site Ingest tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Any, Generator
from unittest.mock import AsyncMock

import pytest

from site_ingest.capabilities import Capabilities, CaptureResult, SectionCapture, SectionsResult
from site_ingest.models.records import Domain
from site_ingest.pipeline.ingestion import IngestionPipeline
from site_ingest.services.ingest_store import IngestStore
from site_ingest.services.storage import StorageService

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"

DEFAULT_PAGES = {
    "pages": [
        {"url": "https://example.com/", "type": "homepage"},
        {"url": "https://example.com/about", "type": "about"},
    ]
}

DEFAULT_TECHNOLOGIES = {
    "technologies": [
        {"name": "React", "confidence": 85},
        {"slug": "cloudflare", "name": "Cloudflare", "websiteUrl": "https://cloudflare.com", "score": 0.5},
    ]
}

DEFAULT_COLORS = {"signatureColor": {"hex": "#FF0000"}}


def make_capabilities(
    pages: Any = DEFAULT_PAGES,
    technologies: Any = DEFAULT_TECHNOLOGIES,
    colors: Any = DEFAULT_COLORS,
    capture: CaptureResult = None,
    sections: SectionsResult = None,
) -> Capabilities:
    """Build a Capabilities container whose clients are AsyncMocks with canned answers."""
    pages_finder = AsyncMock()
    pages_finder.pages.return_value = pages

    technologies_finder = AsyncMock()
    technologies_finder.technologies.return_value = technologies

    colors_extractor = AsyncMock()
    colors_extractor.extract.return_value = colors

    screenshotter = AsyncMock()
    screenshotter.screenshot.return_value = capture or CaptureResult(
        data=PNG_BYTES, content_type="image/png", http_status=200, title="Example"
    )
    screenshotter.sections.return_value = sections or SectionsResult(
        content_type="image/png",
        sections=[
            SectionCapture(index=0, data=b"section-0", clip={"x": 0, "y": 0}),
            SectionCapture(index=None, data=b""),
            SectionCapture(index=None, data=b"section-2", element={"tag": "footer"}),
        ],
    )

    return Capabilities(
        pages_finder=pages_finder,
        screenshotter=screenshotter,
        technologies_finder=technologies_finder,
        colors_extractor=colors_extractor,
    )


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp(prefix="site_ingest_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(scope="function")
def store(temp_dir: Path) -> IngestStore:
    return IngestStore(str(temp_dir / "ingest.db"))


@pytest.fixture(scope="function")
def storage(temp_dir: Path) -> StorageService:
    return StorageService(str(temp_dir / "assets"), "/storage")


@pytest.fixture(scope="function")
def capabilities() -> Capabilities:
    return make_capabilities()


@pytest.fixture(scope="function")
def domain(store: IngestStore) -> Domain:
    domain, _ = store.create_domain("example.com", "https://example.com")
    return domain


@pytest.fixture(scope="function")
def pipeline(store: IngestStore, storage: StorageService, capabilities: Capabilities) -> IngestionPipeline:
    return IngestionPipeline(store, storage, capabilities)
