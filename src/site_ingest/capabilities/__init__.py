"""Clients for the remote extraction services used during ingestion."""
from dataclasses import dataclass
from typing import Optional

import httpx

from .colors_extractor import ColorsExtractor
from .pages_finder import PagesFinder
from .screenshotter import CaptureResult, SectionCapture, Screenshotter, SectionsResult
from .technologies_finder import TechnologiesFinder
from ..core.config import settings


@dataclass
class Capabilities:
    """The set of extraction clients the ingestion pipeline talks to."""
    pages_finder: PagesFinder
    screenshotter: Screenshotter
    technologies_finder: TechnologiesFinder
    colors_extractor: ColorsExtractor

    async def aclose(self) -> None:
        for client in (self.pages_finder, self.screenshotter, self.technologies_finder, self.colors_extractor):
            await client.aclose()


def build_capabilities(transport: Optional[httpx.AsyncBaseTransport] = None) -> Capabilities:
    """Create clients for every capability from the configured base URLs."""
    return Capabilities(
        pages_finder=PagesFinder(settings.PAGES_FINDER_BASE_URL, transport=transport),
        screenshotter=Screenshotter(settings.SCREENSHOTTER_BASE_URL, transport=transport),
        technologies_finder=TechnologiesFinder(settings.TECHNOLOGIES_FINDER_BASE_URL, transport=transport),
        colors_extractor=ColorsExtractor(settings.COLORS_EXTRACTOR_BASE_URL, transport=transport),
    )


__all__ = [
    "Capabilities",
    "CaptureResult",
    "ColorsExtractor",
    "PagesFinder",
    "Screenshotter",
    "SectionCapture",
    "SectionsResult",
    "TechnologiesFinder",
    "build_capabilities",
]
