"""Client for the page and section screenshot service."""
import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .base import CapabilityClient
from ..core.exceptions import CapabilityError
from ..models.requests import ScreenshotOptions
from ..utils.cancellation import CancellationToken


@dataclass
class CaptureResult:
    """A full-page capture and what the browser saw while taking it."""
    data: bytes
    content_type: str
    final_url: Optional[str] = None
    http_status: Optional[int] = None
    title: Optional[str] = None


@dataclass
class SectionCapture:
    index: Optional[int]
    data: bytes
    clip: Optional[Dict[str, Any]] = None
    element: Optional[Dict[str, Any]] = None


@dataclass
class SectionsResult:
    content_type: str
    sections: List[SectionCapture] = field(default_factory=list)


def _int_header(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class Screenshotter(CapabilityClient):
    """Renders pages in a headless browser and returns image bytes."""

    name = "screenshotter"

    @staticmethod
    def _payload(url: str, options: ScreenshotOptions) -> Dict[str, Any]:
        return {
            "url": url,
            "format": options.format.value,
            "fullPage": options.full_page,
            "adblock": options.adblock,
            "waitMs": options.wait_ms,
            "timeoutMs": options.timeout_ms,
        }

    async def screenshot(
        self,
        url: str,
        options: Optional[ScreenshotOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CaptureResult:
        """
        Capture a full-page screenshot.

        The image is the raw response body; navigation details come back in
        the ``X-Final-Url``, ``X-Status-Code`` and ``X-Page-Title`` headers.
        """
        options = options or ScreenshotOptions()
        response = await self._post("/screenshot", self._payload(url, options), cancel_token)
        return CaptureResult(
            data=response.content,
            content_type=response.headers.get("content-type", f"image/{options.format.value}"),
            final_url=response.headers.get("x-final-url"),
            http_status=_int_header(response.headers.get("x-status-code")),
            title=response.headers.get("x-page-title"),
        )

    async def sections(
        self,
        url: str,
        options: Optional[ScreenshotOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SectionsResult:
        """
        Capture each visual section of a page separately.

        Returns:
            SectionsResult; sections whose image could not be produced carry
            empty ``data``

        Raises:
            CapabilityError: If the response is malformed
        """
        options = options or ScreenshotOptions()
        body = await self._post_json("/sections", self._payload(url, options), cancel_token)
        if not isinstance(body, dict):
            raise CapabilityError(self.name, f"{self.name} returned an unexpected sections payload")

        sections = []
        for item in body.get("sections") or []:
            if not isinstance(item, dict):
                continue
            try:
                data = base64.b64decode(item.get("data") or "", validate=True)
            except (binascii.Error, ValueError) as exc:
                raise CapabilityError(self.name, f"{self.name} returned undecodable section data") from exc
            index = item.get("index")
            sections.append(SectionCapture(
                index=index if isinstance(index, int) else None,
                data=data,
                clip=item.get("clip"),
                element=item.get("element"),
            ))

        return SectionsResult(
            content_type=body.get("contentType") or f"image/{options.format.value}",
            sections=sections,
        )
