"""Client for the prominent color extraction service."""
from typing import Any, Optional

from .base import CapabilityClient
from ..models.requests import ColorsOptions
from ..utils.cancellation import CancellationToken


class ColorsExtractor(CapabilityClient):
    name = "colors_extractor"

    async def extract(
        self,
        url: str,
        options: Optional[ColorsOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        """Sample the rendered page and return the raw color report."""
        options = options or ColorsOptions()
        payload = {
            "url": url,
            "timeoutMs": options.timeout_ms,
            "sampleScreens": options.sample_screens,
            "adblock": options.adblock,
        }
        if options.block_images is not None:
            payload["blockImages"] = options.block_images
        return await self._post_json("/colors", payload, cancel_token)
