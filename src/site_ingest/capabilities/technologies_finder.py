"""Client for the technology detection service."""
from typing import Any, Optional

from .base import CapabilityClient
from ..utils.cancellation import CancellationToken


class TechnologiesFinder(CapabilityClient):
    name = "technologies_finder"

    async def technologies(
        self,
        url: str,
        fast: Optional[bool] = None,
        recursive: Optional[bool] = None,
        max_depth: Optional[int] = None,
        max_urls: Optional[int] = None,
        timeout_ms: int = 60_000,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        """Detect technologies used by ``url``; returns the raw response body."""
        payload = {"url": url, "timeoutMs": timeout_ms}
        if fast is not None:
            payload["fast"] = fast
        if recursive is not None:
            payload["recursive"] = recursive
        if max_depth is not None:
            payload["maxDepth"] = max_depth
        if max_urls is not None:
            payload["maxUrls"] = max_urls
        return await self._post_json("/technologies", payload, cancel_token)
