"""Client for the page discovery service."""
from typing import Any, List, Optional

from .base import CapabilityClient
from ..utils.cancellation import CancellationToken


class PagesFinder(CapabilityClient):
    """Finds the notable pages of a site (about, pricing, contact, ...)."""

    name = "pages_finder"

    async def pages(
        self,
        url: str,
        platform_hint: Optional[str] = None,
        technologies: Optional[List[str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Discover pages for a site.

        Args:
            url: Canonical URL of the site
            platform_hint: Detected or supplied platform (e.g. 'shopify')
            technologies: Technology slugs to help the finder pick strategies
            cancel_token: Token that abandons the request when cancelled

        Returns:
            Raw response body; see ``adapters.normalize_pages_result``
        """
        payload = {
            "url": url,
            "platform": platform_hint,
            "isShopify": platform_hint == "shopify",
        }
        if technologies:
            payload["technologies"] = technologies
        return await self._post_json("/pages", payload, cancel_token)
