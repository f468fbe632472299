"""
Shared HTTP plumbing for the remote extraction services.
"""
from typing import Any, Dict, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import CapabilityError
from ..core.logging import logger
from ..utils.cancellation import CancellationToken


def _error_text(response: httpx.Response) -> str:
    """Pull a short human-readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return response.text[:200] or response.reason_phrase


class CapabilityClient:
    """
    Base client for one extraction service.

    Wraps a single ``httpx.AsyncClient`` bound to the service's base URL. All
    failures surface as ``CapabilityError`` tagged with the capability name,
    and every call can be abandoned through a ``CancellationToken``.
    """

    name = "capability"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.CAPABILITY_HTTP_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """
        POST ``payload`` as JSON and return the successful response.

        Raises:
            CapabilityError: On transport failure or a non-2xx status
            JobCancelledError: If ``cancel_token`` fires before the response
        """
        async def send() -> httpx.Response:
            try:
                response = await self._client.post(path, json=payload)
            except httpx.HTTPError as exc:
                raise CapabilityError(self.name, f"{self.name} request failed: {exc}") from exc

            if response.is_error:
                raise CapabilityError(
                    self.name,
                    f"{self.name} returned HTTP {response.status_code}: {_error_text(response)}",
                    status=response.status_code,
                )
            return response

        logger.debug(f"{self.name} POST {self.base_url}{path} url={payload.get('url')}")
        if cancel_token is None:
            return await send()
        return await cancel_token.guard(send())

    async def _post_json(
        self,
        path: str,
        payload: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        response = await self._post(path, payload, cancel_token)
        try:
            return response.json()
        except ValueError as exc:
            raise CapabilityError(self.name, f"{self.name} returned invalid JSON") from exc
