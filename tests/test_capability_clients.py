"""Tests for the extraction service HTTP clients."""

import asyncio
import base64
import json
from contextlib import aclosing

import httpx
import pytest

from site_ingest.capabilities import (
    ColorsExtractor,
    PagesFinder,
    Screenshotter,
    TechnologiesFinder,
    build_capabilities,
)
from site_ingest.core.exceptions import CapabilityError, JobCancelledError
from site_ingest.models.requests import ColorsOptions, ScreenshotFormat, ScreenshotOptions
from site_ingest.utils.cancellation import CancellationToken


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response

    @property
    def body(self):
        return json.loads(self.requests[-1].content)

    @property
    def path(self):
        return self.requests[-1].url.path


class TestPagesFinder:
    @pytest.mark.asyncio
    async def test_payload_and_response(self):
        recorder = Recorder(httpx.Response(200, json={"pages": []}))
        async with aclosing(PagesFinder("http://pages.local/", transport=httpx.MockTransport(recorder))) as client:
            result = await client.pages("https://example.com", platform_hint="shopify", technologies=["react"])

        assert result == {"pages": []}
        assert recorder.path == "/pages"
        assert recorder.body == {
            "url": "https://example.com",
            "platform": "shopify",
            "isShopify": True,
            "technologies": ["react"],
        }

    @pytest.mark.asyncio
    async def test_technologies_omitted_when_empty(self):
        recorder = Recorder(httpx.Response(200, json=[]))
        async with aclosing(PagesFinder("http://pages.local", transport=httpx.MockTransport(recorder))) as client:
            await client.pages("https://example.com", platform_hint="generic")

        assert recorder.body == {"url": "https://example.com", "platform": "generic", "isShopify": False}


class TestTechnologiesFinder:
    @pytest.mark.asyncio
    async def test_optional_flags(self):
        recorder = Recorder(httpx.Response(200, json={"technologies": []}))
        async with aclosing(TechnologiesFinder("http://tech.local", transport=httpx.MockTransport(recorder))) as client:
            await client.technologies("https://example.com", fast=True, recursive=False, max_depth=1, max_urls=3)
            full = recorder.body
            await client.technologies("https://example.com/about", timeout_ms=5000)
            bare = recorder.body

        assert full == {
            "url": "https://example.com",
            "timeoutMs": 60000,
            "fast": True,
            "recursive": False,
            "maxDepth": 1,
            "maxUrls": 3,
        }
        assert bare == {"url": "https://example.com/about", "timeoutMs": 5000}


class TestColorsExtractor:
    @pytest.mark.asyncio
    async def test_payload(self):
        recorder = Recorder(httpx.Response(200, json={"signatureColor": {"hex": "#fff"}}))
        async with aclosing(ColorsExtractor("http://colors.local", transport=httpx.MockTransport(recorder))) as client:
            result = await client.extract("https://example.com", ColorsOptions(sample_screens=2, block_images=True))

        assert result == {"signatureColor": {"hex": "#fff"}}
        assert recorder.path == "/colors"
        assert recorder.body == {
            "url": "https://example.com",
            "timeoutMs": 60000,
            "sampleScreens": 2,
            "adblock": True,
            "blockImages": True,
        }


class TestScreenshotter:
    @pytest.mark.asyncio
    async def test_screenshot_reads_headers(self):
        recorder = Recorder(httpx.Response(
            200,
            content=b"jpeg-bytes",
            headers={
                "content-type": "image/jpeg",
                "x-final-url": "https://example.com/home",
                "x-status-code": "301",
                "x-page-title": "Home",
            },
        ))
        options = ScreenshotOptions(format=ScreenshotFormat.JPEG, wait_ms=0)
        async with aclosing(Screenshotter("http://shots.local", transport=httpx.MockTransport(recorder))) as client:
            capture = await client.screenshot("https://example.com/", options)

        assert capture.data == b"jpeg-bytes"
        assert capture.content_type == "image/jpeg"
        assert capture.final_url == "https://example.com/home"
        assert capture.http_status == 301
        assert capture.title == "Home"
        assert recorder.body == {
            "url": "https://example.com/",
            "format": "jpeg",
            "fullPage": True,
            "adblock": True,
            "waitMs": 0,
            "timeoutMs": 90000,
        }

    @pytest.mark.asyncio
    async def test_screenshot_without_headers(self):
        recorder = Recorder(httpx.Response(200, content=b"png", headers={"x-status-code": "n/a"}))
        async with aclosing(Screenshotter("http://shots.local", transport=httpx.MockTransport(recorder))) as client:
            capture = await client.screenshot("https://example.com/")

        assert capture.final_url is None
        assert capture.http_status is None
        assert capture.title is None

    @pytest.mark.asyncio
    async def test_sections_decode(self):
        recorder = Recorder(httpx.Response(200, json={
            "contentType": "image/png",
            "sections": [
                {"index": 0, "data": base64.b64encode(b"first").decode(), "clip": {"y": 0}},
                {"index": "x", "data": None},
                "garbage",
                {"data": base64.b64encode(b"third").decode(), "element": {"tag": "footer"}},
            ],
        }))
        async with aclosing(Screenshotter("http://shots.local", transport=httpx.MockTransport(recorder))) as client:
            result = await client.sections("https://example.com/")

        assert recorder.path == "/sections"
        assert result.content_type == "image/png"
        assert [(s.index, s.data) for s in result.sections] == [(0, b"first"), (None, b""), (None, b"third")]
        assert result.sections[0].clip == {"y": 0}
        assert result.sections[2].element == {"tag": "footer"}

    @pytest.mark.asyncio
    async def test_sections_rejects_bad_payloads(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "a", "dict"]))
        async with aclosing(Screenshotter("http://shots.local", transport=transport)) as client:
            with pytest.raises(CapabilityError, match="unexpected sections payload"):
                await client.sections("https://example.com/")

        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"sections": [{"data": "***not base64***"}]})
        )
        async with aclosing(Screenshotter("http://shots.local", transport=transport)) as client:
            with pytest.raises(CapabilityError, match="undecodable"):
                await client.sections("https://example.com/")


class TestErrors:
    """Test failure mapping shared by every client."""

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "overloaded"}))
        async with aclosing(PagesFinder("http://pages.local", transport=transport)) as client:
            with pytest.raises(CapabilityError) as exc_info:
                await client.pages("https://example.com")

        error = exc_info.value
        assert error.message == "pages_finder returned HTTP 503: overloaded"
        assert error.status_code == 502
        assert error.details == {"capability": "pages_finder", "upstream_status": 503}

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="kaboom"))
        async with aclosing(TechnologiesFinder("http://tech.local", transport=transport)) as client:
            with pytest.raises(CapabilityError, match="technologies_finder returned HTTP 500: kaboom"):
                await client.technologies("https://example.com")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with aclosing(ColorsExtractor("http://colors.local", transport=httpx.MockTransport(refuse))) as client:
            with pytest.raises(CapabilityError, match="colors_extractor request failed: connection refused"):
                await client.extract("https://example.com")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        async with aclosing(PagesFinder("http://pages.local", transport=transport)) as client:
            with pytest.raises(CapabilityError, match="invalid JSON"):
                await client.pages("https://example.com")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_token_abandons_in_flight_request(self):
        started = asyncio.Event()

        async def hang(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, json={})

        token = CancellationToken()
        async with aclosing(PagesFinder("http://pages.local", transport=httpx.MockTransport(hang))) as client:
            call = asyncio.ensure_future(client.pages("https://example.com", cancel_token=token))
            await started.wait()
            token.cancel("shutting down")

            with pytest.raises(JobCancelledError, match="shutting down"):
                await call

    @pytest.mark.asyncio
    async def test_already_cancelled_token(self):
        recorder = Recorder(httpx.Response(200, json={}))
        token = CancellationToken()
        token.cancel()

        async with aclosing(PagesFinder("http://pages.local", transport=httpx.MockTransport(recorder))) as client:
            with pytest.raises(JobCancelledError):
                await client.pages("https://example.com", cancel_token=token)


class TestBuildCapabilities:
    @pytest.mark.asyncio
    async def test_builds_every_client(self):
        capabilities = build_capabilities(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

        assert isinstance(capabilities.pages_finder, PagesFinder)
        assert isinstance(capabilities.screenshotter, Screenshotter)
        assert isinstance(capabilities.technologies_finder, TechnologiesFinder)
        assert isinstance(capabilities.colors_extractor, ColorsExtractor)

        await capabilities.aclose()
