from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from app.services.metadata import ChannelMetadata, MetadataFetchError, fetch_channel_metadata, parse_channel_metadata

OG_PAGE = """
<html>
  <head>
    <title>Fallback title</title>
    <meta property="og:title" content="  Daily   Recipes " />
    <meta property="og:image" content="/img/preview.jpg" />
  </head>
  <body></body>
</html>
"""


def _fetch(handler: Any, url: str) -> ChannelMetadata:
    async def run() -> ChannelMetadata:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
            return await fetch_channel_metadata(url, default_name="WhatsApp Channel", client=client)

    return asyncio.run(run())


def test_fetch_channel_metadata_reads_open_graph_tags() -> None:
    seen_headers: dict[str, str] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen_headers.update(request.headers)
        return httpx.Response(status_code=200, html=OG_PAGE, request=request)

    metadata = _fetch(handler, "https://whatsapp.com/channel/abc")

    assert metadata == ChannelMetadata(name="Daily Recipes", image="https://whatsapp.com/img/preview.jpg")
    assert seen_headers["user-agent"].startswith("channelboard-metadata-fetcher")


def test_parse_channel_metadata_falls_back_to_title_then_default() -> None:
    titled = parse_channel_metadata(
        "<html><head><title> Local News </title></head></html>",
        base_url="https://wa.me/xyz",
        default_name="WhatsApp Channel",
    )
    untitled = parse_channel_metadata("<html><body>nothing</body></html>", base_url="https://wa.me/xyz", default_name="WhatsApp Channel")

    assert titled == ChannelMetadata(name="Local News", image="")
    assert untitled == ChannelMetadata(name="WhatsApp Channel", image="")


def test_fetch_channel_metadata_rejects_error_status() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=404, request=request)

    with pytest.raises(MetadataFetchError):
        _fetch(handler, "https://wa.me/missing")


def test_fetch_channel_metadata_treats_timeout_as_failure() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(MetadataFetchError):
        _fetch(handler, "https://wa.me/slow")


def test_fetch_channel_metadata_uses_configured_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    class FakeAsyncClient:
        async def __aenter__(self) -> "FakeAsyncClient":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

        async def get(self, url: str, headers: dict[str, str]) -> httpx.Response:
            request = httpx.Request("GET", url, headers=headers)
            return httpx.Response(status_code=200, html="<title>Timed</title>", request=request)

    def fake_async_client(*args: Any, **kwargs: Any) -> FakeAsyncClient:
        captured.update(kwargs)
        return FakeAsyncClient()

    monkeypatch.setattr(httpx, "AsyncClient", fake_async_client)
    metadata = asyncio.run(
        fetch_channel_metadata("https://wa.me/xyz", default_name="WhatsApp Channel", timeout_seconds=3.5)
    )

    assert captured["timeout"] == 3.5
    assert captured["follow_redirects"] is True
    assert metadata.name == "Timed"


def test_fetch_channel_metadata_rejects_unparsable_url() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request should be sent")

    with pytest.raises(MetadataFetchError):
        _fetch(handler, "https://wa.me:abc/x")


def test_fetch_channel_metadata_drops_unparsable_image() -> None:
    page = '<html><head><meta property="og:title" content="Bad Image" /><meta property="og:image" content="http://[bad/x.jpg" /></head></html>'

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, html=page, request=request)

    metadata = _fetch(handler, "https://wa.me/xyz")

    assert metadata == ChannelMetadata(name="Bad Image", image="")
