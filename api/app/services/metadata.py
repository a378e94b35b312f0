from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "channelboard-metadata-fetcher/1.0"


class MetadataFetchError(Exception):
    """Raised when the linked page cannot be fetched or parsed."""


@dataclass(slots=True, frozen=True)
class ChannelMetadata:
    name: str
    image: str


async def fetch_channel_metadata(
    url: str,
    *,
    default_name: str,
    client: httpx.AsyncClient | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ChannelMetadata:
    if client is not None:
        response = await _get_page(client=client, url=url, user_agent=user_agent)
    else:
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as temp_client:
            response = await _get_page(client=temp_client, url=url, user_agent=user_agent)

    try:
        html = response.text
    except (UnicodeDecodeError, LookupError) as exc:
        raise MetadataFetchError("page content could not be decoded") from exc

    return parse_channel_metadata(html, base_url=str(response.url), default_name=default_name)


def parse_channel_metadata(html: str, *, base_url: str, default_name: str) -> ChannelMetadata:
    """Extract a display name and preview image from Open Graph tags.

    The name falls back from ``og:title`` to ``<title>`` to ``default_name``;
    the image falls back from ``og:image`` to an empty string, which is also
    used when ``og:image`` does not parse as a URL.
    """
    soup = BeautifulSoup(html, "lxml")

    name = _meta_property(soup, "og:title")
    if not name and soup.title is not None:
        name = _collapse_whitespace(soup.title.get_text())

    image = _meta_property(soup, "og:image")
    if image:
        try:
            image = urljoin(base_url, image)
        except ValueError:
            logger.info("metadata image dropped base_url=%s image=%s", base_url, image)
            image = ""

    return ChannelMetadata(name=name or default_name, image=image or "")


async def _get_page(*, client: httpx.AsyncClient, url: str, user_agent: str) -> httpx.Response:
    try:
        response = await client.get(url, headers={"User-Agent": user_agent})
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.info("metadata fetch failed url=%s error=%s", url, type(exc).__name__)
        raise MetadataFetchError(f"could not fetch {url}") from exc

    if not response.is_success:
        logger.info("metadata fetch rejected url=%s status=%s", url, response.status_code)
        raise MetadataFetchError(f"unexpected status {response.status_code} for {url}")
    return response


def _meta_property(soup: BeautifulSoup, prop: str) -> str:
    tag = soup.find("meta", attrs={"property": prop})
    if tag is None:
        return ""
    content = tag.get("content")
    if not isinstance(content, str):
        return ""
    return _collapse_whitespace(content)


def _collapse_whitespace(value: str) -> str:
    return " ".join(value.split())
