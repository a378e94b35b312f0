from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from app.core.config import Settings
from app.core.urls import normalize_link
from app.services.metadata import ChannelMetadata, MetadataFetchError
from app.services.repository import RepositoryConflictError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MetadataFetcher = Callable[[str], Awaitable[ChannelMetadata]]


class ChannelSubmissionError(Exception):
    """Base error for rejected channel submissions."""


class DuplicateLinkError(ChannelSubmissionError):
    """Raised when the submitted link is already in the catalog."""


class InvalidLinkError(ChannelSubmissionError):
    """Raised when the link is malformed or its page cannot be scraped."""


def initial_boosted_at(settings: Settings, now: datetime) -> datetime:
    if settings.channel_initial_rank == "now":
        return now
    return EPOCH


async def submit_channel(
    repository: Any,
    raw_link: str,
    *,
    fetch_metadata: MetadataFetcher,
    settings: Settings,
    now: datetime | None = None,
) -> dict[str, Any]:
    try:
        link = normalize_link(raw_link)
    except ValueError as exc:
        raise InvalidLinkError(str(exc)) from exc

    if await repository.find_channel_by_link(link) is not None:
        raise DuplicateLinkError("channel link already exists")

    try:
        metadata = await fetch_metadata(link)
    except MetadataFetchError as exc:
        raise InvalidLinkError("channel page could not be fetched") from exc

    created_at = now or datetime.now(timezone.utc)
    try:
        channel = await repository.create_channel(
            link=link,
            name=metadata.name,
            image=metadata.image,
            boosted_at=initial_boosted_at(settings, created_at),
        )
    except RepositoryConflictError as exc:
        raise DuplicateLinkError("channel link already exists") from exc

    logger.info("channel created id=%s link=%s", channel["id"], link)
    return channel
