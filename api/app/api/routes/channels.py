from datetime import timedelta
from functools import partial

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import Identity
from app.core.config import Settings, get_settings
from app.core.security import get_identity, require_trusted
from app.schemas.channels import BoostOut, ChannelCreateRequest, ChannelOut, MessageOut
from app.services.boosts import BoostEngine, BoostRateLimitedError, BoostTargetNotFoundError
from app.services.catalog import DuplicateLinkError, InvalidLinkError, MetadataFetcher, submit_channel
from app.services.metadata import fetch_channel_metadata
from app.services.repository import (
    RepositoryNotFoundError,
    RepositoryStoreError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


def get_metadata_fetcher(settings: Settings = Depends(get_settings)) -> MetadataFetcher:
    return partial(
        fetch_channel_metadata,
        default_name=settings.channel_default_name,
        timeout_seconds=settings.metadata_fetch_timeout_seconds,
        user_agent=settings.metadata_user_agent,
    )


def get_boost_engine(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> BoostEngine:
    return BoostEngine(repository, cooldown=timedelta(seconds=settings.boost_cooldown_seconds))


@router.post("", response_model=ChannelOut)
async def create_channel(
    payload: ChannelCreateRequest,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    fetch_metadata: MetadataFetcher = Depends(get_metadata_fetcher),
) -> ChannelOut:
    try:
        row = await submit_channel(
            repository,
            payload.link or "",
            fetch_metadata=fetch_metadata,
            settings=settings,
        )
    except DuplicateLinkError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except InvalidLinkError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"invalid channel link: {exc}") from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return ChannelOut(**row)


@router.get("", response_model=list[ChannelOut])
async def list_channels(
    repository=Depends(get_repository),
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[ChannelOut]:
    try:
        rows = await repository.list_channels(limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return [ChannelOut(**row) for row in rows]


@router.post("/{channel_id}/boost", response_model=BoostOut)
async def boost_channel(
    channel_id: str,
    identity: Identity = Depends(get_identity),
    engine: BoostEngine = Depends(get_boost_engine),
) -> BoostOut:
    try:
        outcome = await engine.boost(channel_id, identity)
    except BoostTargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BoostRateLimitedError as exc:
        headers = None
        if exc.retry_after_seconds is not None:
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc), headers=headers) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return BoostOut(
        message="channel boosted",
        channel_id=outcome.channel["id"],
        boosted_at=outcome.boosted_at,
        trusted=outcome.trusted,
    )


@router.delete("/{channel_id}", response_model=MessageOut)
async def delete_channel(
    channel_id: str,
    _: Identity = Depends(require_trusted),
    repository=Depends(get_repository),
) -> MessageOut:
    try:
        await repository.delete_channel(channel_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="channel could not be deleted") from exc

    return MessageOut(message="channel deleted")
