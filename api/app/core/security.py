from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status

from app.core.auth import Identity, resolve_identity, resolve_visitor_token
from app.core.config import Settings, get_settings
from app.services.admin_sessions import AdminSessionService
from app.services.repository import (
    RepositoryStoreError,
    RepositoryUnavailableError,
    get_repository,
)


def get_admin_session_service(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> AdminSessionService:
    return AdminSessionService(repository, ttl=timedelta(hours=settings.admin_session_ttl_hours))


def get_visitor_token(request: Request, settings: Settings = Depends(get_settings)) -> str:
    token = getattr(request.state, "visitor_token", None)
    if token:
        return token
    token, _ = resolve_visitor_token(request.cookies, settings.visitor_cookie_name)
    return token


async def get_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
    visitor_token: str = Depends(get_visitor_token),
    sessions: AdminSessionService = Depends(get_admin_session_service),
) -> Identity:
    try:
        trusted = await sessions.is_trusted(request.cookies.get(settings.admin_cookie_name))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return resolve_identity(visitor_token, trusted=trusted)


async def require_trusted(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.trusted:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin session required")
    return identity
