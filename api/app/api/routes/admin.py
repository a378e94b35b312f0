from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.core.auth import Identity
from app.core.config import Settings, get_settings
from app.core.security import get_admin_session_service, get_identity
from app.schemas.admin import AdminLoginRequest, AdminResultOut, AdminSessionOut
from app.services.admin_sessions import (
    AdminLoginNotConfiguredError,
    AdminLoginRejectedError,
    AdminSessionService,
)
from app.services.repository import RepositoryStoreError, RepositoryUnavailableError

router = APIRouter()


@router.post("/login", response_model=AdminResultOut)
async def login(
    payload: AdminLoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    sessions: AdminSessionService = Depends(get_admin_session_service),
) -> AdminResultOut:
    try:
        token = await sessions.login(
            secret_a=payload.secret_a,
            secret_b=payload.secret_b,
            expected_a=settings.admin_secret_a,
            expected_b=settings.admin_secret_b,
        )
    except AdminLoginRejectedError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AdminLoginNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    response.set_cookie(
        key=settings.admin_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return AdminResultOut(success=True)


@router.post("/logout", response_model=AdminResultOut)
async def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    sessions: AdminSessionService = Depends(get_admin_session_service),
) -> AdminResultOut:
    try:
        await sessions.logout(request.cookies.get(settings.admin_cookie_name))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    response.delete_cookie(
        key=settings.admin_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return AdminResultOut(success=True)


@router.get("/session", response_model=AdminSessionOut)
async def session(identity: Identity = Depends(get_identity)) -> AdminSessionOut:
    return AdminSessionOut(trusted=identity.trusted)
