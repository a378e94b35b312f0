from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from app.core.auth import token_digest

logger = logging.getLogger(__name__)


class AdminLoginNotConfiguredError(Exception):
    """Raised when the admin secrets are missing from the settings."""


class AdminLoginRejectedError(Exception):
    """Raised when the submitted secrets do not match."""


def secrets_match(*, secret_a: str, secret_b: str, expected_a: str | None, expected_b: str | None) -> bool:
    if not expected_a or not expected_b:
        raise AdminLoginNotConfiguredError("admin login is not configured")
    # Both comparisons always run.
    first = hmac.compare_digest(secret_a.encode("utf-8"), expected_a.encode("utf-8"))
    second = hmac.compare_digest(secret_b.encode("utf-8"), expected_b.encode("utf-8"))
    return first and second


class AdminSessionService:
    def __init__(self, repository: Any, *, ttl: timedelta) -> None:
        self.repository = repository
        self.ttl = ttl

    async def login(
        self,
        *,
        secret_a: str,
        secret_b: str,
        expected_a: str | None,
        expected_b: str | None,
        now: datetime | None = None,
    ) -> str:
        if not secrets_match(secret_a=secret_a, secret_b=secret_b, expected_a=expected_a, expected_b=expected_b):
            logger.warning("admin login rejected")
            raise AdminLoginRejectedError("invalid admin secrets")

        issued_at = now or datetime.now(timezone.utc)
        token = secrets.token_urlsafe(32)
        purged = await self.repository.create_admin_session(
            token_hash=token_digest(token),
            expires_at=issued_at + self.ttl,
            now=issued_at,
        )
        logger.info("admin session issued purged_expired=%s", purged)
        return token

    async def is_trusted(self, token: str | None, *, now: datetime | None = None) -> bool:
        if not token:
            return False
        return await self.repository.is_admin_session_active(
            token_hash=token_digest(token),
            now=now or datetime.now(timezone.utc),
        )

    async def logout(self, token: str | None) -> None:
        if not token:
            return
        await self.repository.delete_admin_session(token_hash=token_digest(token))
        logger.info("admin session revoked")
