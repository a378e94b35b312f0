"""Boost ranking and abuse control.

A boost moves a channel to the front of the catalog by setting its
``boosted_at`` to the current time. Anonymous visitors may boost once per
cooldown window across the whole catalog; trusted (admin) callers bypass the
cooldown and leave no entry in the boost history.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from app.core.auth import Identity
from app.services.repository import RepositoryNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(minutes=15)


class BoostState(str, Enum):
    RESOLVING_IDENTITY = "resolving_identity"
    CHECKING_TARGET_EXISTS = "checking_target_exists"
    CHECKING_RATE_LIMIT = "checking_rate_limit"
    MUTATING = "mutating"
    DONE = "done"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"


class BoostError(Exception):
    """Base boost error."""


class BoostTargetNotFoundError(BoostError):
    """Raised when the channel to boost does not exist."""


class BoostRateLimitedError(BoostError):
    """Raised when an untrusted identity boosted within the cooldown window."""

    def __init__(self, message: str, *, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


@dataclass(slots=True)
class BoostOutcome:
    channel: dict[str, Any]
    boosted_at: datetime
    trusted: bool
    recorded: bool


class BoostRateLimiter:
    def __init__(self, repository: Any, *, cooldown: timedelta = DEFAULT_COOLDOWN) -> None:
        self.repository = repository
        self.cooldown = cooldown

    async def check_allowed(self, identity: Identity, now: datetime) -> None:
        if identity.trusted:
            return
        if identity.subject is None:
            raise ValueError("anonymous identity requires a subject")

        recent = await self.repository.find_recent_boost_by_identity(
            identity=identity.subject,
            window_start=now - self.cooldown,
        )
        if recent is None:
            return

        raise BoostRateLimitedError(
            f"boosting is allowed once every {_format_cooldown(self.cooldown)}",
            retry_after_seconds=self._retry_after_seconds(recent.get("boosted_at"), now),
        )

    def _retry_after_seconds(self, last_boosted_at: datetime | None, now: datetime) -> int | None:
        if last_boosted_at is None:
            return None
        remaining = (last_boosted_at + self.cooldown - now).total_seconds()
        return max(1, math.ceil(remaining))


class BoostEngine:
    def __init__(self, repository: Any, *, cooldown: timedelta = DEFAULT_COOLDOWN) -> None:
        self.repository = repository
        self.rate_limiter = BoostRateLimiter(repository, cooldown=cooldown)

    async def boost(self, channel_id: str, identity: Identity, *, now: datetime | None = None) -> BoostOutcome:
        boosted_at = now or datetime.now(timezone.utc)
        self._trace(channel_id, BoostState.RESOLVING_IDENTITY)

        self._trace(channel_id, BoostState.CHECKING_TARGET_EXISTS)
        try:
            await self.repository.get_channel(channel_id)
        except RepositoryNotFoundError as exc:
            self._trace(channel_id, BoostState.NOT_FOUND)
            raise BoostTargetNotFoundError("channel not found") from exc

        if not identity.trusted:
            self._trace(channel_id, BoostState.CHECKING_RATE_LIMIT)
            try:
                await self.rate_limiter.check_allowed(identity, boosted_at)
            except BoostRateLimitedError:
                self._trace(channel_id, BoostState.RATE_LIMITED)
                raise

        self._trace(channel_id, BoostState.MUTATING)
        try:
            channel = await self.repository.apply_boost(
                channel_id=channel_id,
                boosted_at=boosted_at,
                identity=None if identity.trusted else identity.subject,
            )
        except RepositoryNotFoundError as exc:
            # Deleted between the existence check and the update.
            self._trace(channel_id, BoostState.NOT_FOUND)
            raise BoostTargetNotFoundError("channel not found") from exc

        self._trace(channel_id, BoostState.DONE)
        logger.info("channel boosted id=%s trusted=%s", channel_id, identity.trusted)
        return BoostOutcome(
            channel=channel,
            boosted_at=boosted_at,
            trusted=identity.trusted,
            recorded=not identity.trusted,
        )

    @staticmethod
    def _trace(channel_id: str, state: BoostState) -> None:
        logger.debug("boost state channel_id=%s state=%s", channel_id, state.value)


def _format_cooldown(cooldown: timedelta) -> str:
    seconds = int(cooldown.total_seconds())
    if seconds % 60 == 0:
        return f"{seconds // 60} minutes"
    return f"{seconds} seconds"
