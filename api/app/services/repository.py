from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from app.core.config import get_settings
from app.services.schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a write violates a uniqueness constraint."""


class RepositoryStoreError(RepositoryError):
    """Raised when the database rejects an otherwise valid operation."""


CHANNEL_SELECT = """
    select
      c.id::text as id,
      c.link,
      c.name,
      c.image,
      c.boosted_at,
      c.created_at,
      coalesce(b.boosts, '[]'::json) as boosts
    from channels c
    left join lateral (
      select json_agg(json_build_object('boosted_at', cb.boosted_at) order by cb.boosted_at, cb.id) as boosts
      from channel_boosts cb
      where cb.channel_id = c.id
    ) b on true
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        with _store_errors():
            await pool.fetchval("select 1")

    async def ensure_schema(self) -> None:
        pool = await self._get_pool()
        with _store_errors():
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for statement in SCHEMA_STATEMENTS:
                        await conn.execute(statement)
        logger.info("channel catalog schema ensured statements=%s", len(SCHEMA_STATEMENTS))

    async def create_channel(
        self,
        *,
        link: str,
        name: str,
        image: str,
        boosted_at: datetime,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with _store_errors():
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        row = await conn.fetchrow(
                            """
                            insert into channels (link, name, image, boosted_at)
                            values ($1, $2, $3, $4)
                            returning id::text as id
                            """,
                            link,
                            name,
                            image,
                            boosted_at,
                        )
                        channel_row = await self._fetch_channel_row(conn=conn, channel_id=row["id"])
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("channel link already exists") from exc
        return self._channel_row_to_dict(channel_row)

    async def list_channels(self, *, limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        with _store_errors():
            rows = await pool.fetch(
                CHANNEL_SELECT
                + """
                order by c.boosted_at desc, c.seq asc
                limit $1 offset $2
                """,
                limit,
                offset,
            )
        return [self._channel_row_to_dict(row) for row in rows]

    async def get_channel(self, channel_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with _store_errors():
                row = await self._fetch_channel_row(conn=pool, channel_id=channel_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("channel not found") from exc
        if not row:
            raise RepositoryNotFoundError("channel not found")
        return self._channel_row_to_dict(row)

    async def find_channel_by_link(self, link: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        with _store_errors():
            row = await pool.fetchrow(CHANNEL_SELECT + " where c.link = $1", link)
        if not row:
            return None
        return self._channel_row_to_dict(row)

    async def delete_channel(self, channel_id: str) -> None:
        pool = await self._get_pool()
        try:
            with _store_errors():
                deleted_id = await pool.fetchval(
                    "delete from channels where id = $1::uuid returning id::text",
                    channel_id,
                )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("channel not found") from exc
        if deleted_id is None:
            raise RepositoryNotFoundError("channel not found")

    async def find_recent_boost_by_identity(
        self,
        *,
        identity: str,
        window_start: datetime,
    ) -> dict[str, Any] | None:
        pool = await self._get_pool()
        with _store_errors():
            row = await pool.fetchrow(
                """
                select channel_id::text as channel_id, boosted_at
                from channel_boosts
                where identity = $1
                  and boosted_at >= $2
                order by boosted_at desc
                limit 1
                """,
                identity,
                window_start,
            )
        if not row:
            return None
        return {"channel_id": row["channel_id"], "boosted_at": row["boosted_at"]}

    async def apply_boost(
        self,
        *,
        channel_id: str,
        boosted_at: datetime,
        identity: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with _store_errors():
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        updated_id = await conn.fetchval(
                            """
                            update channels
                            set boosted_at = $2
                            where id = $1::uuid
                            returning id::text
                            """,
                            channel_id,
                            boosted_at,
                        )
                        if updated_id is None:
                            raise RepositoryNotFoundError("channel not found")
                        if identity is not None:
                            await conn.execute(
                                """
                                insert into channel_boosts (channel_id, identity, boosted_at)
                                values ($1::uuid, $2, $3)
                                """,
                                updated_id,
                                identity,
                                boosted_at,
                            )
                        row = await self._fetch_channel_row(conn=conn, channel_id=updated_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("channel not found") from exc
        return self._channel_row_to_dict(row)

    async def create_admin_session(self, *, token_hash: str, expires_at: datetime, now: datetime) -> int:
        """Store a new session and purge every session expired as of ``now``.

        Returns the number of purged rows.
        """
        pool = await self._get_pool()
        with _store_errors():
            async with pool.acquire() as conn:
                async with conn.transaction():
                    purged = await conn.fetchval(
                        """
                        with purged as (
                          delete from admin_sessions where expires_at <= $1 returning 1
                        )
                        select count(*) from purged
                        """,
                        now,
                    )
                    await conn.execute(
                        "insert into admin_sessions (token_hash, expires_at) values ($1, $2)",
                        token_hash,
                        expires_at,
                    )
        return int(purged or 0)

    async def is_admin_session_active(self, *, token_hash: str, now: datetime) -> bool:
        pool = await self._get_pool()
        with _store_errors():
            found = await pool.fetchval(
                "select true from admin_sessions where token_hash = $1 and expires_at > $2",
                token_hash,
                now,
            )
        return bool(found)

    async def delete_admin_session(self, *, token_hash: str) -> None:
        pool = await self._get_pool()
        with _store_errors():
            await pool.execute("delete from admin_sessions where token_hash = $1", token_hash)

    async def _fetch_channel_row(self, *, conn: Any, channel_id: str) -> asyncpg.Record | None:
        return await conn.fetchrow(CHANNEL_SELECT + " where c.id = $1::uuid", channel_id)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("CB_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    def _channel_row_to_dict(self, row: asyncpg.Record) -> dict[str, Any]:
        boosts = [
            {"boosted_at": boosted_at}
            for item in self._coerce_json_list(row["boosts"])
            if (boosted_at := self._coerce_datetime(item.get("boosted_at"))) is not None
        ]
        return {
            "id": row["id"],
            "link": row["link"],
            "name": row["name"],
            "image": row["image"] or "",
            "boosted_at": row["boosted_at"],
            "created_at": row["created_at"],
            "boost_count": len(boosts),
            "boosts": boosts,
        }

    @staticmethod
    def _coerce_datetime(value: Any) -> datetime | None:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            candidate = value.strip()
            if not candidate:
                return None
            try:
                return datetime.fromisoformat(candidate.replace("Z", "+00:00"))
            except ValueError:
                return None
        return None

    @staticmethod
    def _coerce_json_list(value: Any) -> list[dict[str, Any]]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return []
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


@contextmanager
def _store_errors() -> Iterator[None]:
    # Constraint and input-format errors are re-raised untouched so callers can map them.
    try:
        yield
    except (
        pg_exc.UniqueViolationError,
        pg_exc.InvalidTextRepresentationError,
        asyncpg.DataError,
    ):
        raise
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.exception("channel catalog store failure")
        raise RepositoryStoreError("store failure") from exc


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
