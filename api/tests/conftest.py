from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.api.routes.channels import get_metadata_fetcher
from app.core.config import Settings, get_settings
from app.main import app
from app.services.metadata import ChannelMetadata, MetadataFetchError
from app.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

ADMIN_SECRET_A = "first-Secret"
ADMIN_SECRET_B = "second-Secret"


class FakeCatalogRepository:
    def __init__(self) -> None:
        self._channels: dict[str, dict[str, Any]] = {}
        self._boosts: dict[str, list[dict[str, Any]]] = {}
        self._admin_sessions: dict[str, datetime] = {}
        self._seq = 0
        self.unavailable = False

    async def create_channel(self, *, link: str, name: str, image: str, boosted_at: datetime) -> dict[str, Any]:
        if any(row["link"] == link for row in self._channels.values()):
            raise RepositoryConflictError("channel link already exists")
        self._seq += 1
        channel_id = str(uuid4())
        self._channels[channel_id] = {
            "id": channel_id,
            "seq": self._seq,
            "link": link,
            "name": name,
            "image": image,
            "boosted_at": boosted_at,
            "created_at": datetime.now(timezone.utc),
        }
        self._boosts[channel_id] = []
        return self._to_dict(channel_id)

    async def list_channels(self, *, limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        ordered = sorted(self._channels.values(), key=lambda row: row["seq"])
        ordered = sorted(ordered, key=lambda row: row["boosted_at"], reverse=True)
        rows = [self._to_dict(row["id"]) for row in ordered]
        if limit is None:
            return rows[offset:]
        return rows[offset : offset + limit]

    async def get_channel(self, channel_id: str) -> dict[str, Any]:
        if channel_id not in self._channels:
            raise RepositoryNotFoundError("channel not found")
        return self._to_dict(channel_id)

    async def find_channel_by_link(self, link: str) -> dict[str, Any] | None:
        for channel_id, row in self._channels.items():
            if row["link"] == link:
                return self._to_dict(channel_id)
        return None

    async def delete_channel(self, channel_id: str) -> None:
        if channel_id not in self._channels:
            raise RepositoryNotFoundError("channel not found")
        del self._channels[channel_id]
        del self._boosts[channel_id]

    async def find_recent_boost_by_identity(self, *, identity: str, window_start: datetime) -> dict[str, Any] | None:
        matches = [
            {"channel_id": channel_id, "boosted_at": record["boosted_at"]}
            for channel_id, records in self._boosts.items()
            for record in records
            if record["identity"] == identity and record["boosted_at"] >= window_start
        ]
        if not matches:
            return None
        return max(matches, key=lambda match: match["boosted_at"])

    async def apply_boost(self, *, channel_id: str, boosted_at: datetime, identity: str | None) -> dict[str, Any]:
        if channel_id not in self._channels:
            raise RepositoryNotFoundError("channel not found")
        self._channels[channel_id]["boosted_at"] = boosted_at
        if identity is not None:
            self._boosts[channel_id].append({"identity": identity, "boosted_at": boosted_at})
        return self._to_dict(channel_id)

    async def create_admin_session(self, *, token_hash: str, expires_at: datetime, now: datetime) -> int:
        expired = [key for key, value in self._admin_sessions.items() if value <= now]
        for key in expired:
            del self._admin_sessions[key]
        self._admin_sessions[token_hash] = expires_at
        return len(expired)

    async def is_admin_session_active(self, *, token_hash: str, now: datetime) -> bool:
        expires_at = self._admin_sessions.get(token_hash)
        return expires_at is not None and expires_at > now

    async def delete_admin_session(self, *, token_hash: str) -> None:
        self._admin_sessions.pop(token_hash, None)

    async def ping(self) -> None:
        if self.unavailable:
            raise RepositoryUnavailableError("database unavailable")

    async def close(self) -> None:
        return None

    def boost_identities(self, channel_id: str) -> list[str]:
        return [record["identity"] for record in self._boosts.get(channel_id, [])]

    def admin_session_count(self) -> int:
        return len(self._admin_sessions)

    def _to_dict(self, channel_id: str) -> dict[str, Any]:
        row = self._channels[channel_id]
        boosts = [{"boosted_at": record["boosted_at"]} for record in self._boosts[channel_id]]
        return {
            "id": row["id"],
            "link": row["link"],
            "name": row["name"],
            "image": row["image"],
            "boosted_at": row["boosted_at"],
            "created_at": row["created_at"],
            "boost_count": len(boosts),
            "boosts": boosts,
        }


class FakeMetadataFetcher:
    def __init__(self) -> None:
        self.pages: dict[str, ChannelMetadata] = {}
        self.calls: list[str] = []

    async def __call__(self, url: str) -> ChannelMetadata:
        self.calls.append(url)
        metadata = self.pages.get(url)
        if metadata is None:
            raise MetadataFetchError(f"could not fetch {url}")
        return metadata


@pytest.fixture
def fake_repository() -> FakeCatalogRepository:
    return FakeCatalogRepository()


@pytest.fixture
def fake_fetcher() -> FakeMetadataFetcher:
    return FakeMetadataFetcher()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        admin_secret_a=ADMIN_SECRET_A,
        admin_secret_b=ADMIN_SECRET_B,
        otel_enabled=False,
    )


@pytest.fixture
def api_client(
    fake_repository: FakeCatalogRepository,
    fake_fetcher: FakeMetadataFetcher,
    test_settings: Settings,
) -> TestClient:
    app.dependency_overrides[get_repository] = lambda: fake_repository
    app.dependency_overrides[get_metadata_fetcher] = lambda: fake_fetcher
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
