"""Pytest configuration and shared fixtures.

This module provides common fixtures for all tests: a controllable clock, an
in-process storage service, and a scriptable fake server for the client side.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio

from navhub.adapters.cloud_sync.client import RemoteStoreClient
from navhub.api.main import create_app
from navhub.config import (
    AppConfig,
    RedisConfig,
    RuntimeConfig,
    SyncClientConfig,
    SyncServerConfig,
)
from navhub.infrastructure.record_store import SyncRecordStore
from navhub.security.rate_limiter import RateLimitConfig, SlidingWindowRateLimiter
from navhub.sync.engine import SyncEngine
from navhub.sync.persistence import InMemoryLocalStore
from tests.factories import BASE_URL


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSyncServer:
    """Scriptable stand-in for the storage service behind ``httpx.MockTransport``.

    Records every request, serves ``record`` on GET, stores on POST, and can
    be told to fail or to block until ``gate`` is set.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.record: dict[str, Any] = {"bookmarks": None, "settings": None, "lastModified": None}
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None
        self.fail_method: str | None = None
        self.gate: asyncio.Event | None = None

    @property
    def writes(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    @property
    def reads(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_status is not None and self.fail_method in (None, request.method):
            return httpx.Response(self.fail_status, json={"error": "Internal server error"})

        if request.method == "GET":
            return httpx.Response(200, json=self.record)

        body = json.loads(request.content)
        last_modified = max(self.clock(), self.record["lastModified"] or 0)
        if body.get("bookmarks") is not None:
            self.record["bookmarks"] = body["bookmarks"]
        if body.get("settings") is not None:
            self.record["settings"] = body["settings"]
        self.record["lastModified"] = last_modified
        return httpx.Response(200, json={"success": True, "lastModified": last_modified})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        runtime=RuntimeConfig(),
        sync_client=SyncClientConfig(base_url=BASE_URL),
        sync_server=SyncServerConfig(),
        redis=RedisConfig(enabled=False),
    )


@pytest.fixture
def record_store(clock: FakeClock) -> SyncRecordStore:
    return SyncRecordStore(None, clock=clock)


@pytest.fixture
def api_app(app_config: AppConfig, record_store: SyncRecordStore, clock: FakeClock):
    return create_app(app_config, record_store=record_store, clock=clock)


@pytest_asyncio.fixture
async def api_client(api_app):
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def fake_server(clock: FakeClock) -> FakeSyncServer:
    return FakeSyncServer(clock)


@pytest_asyncio.fixture
async def fake_http(fake_server: FakeSyncServer):
    transport = httpx.MockTransport(fake_server.handler)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest.fixture
def make_engine(clock: FakeClock):
    """Factory for engines sharing the test clock; pending pushes are cancelled on teardown."""
    created: list[SyncEngine] = []

    def _make(
        http_client: httpx.AsyncClient,
        store: InMemoryLocalStore | None = None,
        *,
        max_requests: int = 10,
        window_ms: int = 60_000,
    ) -> SyncEngine:
        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(max_requests=max_requests, window_ms=window_ms), clock=clock
        )
        engine = SyncEngine(
            store if store is not None else InMemoryLocalStore(),
            RemoteStoreClient(BASE_URL, http_client=http_client),
            limiter,
            clock=clock,
        )
        created.append(engine)
        return engine

    yield _make

    for engine in created:
        engine.cancel_pending_push()
