"""Sync engine: reconciles the local snapshot with the stored record.

The engine owns ``SyncStatus`` and is the only thing that mutates it. It is
an explicitly constructed service object: tests build as many as they like,
each with its own store, client, rate limiter and clock.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Literal

from navhub.adapters.cloud_sync.client import RemoteStoreClient
from navhub.core.logging_utils import generate_correlation_id, redact_digest
from navhub.core.time_utils import ms_to_iso, now_ms
from navhub.security.pin_hasher import hash_pin, validate_pin
from navhub.security.rate_limiter import RateLimitConfig, SlidingWindowRateLimiter
from navhub.sync.exceptions import (
    RateLimitExceededError,
    SyncError,
    SyncInProgressError,
    SyncNotEnabledError,
)
from navhub.sync.persistence import JsonFileLocalStore
from navhub.sync.status import StatusBroadcaster, StatusListener, SyncStatus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from typing import Self

    import httpx

    from navhub.adapters.cloud_sync.models import SyncRecord
    from navhub.config import SyncClientConfig
    from navhub.core.time_utils import Clock
    from navhub.sync.persistence import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1_000


@dataclass(frozen=True)
class SyncResult:
    """Reconciled snapshot returned by ``SyncEngine.sync``."""

    bookmarks: list[dict[str, Any]]
    settings: dict[str, Any]
    source: Literal["local", "remote"] = "local"


def _describe(exc: BaseException) -> str:
    if isinstance(exc, SyncError):
        return exc.message
    return str(exc) or "Sync failed"


class SyncEngine:
    """Enable/disable/pull/push/sync contract over one remote record."""

    def __init__(
        self,
        store: LocalStore,
        client: RemoteStoreClient,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        *,
        clock: Clock = now_ms,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        owns_client: bool = False,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter(clock=clock)
        self._debounce_ms = debounce_ms
        self._owns_client = owns_client

        self._pin_digest = store.get_pin_digest()
        self._device_id = store.get_device_id()
        self._status = SyncStatus(enabled=self._pin_digest is not None)
        self._broadcaster = StatusBroadcaster()
        self._in_flight: str | None = None
        self._pending_push: asyncio.Task[None] | None = None
        self._debounced_write: asyncio.Task[None] | None = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.dispose()

    @property
    def status(self) -> SyncStatus:
        return self._status

    def get_status(self) -> SyncStatus:
        return self._status

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    @property
    def has_pending_push(self) -> bool:
        return any(
            task is not None and not task.done()
            for task in (self._pending_push, self._debounced_write)
        )

    def on_status_change(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to status transitions; returns an unsubscribe callable."""
        return self._broadcaster.subscribe(listener)

    def _update(self, **changes: Any) -> None:
        self._status = replace(self._status, **changes)
        self._broadcaster.publish(self._status)

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable_sync(self, pin: str) -> None:
        """Validate and store the PIN digest. Performs no network call.

        Raises:
            PinValidationError: If the PIN is malformed.
        """
        validate_pin(pin)
        digest = hash_pin(pin)
        # An edit queued under the previous PIN must not land on the new record.
        self.cancel_pending_push()
        self._store.set_pin_digest(digest)
        self._pin_digest = digest
        self._update(enabled=True, error=None)
        logger.info(
            "sync_enabled", extra={"pin": redact_digest(digest), "device_id": self._device_id}
        )

    def disable_sync(self) -> None:
        """Forget the PIN digest locally; stored data on the server is untouched."""
        self.cancel_pending_push()
        self._store.set_pin_digest(None)
        self._pin_digest = None
        self._update(enabled=False, error=None)
        logger.info("sync_disabled", extra={"device_id": self._device_id})

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_enabled(self) -> str:
        if not self._status.enabled or self._pin_digest is None:
            raise SyncNotEnabledError()
        return self._pin_digest

    def _acquire_request_slot(self, operation: str) -> None:
        if self._rate_limiter.can_make_request():
            return
        exc = RateLimitExceededError(
            remaining=self._rate_limiter.get_remaining_requests(),
            retry_after_ms=self._rate_limiter.get_next_available_time(),
        )
        logger.warning(
            "sync_rate_limited",
            extra={"operation": operation, "retry_after_ms": exc.retry_after_ms},
        )
        self._update(error=exc.message)
        raise exc

    @asynccontextmanager
    async def _exclusive(self, operation: str) -> AsyncIterator[None]:
        if self._in_flight is not None:
            logger.info(
                "sync_operation_rejected_in_flight",
                extra={"operation": operation, "in_flight": self._in_flight},
            )
            raise SyncInProgressError(operation)
        self._in_flight = operation
        try:
            yield
        finally:
            self._in_flight = None

    # ------------------------------------------------------------------
    # Network primitives
    # ------------------------------------------------------------------

    async def _pull(self, digest: str, correlation_id: str) -> SyncRecord:
        self._acquire_request_slot("pull")
        self._update(syncing=True, error=None)

        record: SyncRecord | None = None
        error: str | None = None
        try:
            fetched = await self._client.fetch_snapshot(digest)
            if fetched.last_modified is not None:
                self._store.set_last_modified(fetched.last_modified)
            record = fetched
        except Exception as exc:
            error = _describe(exc)
            logger.warning(
                "sync_pull_failed",
                extra={"correlation_id": correlation_id, "error": error},
            )
            raise
        finally:
            if record is not None:
                self._update(syncing=False, last_sync_time=self._clock())
            else:
                self._update(syncing=False, error=error or "Sync cancelled")

        logger.info(
            "sync_pull_complete",
            extra={
                "correlation_id": correlation_id,
                "empty": record.is_empty,
                "remote_last_modified": ms_to_iso(record.last_modified),
            },
        )
        return record

    async def _push(
        self,
        digest: str,
        bookmarks: list[dict[str, Any]] | None,
        settings: dict[str, Any] | None,
        correlation_id: str,
    ) -> int:
        self._acquire_request_slot("push")
        self._update(syncing=True, error=None)

        last_modified: int | None = None
        error: str | None = None
        try:
            result = await self._client.write_snapshot(digest, bookmarks, settings)
            self._store.set_last_modified(result.last_modified)
            last_modified = result.last_modified
        except Exception as exc:
            error = _describe(exc)
            logger.warning(
                "sync_push_failed",
                extra={"correlation_id": correlation_id, "error": error},
            )
            raise
        finally:
            if last_modified is not None:
                self._update(syncing=False, last_sync_time=last_modified)
            else:
                self._update(syncing=False, error=error or "Sync cancelled")

        logger.info(
            "sync_push_complete",
            extra={
                "correlation_id": correlation_id,
                "bookmarks": len(bookmarks or []),
                "last_modified": ms_to_iso(last_modified),
            },
        )
        return last_modified

    async def pull_from_cloud(self) -> SyncRecord:
        """Fetch the stored record.

        Raises:
            SyncNotEnabledError: If sync is disabled.
            SyncInProgressError: If another operation is in flight.
            RateLimitExceededError: If the request window is exhausted.
            RemoteStoreError: On transport or server failure.
        """
        digest = self._require_enabled()
        async with self._exclusive("pull"):
            return await self._pull(digest, generate_correlation_id())

    async def push_to_cloud(
        self, bookmarks: list[dict[str, Any]] | None, settings: dict[str, Any] | None
    ) -> int:
        """Overwrite the stored record with the given snapshot.

        Also the "keep my local copy" resolution for a conflict. Returns the
        server-assigned ``lastModified``.
        """
        digest = self._require_enabled()
        async with self._exclusive("push"):
            return await self._push(digest, bookmarks, settings, generate_correlation_id())

    # ------------------------------------------------------------------
    # Two-way reconciliation
    # ------------------------------------------------------------------

    async def sync(
        self,
        local_bookmarks: list[dict[str, Any]],
        local_settings: dict[str, Any],
        is_first_sync: bool = False,
    ) -> SyncResult:
        """Best-effort two-way sync; never raises.

        Whole-snapshot last-writer-wins: whichever side has the newer
        timestamp replaces the other entirely. Concurrent edits made on two
        devices between sync cycles are not merged.
        """
        local = SyncResult(bookmarks=local_bookmarks, settings=local_settings, source="local")
        if not self._status.enabled or self._pin_digest is None:
            logger.debug("sync_skipped_disabled")
            return local

        digest = self._pin_digest
        correlation_id = generate_correlation_id()
        try:
            async with self._exclusive("sync"):
                # Read the marker before pulling: a successful pull advances it.
                local_marker = self._store.get_last_modified()
                try:
                    remote = await self._pull(digest, correlation_id)
                except Exception as exc:
                    logger.warning(
                        "sync_fallback_to_local",
                        extra={"correlation_id": correlation_id, "error": _describe(exc)},
                    )
                    return local

                if remote.is_empty:
                    logger.info("sync_bootstrap_remote", extra={"correlation_id": correlation_id})
                    await self._push_best_effort(digest, local, correlation_id)
                    return local

                if is_first_sync and remote.bookmarks:
                    logger.info("sync_first_sync_adopt_remote", extra={"correlation_id": correlation_id})
                    return self._adopt(remote, local)

                remote_marker = remote.last_modified or 0
                if remote_marker > local_marker:
                    logger.info(
                        "sync_adopt_remote",
                        extra={
                            "correlation_id": correlation_id,
                            "local_marker": local_marker,
                            "remote_marker": remote_marker,
                        },
                    )
                    return self._adopt(remote, local)

                logger.info(
                    "sync_keep_local",
                    extra={
                        "correlation_id": correlation_id,
                        "local_marker": local_marker,
                        "remote_marker": remote_marker,
                    },
                )
                await self._push_best_effort(digest, local, correlation_id)
                return local
        except SyncInProgressError:
            return local

    @staticmethod
    def _adopt(remote: SyncRecord, local: SyncResult) -> SyncResult:
        return SyncResult(
            bookmarks=remote.bookmarks if remote.bookmarks is not None else local.bookmarks,
            settings=remote.settings if remote.settings is not None else local.settings,
            source="remote",
        )

    async def _push_best_effort(self, digest: str, local: SyncResult, correlation_id: str) -> None:
        try:
            await self._push(digest, local.bookmarks, local.settings, correlation_id)
        except Exception as exc:
            logger.warning(
                "sync_push_fallback",
                extra={"correlation_id": correlation_id, "error": _describe(exc)},
            )

    # ------------------------------------------------------------------
    # Debounced writes
    # ------------------------------------------------------------------

    def debounced_push(
        self,
        bookmarks: list[dict[str, Any]],
        settings: dict[str, Any],
        delay_ms: int | None = None,
    ) -> None:
        """Coalesce a burst of local edits into one write of the latest snapshot.

        Must be called from within a running event loop. Never raises on
        network failure; errors are logged.
        """
        delay = self._debounce_ms if delay_ms is None else delay_ms
        self.cancel_pending_push()
        self._pending_push = asyncio.create_task(
            self._run_debounced_push(bookmarks, settings, delay),
            name="navhub-debounced-push",
        )

    async def _run_debounced_push(
        self, bookmarks: list[dict[str, Any]], settings: dict[str, Any], delay_ms: int
    ) -> None:
        await asyncio.sleep(delay_ms / 1000)
        current = asyncio.current_task()
        # The timer has fired: from here on this task is a write, not a cancellable timer.
        if self._pending_push is current:
            self._pending_push = None

        if self._in_flight is not None:
            # Another operation owns the engine; try again after another quiet period.
            self.debounced_push(bookmarks, settings, delay_ms)
            return

        self._debounced_write = current
        try:
            await self.push_to_cloud(bookmarks, settings)
        except SyncError as exc:
            logger.warning("sync_debounced_push_failed", extra={"error": _describe(exc)})
        except Exception:
            logger.exception("sync_debounced_push_crashed")
        finally:
            if self._debounced_write is current:
                self._debounced_write = None

    def cancel_pending_push(self) -> None:
        """Cancel the debounce timer. A write already on the wire is left to finish."""
        if self._pending_push is not None and not self._pending_push.done():
            self._pending_push.cancel()
        self._pending_push = None

    async def flush_pending_push(self) -> None:
        """Wait until no debounced push is pending or being written (including re-armed ones)."""
        while True:
            pending = {
                task
                for task in (self._pending_push, self._debounced_write)
                if task is not None and not task.done()
            }
            if not pending:
                return
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def dispose(self) -> None:
        self.cancel_pending_push()
        if self._debounced_write is not None and not self._debounced_write.done():
            self._debounced_write.cancel()
        self._debounced_write = None
        self._broadcaster.clear()
        if self._owns_client:
            await self._client.aclose()


def create_sync_engine(
    config: SyncClientConfig,
    store: LocalStore | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = now_ms,
) -> SyncEngine:
    """Build an engine from configuration with its own client and rate limiter."""
    client = RemoteStoreClient(config.base_url, config.timeout_sec, http_client=http_client)
    limiter = SlidingWindowRateLimiter(
        RateLimitConfig(max_requests=config.rate_limit_max, window_ms=config.rate_limit_window_ms),
        clock=clock,
        name="sync",
    )
    return SyncEngine(
        store if store is not None else JsonFileLocalStore(config.local_state_path),
        client,
        limiter,
        clock=clock,
        debounce_ms=config.debounce_ms,
        owns_client=True,
    )
