"""Device-local persistence for snapshots and sync bookkeeping.

The sync engine only reads and writes the PIN digest and the last-modified
marker; snapshot storage is for the UI layer that wraps the engine.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from navhub.security.pin_hasher import generate_device_id

logger = logging.getLogger(__name__)

PIN_KEY = "navhub_sync_pin"
LAST_MODIFIED_KEY = "navhub_last_modified"
DEVICE_ID_KEY = "navhub_device_id"
BOOKMARKS_KEY = "navhub_bookmarks"
SETTINGS_KEY = "navhub_settings"


@dataclass(frozen=True)
class LocalSnapshot:
    bookmarks: list[dict[str, Any]] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)


class LocalStore(Protocol):
    def read_snapshot(self) -> LocalSnapshot: ...

    def write_snapshot(self, bookmarks: list[dict[str, Any]], settings: dict[str, Any]) -> None: ...

    def get_pin_digest(self) -> str | None: ...

    def set_pin_digest(self, digest: str | None) -> None: ...

    def get_last_modified(self) -> int: ...

    def set_last_modified(self, value: int) -> None: ...

    def get_device_id(self) -> str: ...


class InMemoryLocalStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def _get(self, key: str) -> Any:
        return self._data.get(key)

    def _set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def read_snapshot(self) -> LocalSnapshot:
        return LocalSnapshot(
            bookmarks=copy.deepcopy(self._get(BOOKMARKS_KEY) or []),
            settings=copy.deepcopy(self._get(SETTINGS_KEY) or {}),
        )

    def write_snapshot(self, bookmarks: list[dict[str, Any]], settings: dict[str, Any]) -> None:
        self._set(BOOKMARKS_KEY, copy.deepcopy(bookmarks))
        self._set(SETTINGS_KEY, copy.deepcopy(settings))

    def get_pin_digest(self) -> str | None:
        return self._get(PIN_KEY)

    def set_pin_digest(self, digest: str | None) -> None:
        self._set(PIN_KEY, digest)

    def get_last_modified(self) -> int:
        raw = self._get(LAST_MODIFIED_KEY)
        try:
            return int(raw or 0)
        except (TypeError, ValueError):
            logger.warning("local_last_modified_invalid", extra={"value": repr(raw)})
            return 0

    def set_last_modified(self, value: int) -> None:
        self._set(LAST_MODIFIED_KEY, int(value))

    def get_device_id(self) -> str:
        device_id = self._get(DEVICE_ID_KEY)
        if not device_id:
            device_id = generate_device_id()
            self._set(DEVICE_ID_KEY, device_id)
            logger.info("device_id_generated")
        return device_id


class JsonFileLocalStore(InMemoryLocalStore):
    """Store persisted as a single JSON object on disk.

    Every mutation rewrites the file through a temp file and ``os.replace``.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()
        super().__init__(self._load())

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.warning("local_state_unreadable", exc_info=True, extra={"path": str(self.path)})
            return {}
        if not isinstance(data, dict):
            logger.warning("local_state_not_an_object", extra={"path": str(self.path)})
            return {}
        return data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".navhub-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _set(self, key: str, value: Any) -> None:
        super()._set(key, value)
        self._flush()

    def write_snapshot(self, bookmarks: list[dict[str, Any]], settings: dict[str, Any]) -> None:
        self._data[BOOKMARKS_KEY] = copy.deepcopy(bookmarks)
        self._data[SETTINGS_KEY] = copy.deepcopy(settings)
        self._flush()
