"""Divergence check between a local snapshot and the stored record.

The core never prompts; it hands both snapshots to the UI, which either
pushes the local copy or adopts the remote one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from navhub.adapters.cloud_sync.models import SyncRecord


def _identity_view(bookmarks: list[dict[str, Any]]) -> list[tuple[str, str, str]]:
    view = [
        (str(item.get("id", "")), str(item.get("title", "")), str(item.get("url", "")))
        for item in bookmarks
    ]
    return sorted(view, key=lambda entry: entry[0])


def snapshots_match(left: list[dict[str, Any]], right: list[dict[str, Any]]) -> bool:
    """Compare bookmark lists by id, title and url, ignoring order and styling."""
    return _identity_view(left) == _identity_view(right)


@dataclass(frozen=True)
class SyncConflict:
    local_bookmarks: list[dict[str, Any]]
    local_settings: dict[str, Any]
    remote: SyncRecord

    @property
    def local_titles(self) -> list[str]:
        return [str(item.get("title", "")) for item in self.local_bookmarks]

    @property
    def remote_titles(self) -> list[str]:
        return [str(item.get("title", "")) for item in self.remote.bookmarks or []]

    def remote_snapshot(self) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Snapshot to adopt when the user picks the cloud copy."""
        settings = self.remote.settings if self.remote.settings is not None else self.local_settings
        return list(self.remote.bookmarks or []), settings


def detect_conflict(
    local_bookmarks: list[dict[str, Any]],
    local_settings: dict[str, Any],
    remote: SyncRecord,
) -> SyncConflict | None:
    """Return a conflict when both sides hold bookmarks that differ."""
    if not remote.bookmarks or not local_bookmarks:
        return None
    if snapshots_match(local_bookmarks, remote.bookmarks):
        return None
    return SyncConflict(
        local_bookmarks=local_bookmarks, local_settings=local_settings, remote=remote
    )
