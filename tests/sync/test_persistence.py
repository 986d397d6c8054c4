"""Tests for the device-local stores."""

from __future__ import annotations

import json
import unittest

import pytest

from navhub.sync.persistence import (
    DEVICE_ID_KEY,
    LAST_MODIFIED_KEY,
    PIN_KEY,
    InMemoryLocalStore,
    JsonFileLocalStore,
    LocalSnapshot,
)
from tests.factories import make_bookmark


class TestInMemoryLocalStore(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryLocalStore()

    def test_defaults(self):
        assert self.store.get_pin_digest() is None
        assert self.store.get_last_modified() == 0
        assert self.store.read_snapshot() == LocalSnapshot([], {})

    def test_pin_digest_round_trip_and_clear(self):
        self.store.set_pin_digest("ab" * 32)
        assert self.store.get_pin_digest() == "ab" * 32
        self.store.set_pin_digest(None)
        assert self.store.get_pin_digest() is None

    def test_last_modified(self):
        self.store.set_last_modified(1234)
        assert self.store.get_last_modified() == 1234

    def test_invalid_last_modified_reads_as_zero(self):
        store = InMemoryLocalStore({LAST_MODIFIED_KEY: "not-a-number"})
        assert store.get_last_modified() == 0

    def test_device_id_generated_once(self):
        first = self.store.get_device_id()
        assert len(first) == 32
        assert self.store.get_device_id() == first

    def test_snapshot_is_copied(self):
        bookmarks = [make_bookmark("1", "A")]
        self.store.write_snapshot(bookmarks, {"theme": "dark"})
        bookmarks[0]["title"] = "mutated"

        snapshot = self.store.read_snapshot()
        assert snapshot.bookmarks[0]["title"] == "A"
        snapshot.settings["theme"] = "light"
        assert self.store.read_snapshot().settings == {"theme": "dark"}


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileLocalStore(path)
    store.set_pin_digest("cd" * 32)
    store.set_last_modified(99)
    store.write_snapshot([make_bookmark("1", "A")], {"theme": "dark"})
    device_id = store.get_device_id()

    reopened = JsonFileLocalStore(path)

    assert reopened.get_pin_digest() == "cd" * 32
    assert reopened.get_last_modified() == 99
    assert reopened.get_device_id() == device_id
    assert reopened.read_snapshot().bookmarks == [make_bookmark("1", "A")]

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk[PIN_KEY] == "cd" * 32
    assert on_disk[DEVICE_ID_KEY] == device_id
    assert not list(path.parent.glob(".navhub-*.tmp"))


def test_json_file_store_clears_pin(tmp_path):
    path = tmp_path / "state.json"
    store = JsonFileLocalStore(path)
    store.set_pin_digest("ef" * 32)
    store.set_pin_digest(None)
    assert PIN_KEY not in json.loads(path.read_text(encoding="utf-8"))


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_file_store_recovers_from_bad_file(tmp_path, content):
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")

    store = JsonFileLocalStore(path)

    assert store.get_pin_digest() is None
    assert store.get_last_modified() == 0
