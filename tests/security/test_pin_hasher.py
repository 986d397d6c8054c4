"""Tests for PIN hashing, validation and device identifiers."""

from __future__ import annotations

import hashlib
import json
from urllib.parse import unquote

import httpx
import pytest

from navhub.adapters.cloud_sync.client import RemoteStoreClient
from navhub.security.pin_hasher import (
    generate_device_id,
    hash_pin,
    validate_pin,
    verify_pin,
)
from navhub.sync.engine import SyncEngine
from navhub.sync.exceptions import PinValidationError
from navhub.sync.persistence import InMemoryLocalStore


def test_hash_is_sha256_hex():
    assert hash_pin("1234") == hashlib.sha256(b"1234").hexdigest()
    assert hash_pin("1234") == "03ac674216f3e15c761ee1a5e255f067953623c8b388b4459e13f978d7c846f4"


def test_hash_is_deterministic_and_distinct():
    assert hash_pin("secret-pin") == hash_pin("secret-pin")
    assert hash_pin("1234") != hash_pin("1235")
    assert len(hash_pin("ünïcødé")) == 64


def test_verify_pin():
    digest = hash_pin("4321")
    assert verify_pin("4321", digest)
    assert verify_pin("4321", digest.upper())
    assert not verify_pin("1234", digest)


@pytest.mark.parametrize("pin", ["1234", "abcd", "a-long-pin-of-20-chr"])
def test_validate_pin_accepts(pin):
    assert validate_pin(pin) == pin


@pytest.mark.parametrize(
    ("pin", "message"),
    [
        ("", "at least"),
        ("123", "at least"),
        ("x" * 21, "at most"),
        ("12<34", "invalid characters"),
        ("my'pin", "invalid characters"),
        ("ScRiPt1", "invalid characters"),
    ],
)
def test_validate_pin_rejects(pin, message):
    with pytest.raises(PinValidationError, match=message):
        validate_pin(pin)


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        validate_pin("1")


def test_device_id_shape():
    first = generate_device_id()
    assert len(first) == 32
    int(first, 16)
    assert first != generate_device_id()


@pytest.mark.asyncio
async def test_raw_pin_never_sent_over_the_wire():
    # Non-hex characters, so the PIN cannot appear inside its own digest by chance.
    raw_pin = "pin-xyz-42"
    seen: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(unquote(str(request.url)))
        seen.append(request.content.decode())
        if request.method == "GET":
            return httpx.Response(
                200, json={"bookmarks": None, "settings": None, "lastModified": None}
            )
        return httpx.Response(200, json={"success": True, "lastModified": 5})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://navhub.test"
    ) as http_client:
        store = InMemoryLocalStore()
        engine = SyncEngine(store, RemoteStoreClient("http://navhub.test", http_client=http_client))
        engine.enable_sync(raw_pin)
        await engine.pull_from_cloud()
        await engine.push_to_cloud([], {"theme": "dark"})
        await engine.sync([], {"theme": "dark"})

    assert seen
    assert all(raw_pin not in item for item in seen)
    assert any(hash_pin(raw_pin) in item for item in seen)
    posted = [json.loads(item) for item in seen if item.startswith("{")]
    assert all(body["pin"] == hash_pin(raw_pin) for body in posted)
    assert store.get_pin_digest() == hash_pin(raw_pin)
