"""Configuration loading from the environment."""

from __future__ import annotations

import pytest

from navhub.config import RedisConfig, SyncClientConfig, SyncServerConfig, load_config

_ENV_VARS = (
    "NAVHUB_SYNC_BASE_URL",
    "NAVHUB_SYNC_TIMEOUT_SEC",
    "NAVHUB_SYNC_RATE_LIMIT_MAX",
    "NAVHUB_SYNC_RATE_LIMIT_WINDOW_MS",
    "NAVHUB_SYNC_DEBOUNCE_MS",
    "NAVHUB_LOCAL_STATE_PATH",
    "NAVHUB_PIN_MIN_LENGTH",
    "NAVHUB_MAX_PAYLOAD_KB",
    "ALLOWED_ORIGINS",
    "REDIS_ENABLED",
    "REDIS_PREFIX",
    "REDIS_PORT",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)


def test_defaults():
    cfg = load_config()

    assert cfg.sync_client.base_url == "http://localhost:8000"
    assert cfg.sync_client.timeout_sec == 10.0
    assert cfg.sync_client.rate_limit_max == 10
    assert cfg.sync_client.rate_limit_window_ms == 60_000
    assert cfg.sync_client.debounce_ms == 1_000
    assert cfg.sync_server.pin_min_length == 4
    assert cfg.sync_server.allowed_origins == ()
    assert cfg.redis.enabled is False
    assert cfg.redis.prefix == "navhub"
    assert cfg.runtime.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NAVHUB_SYNC_BASE_URL", "https://start.example.com/")
    monkeypatch.setenv("NAVHUB_SYNC_RATE_LIMIT_MAX", "2")
    monkeypatch.setenv("NAVHUB_SYNC_RATE_LIMIT_WINDOW_MS", "1000")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example/ ,ftp://bad")
    monkeypatch.setenv("REDIS_ENABLED", "true")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.sync_client.base_url == "https://start.example.com"
    assert cfg.sync_client.rate_limit_max == 2
    assert cfg.sync_client.rate_limit_window_ms == 1_000
    assert cfg.sync_server.allowed_origins == ("https://a.example", "https://b.example")
    assert cfg.redis.enabled is True
    assert cfg.runtime.log_level == "DEBUG"


def test_keyword_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("REDIS_PREFIX", "from-env")
    cfg = load_config(redis={"prefix": "from-arg"})
    assert cfg.redis.prefix == "from-arg"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("NAVHUB_SYNC_BASE_URL", "ftp://nope"),
        ("NAVHUB_SYNC_TIMEOUT_SEC", "0"),
        ("NAVHUB_SYNC_TIMEOUT_SEC", "abc"),
        ("NAVHUB_SYNC_RATE_LIMIT_MAX", "0"),
        ("NAVHUB_PIN_MIN_LENGTH", "0"),
        ("NAVHUB_MAX_PAYLOAD_KB", "1"),
        ("REDIS_PORT", "70000"),
        ("LOG_LEVEL", "verbose"),
    ],
)
def test_invalid_values_fail_loudly(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match="Configuration validation failed"):
        load_config()


def test_debounce_may_be_zero():
    assert SyncClientConfig(debounce_ms=0).debounce_ms == 0


def test_models_are_frozen():
    cfg = SyncServerConfig()
    with pytest.raises(ValueError):
        cfg.pin_min_length = 8  # type: ignore[misc]
    assert RedisConfig().socket_timeout == 5.0
