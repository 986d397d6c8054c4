from __future__ import annotations

import json
import logging

from navhub.core.logging_utils import (
    JsonFormatter,
    generate_correlation_id,
    redact_digest,
    setup_json_logging,
)
from navhub.core.time_utils import ms_to_iso


def test_json_formatter_includes_extra_and_correlation_id():
    record = logging.LogRecord("navhub.test", logging.INFO, __file__, 10, "sync_pull_complete", (), None)
    record.correlation_id = "abc123"
    record.remote_last_modified = 42

    payload = json.loads(JsonFormatter(include_location=False).format(record))

    assert payload["message"] == "sync_pull_complete"
    assert payload["level"] == "INFO"
    assert payload["correlation_id"] == "abc123"
    assert payload["extra"] == {"remote_last_modified": 42}
    assert "line" not in payload


def test_setup_without_loguru_installs_json_handler():
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        setup_json_logging("WARNING", use_loguru=False)
        assert root.level == logging.WARNING
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
    finally:
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])


def test_redact_digest_keeps_prefix_only():
    digest = "0123456789abcdef" * 4
    assert redact_digest(digest) == "01234567..."
    assert redact_digest(None) is None


def test_correlation_ids_are_short_and_unique():
    first = generate_correlation_id()
    assert len(first) == 12
    assert first != generate_correlation_id()


def test_ms_to_iso():
    assert ms_to_iso(None) is None
    assert ms_to_iso(0) == "1970-01-01T00:00:00Z"
    assert ms_to_iso(1_500) == "1970-01-01T00:00:01.500000Z"
