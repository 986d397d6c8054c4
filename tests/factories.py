"""Small builders shared by the test modules."""

from __future__ import annotations

from typing import Any

BASE_URL = "http://navhub.test"
PIN = "1234"


def make_bookmark(bookmark_id: str, title: str, url: str | None = None) -> dict[str, Any]:
    return {
        "id": bookmark_id,
        "title": title,
        "url": url or f"https://{title.lower()}.com",
        "colorFrom": "#111111",
        "colorTo": "#222222",
        "bgType": "gradient",
    }
