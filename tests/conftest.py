"""Pytest configuration and fixtures for har-scrubber tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from har_scrubber.patterns import clear_pattern_cache


@pytest.fixture(autouse=True)
def _fresh_pattern_cache():
    """Drop cached rule tables so custom pattern files never leak between tests."""
    clear_pattern_cache()
    yield
    clear_pattern_cache()


@pytest.fixture
def temp_har_file(tmp_path: Path):
    """Create a HAR file in a temporary directory."""

    def _create_har(entries: list | None = None, name: str = "capture.har") -> Path:
        har_data = {
            "log": {
                "version": "1.2",
                "creator": {"name": "test", "version": "1.0"},
                "entries": entries or [],
            }
        }
        har_file = tmp_path / name
        har_file.write_text(json.dumps(har_data))
        return har_file

    return _create_har


@pytest.fixture
def sample_har_entry():
    """Create a sample HAR entry for testing."""

    def _create_entry(
        method: str = "GET",
        url: str = "https://example.com/",
        status: int = 200,
        content: str = "",
        mime_type: str = "text/html",
        headers: list[dict] | None = None,
        post_data: dict | None = None,
    ) -> dict:
        entry = {
            "startedDateTime": "2024-01-01T00:00:00.000Z",
            "time": 12,
            "request": {
                "method": method,
                "url": url,
                "headers": headers or [],
                "cookies": [],
                "queryString": [],
            },
            "response": {
                "status": status,
                "statusText": "OK",
                "headers": [],
                "cookies": [],
                "content": {"text": content, "mimeType": mime_type},
            },
        }
        if post_data:
            entry["request"]["postData"] = post_data
        return entry

    return _create_entry
