"""Tests for CLI scrub command."""

from __future__ import annotations

import gzip
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from har_scrubber.cli.main import app

runner = CliRunner()


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def valid_har(tmp_path: Path) -> Path:
    """Create a valid HAR file with personal data for testing."""
    har_data = {
        "log": {
            "version": "1.2",
            "creator": {"name": "test", "version": "1.0"},
            "entries": [
                {
                    "request": {
                        "method": "POST",
                        "url": "https://example.com/api/login?session=abc",
                        "headers": [
                            {"name": "Cookie", "value": "session=secret123"},
                            {"name": "Content-Type", "value": "application/json"},
                        ],
                        "postData": {
                            "mimeType": "application/json",
                            "text": json.dumps({"user": "bob", "password": "hunter2"}),
                        },
                    },
                    "response": {
                        "status": 200,
                        "headers": [],
                        "content": {
                            "text": json.dumps({"email": "bob@example.com", "plan": "pro"}),
                            "mimeType": "application/json",
                        },
                    },
                }
            ],
        }
    }
    har_file = tmp_path / "test.har"
    har_file.write_text(json.dumps(har_data))
    return har_file


@pytest.fixture
def large_har(tmp_path: Path) -> Path:
    """Create a HAR file larger than 1MB for size limit testing."""
    har_data = {
        "log": {
            "version": "1.2",
            "creator": {"name": "test", "version": "1.0"},
            "entries": [
                {
                    "request": {"method": "GET", "url": "https://example.com/", "headers": []},
                    "response": {
                        "status": 200,
                        "headers": [],
                        "content": {"text": "x" * 500000, "mimeType": "text/plain"},
                    },
                }
            ]
            * 3,
        }
    }
    har_file = tmp_path / "large.har"
    har_file.write_text(json.dumps(har_data))
    return har_file


# =============================================================================
# Test Classes
# =============================================================================


class TestScrubBasic:
    """Basic scrub command tests."""

    def test_scrub_valid_har(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har)])
        assert result.exit_code == 0
        assert "Scrubbed:" in result.stdout
        assert "Entries: 1" in result.stdout

    def test_scrub_with_output(self, valid_har: Path, tmp_path: Path) -> None:
        output = tmp_path / "output.har"
        result = runner.invoke(app, ["scrub", str(valid_har), "-o", str(output)])
        assert result.exit_code == 0
        assert output.exists()

    def test_scrub_file_not_found(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["scrub", str(tmp_path / "nonexistent.har")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_scrub_invalid_json(self, tmp_path: Path) -> None:
        invalid_file = tmp_path / "invalid.har"
        invalid_file.write_text("{not valid json")
        result = runner.invoke(app, ["scrub", str(invalid_file)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_scrub_invalid_har_structure(self, tmp_path: Path) -> None:
        invalid_file = tmp_path / "invalid_structure.har"
        invalid_file.write_text('{"not": "a har file"}')
        result = runner.invoke(app, ["scrub", str(invalid_file)])
        assert result.exit_code == 1
        assert "Invalid HAR" in result.output

    def test_scrub_deeply_nested_json(self, tmp_path: Path) -> None:
        """Test JSON nested past the parser limit exits cleanly."""
        nested_file = tmp_path / "nested.har"
        nested_file.write_text('{"log": {"entries": ' + "[" * 200000 + "]" * 200000 + "}}")
        result = runner.invoke(app, ["scrub", str(nested_file)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_scrub_invalid_concurrency(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har), "--concurrency", "0"])
        assert result.exit_code == 1
        assert "concurrency must be >= 1" in result.output


class TestScrubOutput:
    """Tests for output verification."""

    def test_creates_scrubbed_file(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har)])
        assert result.exit_code == 0
        assert (valid_har.parent / "test.scrubbed.har").exists()

    def test_removes_personal_data(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har)])
        assert result.exit_code == 0

        content = (valid_har.parent / "test.scrubbed.har").read_text()
        assert "secret123" not in content
        assert "hunter2" not in content
        assert "bob@example.com" not in content
        assert "session=abc" not in content

        entry = json.loads(content)["log"]["entries"][0]
        assert json.loads(entry["request"]["postData"]["text"]) == {"user": "bob", "password": "[SCRUBBED]"}
        assert json.loads(entry["response"]["content"]["text"]) == {"email": "[SCRUBBED]", "plan": "pro"}

    def test_events_json_lines(self, valid_har: Path) -> None:
        """Test --events prints one JSON object per event."""
        result = runner.invoke(app, ["scrub", str(valid_har), "--events"])
        assert result.exit_code == 0

        events = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
        assert [e["type"] for e in events] == ["init", "entry", "progress", "complete"]
        assert events[0]["totalCount"] == 1
        assert events[1]["index"] == 0
        assert events[1]["redactedRecord"]["request"]["url"] == "https://example.com/api/login"


class TestScrubCompression:
    """Tests for compression option."""

    def test_scrub_with_compress(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har), "--compress"])
        assert result.exit_code == 0
        assert "Compressed:" in result.stdout

        compressed_path = valid_har.parent / "test.scrubbed.har.gz"
        assert compressed_path.exists()
        with gzip.open(compressed_path, "rt", encoding="utf-8") as f:
            assert json.load(f)["log"]["entries"]


class TestScrubSizeLimit:
    """Tests for size limit options."""

    def test_default_size_limit(self, large_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(large_har)])
        assert result.exit_code == 0

    def test_small_size_limit(self, large_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(large_har), "--max-size", "1"])
        assert result.exit_code == 1
        assert "File too large" in result.output

    def test_unlimited_size(self, large_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(large_har), "--max-size", "0"])
        assert result.exit_code == 0

    def test_negative_size_limit(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har), "--max-size", "-1"])
        assert result.exit_code == 1
        assert "max-size must be >= 0" in result.output


class TestScrubCustomPatterns:
    """Tests for custom patterns option."""

    def test_custom_field(self, valid_har: Path, tmp_path: Path) -> None:
        """Test --patterns adds field names to redact."""
        custom_patterns = tmp_path / "custom.json"
        custom_patterns.write_text(json.dumps({"fields": {"patterns": ["plan"]}}))

        result = runner.invoke(app, ["scrub", str(valid_har), "--patterns", str(custom_patterns)])
        assert result.exit_code == 0

        entry = json.loads((valid_har.parent / "test.scrubbed.har").read_text())["log"]["entries"][0]
        assert json.loads(entry["response"]["content"]["text"])["plan"] == "[SCRUBBED]"

    def test_invalid_patterns_file(self, valid_har: Path) -> None:
        result = runner.invoke(app, ["scrub", str(valid_har), "--patterns", "/nonexistent/patterns.json"])
        assert result.exit_code == 1
        assert "Failed to load patterns" in result.output
