"""Tests for rule table loading."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from har_scrubber.patterns.loader import (
    PatternLoadError,
    _cache_get,
    _cache_set,
    clear_pattern_cache,
    compile_pattern,
    load_content_rules,
    load_json_file,
    load_sensitive_fields,
    load_text_patterns,
)


class TestPatternLoadError:
    """Tests for PatternLoadError exception."""

    def test_file_not_found(self, tmp_path: Path) -> None:
        """Test FileNotFoundError is wrapped."""
        with pytest.raises(PatternLoadError, match="not found"):
            load_json_file(tmp_path / "nonexistent.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test JSONDecodeError is wrapped."""
        invalid_file = tmp_path / "invalid.json"
        invalid_file.write_text("{ not valid json }")

        with pytest.raises(PatternLoadError, match="Invalid JSON"):
            load_json_file(invalid_file)

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test empty file produces PatternLoadError."""
        empty_file = tmp_path / "empty.json"
        empty_file.write_text("")

        with pytest.raises(PatternLoadError, match="Invalid JSON"):
            load_json_file(empty_file)


class TestCacheLRU:
    """Tests for LRU cache behavior."""

    def test_cache_stores_value(self) -> None:
        """Test cache stores and retrieves values."""
        _cache_set("test_key", {"data": "value"})
        assert _cache_get("test_key") == {"data": "value"}

    def test_cache_returns_none_for_missing(self) -> None:
        """Test cache returns None for missing keys."""
        assert _cache_get("nonexistent") is None

    def test_cache_eviction(self) -> None:
        """Test cache evicts oldest entries when full."""
        for i in range(25):
            _cache_set(f"key_{i}", f"value_{i}")

        for i in range(5):
            assert _cache_get(f"key_{i}") is None
        for i in range(5, 25):
            assert _cache_get(f"key_{i}") == f"value_{i}"

    def test_cache_lru_order(self) -> None:
        """Test recently read entries survive eviction."""
        for i in range(15):
            _cache_set(f"key_{i}", f"value_{i}")
        _cache_get("key_0")
        for i in range(15, 25):
            _cache_set(f"key_{i}", f"value_{i}")

        assert _cache_get("key_0") is not None
        for i in range(1, 5):
            assert _cache_get(f"key_{i}") is None

    def test_loaders_reuse_cached_table(self) -> None:
        """Test a second load returns the cached table."""
        first = load_text_patterns()
        assert load_text_patterns() is first
        clear_pattern_cache()
        assert load_text_patterns() is not first


class TestBuiltinTables:
    """Tests for the tables shipped with the package."""

    def test_text_patterns_present(self) -> None:
        """Test every built-in text pattern is defined and compiles."""
        patterns = load_text_patterns()["patterns"]
        for name in ("email", "card_number", "national_id", "secret_assignment", "password_assignment", "auth_token"):
            assert name in patterns
            assert isinstance(compile_pattern(patterns[name]), re.Pattern)

    def test_sensitive_fields_present(self) -> None:
        """Test field and header tables are loaded."""
        table = load_sensitive_fields()
        assert "password" in table["fields"]["patterns"]
        assert "signature" in table["fields"]["patterns"]
        assert table["headers"]["strip_substrings"] == ["cookie", "auth", "token", "key"]

    def test_content_rules_present(self) -> None:
        """Test content-type tables are loaded."""
        rules = load_content_rules()
        assert "application/json" in rules["scrubbable_types"]
        assert "/api/" in rules["api_url_markers"]
        assert "image/" in rules["static_asset_markers"]


class TestCompilePattern:
    """Tests for pattern definition compilation."""

    def test_flags_applied(self) -> None:
        """Test named flags are applied."""
        pattern = compile_pattern({"regex": "secret", "flags": ["IGNORECASE"]})
        assert pattern.search("SECRET")

    def test_unknown_flag_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test unknown flag names are logged and skipped."""
        pattern = compile_pattern({"regex": "secret", "flags": ["NOT_A_FLAG"]})
        assert pattern.search("secret")
        assert pattern.search("SECRET") is None
        assert "Unknown regex flag" in caplog.text

    def test_invalid_regex_raises(self) -> None:
        """Test invalid regex propagates re.error."""
        with pytest.raises(re.error):
            compile_pattern({"regex": "(unclosed"})


class TestCustomPatternsLoading:
    """Tests for custom pattern file loading."""

    def test_custom_text_patterns_merge(self, tmp_path: Path) -> None:
        """Test custom text patterns are merged with builtin."""
        custom_file = tmp_path / "custom.json"
        custom_file.write_text(json.dumps({"patterns": {"order_ref": {"regex": r"ORD-\d{6}"}}}))

        result = load_text_patterns(custom_file)

        assert "order_ref" in result["patterns"]
        assert "email" in result["patterns"]

    def test_custom_fields_and_headers_extend(self, tmp_path: Path) -> None:
        """Test custom field names and header substrings extend the built-ins."""
        custom_file = tmp_path / "custom.json"
        custom_file.write_text(
            json.dumps(
                {
                    "fields": {"patterns": ["loyaltyNumber"]},
                    "headers": {"strip_substrings": ["x-tenant"]},
                }
            )
        )

        result = load_sensitive_fields(custom_file)

        assert "loyaltyNumber" in result["fields"]["patterns"]
        assert "password" in result["fields"]["patterns"]
        assert "x-tenant" in result["headers"]["strip_substrings"]
        # Built-in table is untouched for callers without custom patterns
        assert "loyaltyNumber" not in load_sensitive_fields()["fields"]["patterns"]

    def test_custom_content_rules_extend(self, tmp_path: Path) -> None:
        """Test custom content rules extend lists and skip metadata keys."""
        custom_file = tmp_path / "custom.json"
        custom_file.write_text(
            json.dumps({"content": {"_description": "ignored", "api_url_markers": ["/rpc/"]}})
        )

        result = load_content_rules(custom_file)

        assert "/rpc/" in result["api_url_markers"]
        assert "/api/" in result["api_url_markers"]

    def test_malformed_custom_patterns(self, tmp_path: Path) -> None:
        """Test a structurally wrong custom file leaves the built-ins in place."""
        malformed_file = tmp_path / "malformed.json"
        malformed_file.write_text('{"patterns": "not a dict"}')

        result = load_text_patterns(malformed_file)

        assert "email" in result["patterns"]

    def test_custom_patterns_with_nonexistent_file(self) -> None:
        """Test nonexistent custom patterns file raises error."""
        with pytest.raises(PatternLoadError, match="not found"):
            load_text_patterns("/nonexistent/path/patterns.json")
