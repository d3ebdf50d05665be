"""Pattern loading utilities for redaction.

This module provides functions to load text patterns, sensitive field
names, and content-type rules from JSON files, optionally merged with a
user-supplied custom file.
"""

from __future__ import annotations

import json
import logging
import re
from collections import OrderedDict
from pathlib import Path
from typing import Any

_LOGGER = logging.getLogger(__name__)

# Maximum number of cache entries to prevent unbounded growth
_MAX_CACHE_SIZE = 20

# LRU cache for loaded tables (OrderedDict for LRU behavior)
_pattern_cache: OrderedDict[str, Any] = OrderedDict()


def _cache_get(key: str) -> Any | None:
    """Get value from cache, moving it to end (most recently used)."""
    if key in _pattern_cache:
        _pattern_cache.move_to_end(key)
        return _pattern_cache[key]
    return None


def _cache_set(key: str, value: Any) -> None:
    """Set value in cache with LRU eviction."""
    if key in _pattern_cache:
        _pattern_cache.move_to_end(key)
    _pattern_cache[key] = value
    while len(_pattern_cache) > _MAX_CACHE_SIZE:
        evicted_key = next(iter(_pattern_cache))
        _pattern_cache.pop(evicted_key)
        _LOGGER.debug("Pattern cache evicted: %s", evicted_key)


class PatternLoadError(Exception):
    """Raised when pattern files cannot be loaded."""


def _get_builtin_path(filename: str) -> Path:
    """Get path to a built-in table shipped next to this module."""
    return Path(__file__).parent / filename


def _normalize_path(path: Path | str | None) -> str | None:
    """Normalize a path to an absolute string for cache key consistency."""
    if path is None:
        return None
    return str(Path(path).resolve())


def load_json_file(path: Path | str) -> dict[str, Any]:
    """Load a JSON file with error handling.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON data

    Raises:
        PatternLoadError: If file cannot be read or parsed
    """
    path_str = str(path)
    try:
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
            return data
    except FileNotFoundError as e:
        raise PatternLoadError(f"Pattern file not found: {path_str}") from e
    except PermissionError as e:
        raise PatternLoadError(f"Permission denied reading pattern file: {path_str}") from e
    except json.JSONDecodeError as e:
        raise PatternLoadError(f"Invalid JSON in pattern file {path_str}: {e}") from e


def load_text_patterns(custom_path: Path | str | None = None) -> dict[str, Any]:
    """Load named text patterns scrubbed from string values.

    Args:
        custom_path: Optional path to custom patterns file to merge

    Returns:
        Dict with a 'patterns' mapping of name -> pattern definition

    Raises:
        PatternLoadError: If custom patterns file cannot be loaded
    """
    normalized = _normalize_path(custom_path)
    cache_key = f"text:{normalized}"
    cached = _cache_get(cache_key)
    if cached is not None:
        result: dict[str, Any] = cached
        return result

    builtin = load_json_file(_get_builtin_path("patterns.json"))

    if custom_path:
        custom = load_json_file(custom_path)
        if "patterns" in custom and isinstance(custom["patterns"], dict):
            builtin["patterns"].update(custom["patterns"])

    _cache_set(cache_key, builtin)
    return builtin


def load_sensitive_fields(custom_path: Path | str | None = None) -> dict[str, Any]:
    """Load sensitive field-name and header-name substrings.

    Args:
        custom_path: Optional path to custom patterns file to merge

    Returns:
        Dict with 'fields' and 'headers' keys

    Raises:
        PatternLoadError: If custom patterns file cannot be loaded
    """
    normalized = _normalize_path(custom_path)
    cache_key = f"sensitive:{normalized}"
    cached = _cache_get(cache_key)
    if cached is not None:
        result: dict[str, Any] = cached
        return result

    builtin = load_json_file(_get_builtin_path("sensitive.json"))

    if custom_path:
        custom = load_json_file(custom_path)
        if "fields" in custom and "patterns" in custom["fields"]:
            builtin["fields"]["patterns"].extend(custom["fields"]["patterns"])
        if "headers" in custom and "strip_substrings" in custom["headers"]:
            builtin["headers"]["strip_substrings"].extend(custom["headers"]["strip_substrings"])

    _cache_set(cache_key, builtin)
    return builtin


def load_content_rules(custom_path: Path | str | None = None) -> dict[str, Any]:
    """Load content-type and URL rules.

    Args:
        custom_path: Optional path to custom patterns file to merge

    Returns:
        Dict with 'scrubbable_types', 'summarizable_types',
        'static_asset_markers' and 'api_url_markers' lists

    Raises:
        PatternLoadError: If custom patterns file cannot be loaded
    """
    normalized = _normalize_path(custom_path)
    cache_key = f"content:{normalized}"
    cached = _cache_get(cache_key)
    if cached is not None:
        result: dict[str, Any] = cached
        return result

    builtin = load_json_file(_get_builtin_path("content.json"))

    if custom_path:
        custom = load_json_file(custom_path)
        for key, values in custom.get("content", {}).items():
            if key.startswith("_") or not isinstance(values, list):
                continue
            builtin.setdefault(key, []).extend(values)

    _cache_set(cache_key, builtin)
    return builtin


def clear_pattern_cache() -> None:
    """Clear the pattern cache.

    Useful for testing or when pattern files have been modified.
    """
    _pattern_cache.clear()


def compile_pattern(pattern_def: dict[str, Any]) -> re.Pattern[str]:
    """Compile a pattern definition into a regex.

    Args:
        pattern_def: Pattern definition with 'regex' and optional 'flags'

    Returns:
        Compiled regex pattern

    Raises:
        re.error: If regex pattern is invalid
    """
    regex = pattern_def["regex"]
    flags = 0

    if "flags" in pattern_def:
        for flag_name in pattern_def["flags"]:
            flag = getattr(re, flag_name, None)
            if flag is not None and isinstance(flag, re.RegexFlag):
                flags |= flag
            else:
                _LOGGER.warning("Unknown regex flag: %s", flag_name)

    return re.compile(regex, flags)
