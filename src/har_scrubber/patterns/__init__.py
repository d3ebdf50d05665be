"""Rule tables for redaction.

This module provides loading of text patterns, sensitive field names and
content-type rules from JSON, with merging of custom user tables.
"""

from __future__ import annotations

from har_scrubber.patterns.loader import (
    PatternLoadError,
    clear_pattern_cache,
    compile_pattern,
    load_content_rules,
    load_json_file,
    load_sensitive_fields,
    load_text_patterns,
)

__all__ = [
    "load_text_patterns",
    "load_sensitive_fields",
    "load_content_rules",
    "load_json_file",
    "clear_pattern_cache",
    "compile_pattern",
    "PatternLoadError",
]
