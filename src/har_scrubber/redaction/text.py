"""Pattern-based scrubbing of free text.

Replaces e-mail addresses, card numbers, national IDs, and key/secret,
password and authorization-token assignments with the redaction marker.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from har_scrubber.patterns import compile_pattern, load_text_patterns

_LOGGER = logging.getLogger(__name__)

REDACTION_MARKER = "[SCRUBBED]"


class PatternRedactor:
    """Scrub substrings matching a fixed set of named patterns.

    Each pattern is applied once, left to right, to the output of the
    previous one. Matches are not re-scanned after substitution.

    Example:
        >>> redactor = PatternRedactor.load()
        >>> redactor.redact("contact: jane@example.com")
        'contact: [SCRUBBED]'
    """

    def __init__(self, patterns: dict[str, re.Pattern[str]], marker: str = REDACTION_MARKER) -> None:
        self.patterns = patterns
        self.marker = marker

    @classmethod
    def load(cls, custom_patterns: str | None = None) -> PatternRedactor:
        """Build a redactor from the built-in table merged with a custom file."""
        table = load_text_patterns(custom_patterns)
        compiled: dict[str, re.Pattern[str]] = {}
        for name, pattern_def in table.get("patterns", {}).items():
            if name.startswith("_") or not isinstance(pattern_def, dict):
                continue
            try:
                compiled[name] = compile_pattern(pattern_def)
            except re.error as e:
                _LOGGER.warning("Skipping invalid pattern %s: %s", name, e)
        return cls(compiled)

    def redact(self, value: Any, where: str = "") -> Any:
        """Scrub every pattern match in a string.

        Args:
            value: Value to scrub; non-strings are returned unchanged
            where: Location used in debug logging only

        Returns:
            The scrubbed string, or the original object when nothing matched
        """
        if not isinstance(value, str) or not value:
            return value

        result = value
        for name, pattern in self.patterns.items():
            if pattern.search(result) is None:
                continue
            result, count = pattern.subn(self.marker, result)
            _LOGGER.debug("Scrubbed %d %s match(es) at %s", count, name, where or "<text>")
        return result
