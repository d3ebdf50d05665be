"""HAR entry redaction.

This module rewrites HAR (HTTP Archive) entries so that sensitive data is
removed while the document keeps its shape: headers, cookies and query
strings are stripped, body documents have sensitive fields replaced by
type-shaped markers, and remaining text is passed through the pattern
redactor.

Bodies are only touched when their declared content type is scrubbable
(JSON family, form-encoded, HTML/XML family). Anything that cannot be
parsed as its declared type is replaced wholesale (fail closed).
"""

from __future__ import annotations

import base64
import binascii
import copy
import json
import logging
from typing import Any
from urllib.parse import quote_plus, unquote_plus, urlsplit, urlunsplit

from har_scrubber.patterns import load_content_rules, load_sensitive_fields
from har_scrubber.redaction.classifier import ClassificationResult, FieldClassifier
from har_scrubber.redaction.text import REDACTION_MARKER, PatternRedactor

_LOGGER = logging.getLogger(__name__)

# Maximum recursion depth for JSON redaction to prevent stack overflow
_MAX_RECURSION_DEPTH = 50

# Default maximum HAR file size (100 MB)
DEFAULT_MAX_HAR_SIZE = 100 * 1024 * 1024


class HarSizeError(ValueError):
    """Raised when HAR file exceeds size limit."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"HAR file size ({size:,} bytes) exceeds limit ({max_size:,} bytes). "
            f"Use max_size parameter to increase or set to None to disable."
        )


class HarValidationError(ValueError):
    """Raised when HAR structure is invalid."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        full_message = f"Invalid HAR structure: {message}"
        if path:
            full_message += f" (at {path})"
        super().__init__(full_message)


def validate_har_structure(har_data: Any) -> list[str]:
    """Validate the records container of a HAR document.

    Args:
        har_data: Parsed HAR data

    Returns:
        List of validation warnings (empty if valid)

    Raises:
        HarValidationError: If the root, log or entries container is missing
            or has the wrong type

    Example:
        >>> validate_har_structure({"log": {"version": "1.2", "creator": {}, "entries": []}})
        []
    """
    if not isinstance(har_data, dict):
        raise HarValidationError("Root must be an object", "root")

    if "log" not in har_data:
        raise HarValidationError("Missing required 'log' key", "root")

    log = har_data["log"]
    if not isinstance(log, dict):
        raise HarValidationError("'log' must be an object", "log")

    if "entries" not in log:
        raise HarValidationError("Missing required 'entries' key", "log")

    entries = log["entries"]
    if not isinstance(entries, list):
        raise HarValidationError("'entries' must be an array", "log.entries")

    warnings: list[str] = []
    if "version" not in log:
        warnings.append("Missing log.version (recommended)")
    if "creator" not in log:
        warnings.append("Missing log.creator (recommended)")
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            warnings.append(f"Entry {i} is not an object")
    return warnings


def marker_for(value: Any) -> Any:
    """Return the redaction marker shaped like the value it replaces.

    Example:
        >>> [marker_for(v) for v in ("x", 42, 1.5, [1], {"a": 1}, None)]
        ['[SCRUBBED]', 0, 0, [], {}, None]
    """
    if value is None:
        return None
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return REDACTION_MARKER
    if isinstance(value, (int, float)):
        return 0
    if isinstance(value, list):
        return []
    if isinstance(value, dict):
        return {}
    return REDACTION_MARKER


def strip_query(url: str) -> str:
    """Remove the query string from a URL, keeping path and fragment.

    Example:
        >>> strip_query("https://example.com/api/login?user=bob#top")
        'https://example.com/api/login#top'
    """
    if "?" not in url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split("?", 1)[0]
    return urlunsplit(parts._replace(query=""))


def _header_value(headers: Any, name: str) -> str | None:
    if not isinstance(headers, list):
        return None
    for header in headers:
        if isinstance(header, dict) and str(header.get("name", "")).lower() == name:
            value = header.get("value")
            return value if isinstance(value, str) else None
    return None


class RedactionEngine:
    """Rewrite HAR entries so sensitive values are removed.

    Args:
        classifier: Field classifier providing the rule table
        redactor: Pattern redactor for free text
        custom_patterns: Optional path to custom patterns file
    """

    def __init__(
        self,
        classifier: FieldClassifier | None = None,
        redactor: PatternRedactor | None = None,
        *,
        custom_patterns: str | None = None,
    ) -> None:
        self.classifier = classifier or FieldClassifier(custom_patterns=custom_patterns)
        self.redactor = redactor or PatternRedactor.load(custom_patterns)
        headers = load_sensitive_fields(custom_patterns).get("headers", {})
        self.header_substrings = tuple(h.lower() for h in headers.get("strip_substrings", []))
        content = load_content_rules(custom_patterns)
        self.scrubbable_types = tuple(t.lower() for t in content.get("scrubbable_types", []))

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def redact_value(
        self,
        value: Any,
        result: ClassificationResult,
        path: str = "",
        _depth: int = 0,
    ) -> Any:
        """Recursively redact a parsed JSON value.

        Values under keys matched by ``result`` are replaced by a
        type-shaped marker; remaining strings go through the pattern
        redactor. Subtrees beyond the depth limit are replaced wholesale.

        Args:
            value: Parsed JSON (dict, list, or primitive)
            result: Classification deciding which keys are sensitive
            path: Location of ``value`` (for logging)
            _depth: Current recursion depth (internal use)

        Returns:
            Redacted copy of the value
        """
        if _depth > _MAX_RECURSION_DEPTH:
            _LOGGER.warning("Max recursion depth exceeded in JSON redaction at %s", path or "<root>")
            return marker_for(value)

        if isinstance(value, dict):
            redacted: dict[Any, Any] = {}
            for key, item in value.items():
                child = f"{path}.{key}" if path else str(key)
                if isinstance(key, str) and result.matches(key):
                    _LOGGER.debug("Redacting field %s", child)
                    redacted[key] = marker_for(item)
                else:
                    redacted[key] = self.redact_value(item, result, child, _depth + 1)
            return redacted
        if isinstance(value, list):
            return [self.redact_value(item, result, f"{path}[{i}]", _depth + 1) for i, item in enumerate(value)]
        if isinstance(value, str):
            return self.redactor.redact(value, path)
        return value

    def redact_json_text(self, text: str, result: ClassificationResult, where: str = "") -> str:
        """Redact a JSON document held as text.

        Returns the marker if the text is not valid JSON.
        """
        try:
            data = json.loads(text)
        except (ValueError, RecursionError):
            _LOGGER.warning("Unparsable JSON body at %s, replacing it", where or "<body>")
            return REDACTION_MARKER
        return json.dumps(self.redact_value(data, result, where), allow_nan=False)

    def redact_form_text(self, text: str, result: ClassificationResult, where: str = "") -> str:
        """Redact a form-urlencoded body, keeping field names."""
        pairs = []
        for pair in text.split("&"):
            if "=" not in pair:
                pairs.append(pair)
                continue
            key, value = pair.split("=", 1)
            if result.matches(unquote_plus(key)):
                _LOGGER.debug("Redacting form field %s.%s", where, key)
                value = REDACTION_MARKER
            else:
                decoded = unquote_plus(value)
                scrubbed = self.redactor.redact(decoded, f"{where}.{key}")
                if scrubbed is not decoded:
                    value = quote_plus(scrubbed, safe="[]")
            pairs.append(f"{key}={value}")
        return "&".join(pairs)

    def is_scrubbable(self, mime_type: str | None) -> bool:
        """Check whether bodies of this content type are rewritten."""
        if not mime_type:
            return False
        lower = mime_type.lower()
        return any(t in lower for t in self.scrubbable_types)

    def redact_body(
        self,
        text: Any,
        mime_type: str | None,
        result: ClassificationResult,
        where: str = "",
    ) -> Any:
        """Redact a request or response body according to its content type.

        Non-scrubbable content types and empty bodies are returned as-is.

        Args:
            text: Body text
            mime_type: Declared content type
            result: Classification deciding which keys are sensitive
            where: Location of the body (for logging)

        Returns:
            Redacted body text
        """
        if not isinstance(text, str) or not text or not self.is_scrubbable(mime_type):
            return text

        lower = (mime_type or "").lower()
        try:
            if "json" in lower:
                return self.redact_json_text(text, result, where)
            if "x-www-form-urlencoded" in lower:
                return self.redact_form_text(text, result, where)
            return self.redactor.redact(text, where)
        except Exception as e:
            _LOGGER.warning("Failed to redact body at %s, replacing it: %s", where or "<body>", e)
            return REDACTION_MARKER

    def _redact_content(self, content: dict[str, Any], result: ClassificationResult, where: str) -> None:
        text = content.get("text")
        mime_type = content.get("mimeType")
        if not isinstance(text, str) or not text or not self.is_scrubbable(mime_type):
            return

        if content.get("encoding") != "base64":
            content["text"] = self.redact_body(text, mime_type, result, where)
            return

        try:
            decoded = base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            _LOGGER.warning("Undecodable base64 body at %s, replacing it", where)
            content["text"] = REDACTION_MARKER
            content.pop("encoding")
            return
        redacted = self.redact_body(decoded, mime_type, result, where)
        content["text"] = base64.b64encode(redacted.encode("utf-8")).decode("ascii")

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def strip_headers(self, headers: list[Any], where: str = "") -> list[Any]:
        """Drop cookie/auth/token/key headers and scrub the remaining values."""
        kept = []
        for header in headers:
            if not isinstance(header, dict) or not isinstance(header.get("name"), str):
                _LOGGER.debug("Dropping malformed header at %s", where)
                continue
            name = header["name"].lower()
            if any(s in name for s in self.header_substrings):
                _LOGGER.debug("Dropping header %s at %s", header["name"], where)
                continue
            if isinstance(header.get("value"), str):
                header["value"] = self.redactor.redact(header["value"], f"{where}.{header['name']}")
            kept.append(header)
        return kept

    def _redact_request(self, req: dict[str, Any], result: ClassificationResult) -> None:
        declared_type = _header_value(req.get("headers"), "content-type")

        if isinstance(req.get("headers"), list):
            req["headers"] = self.strip_headers(req["headers"], "request.headers")
        if "cookies" in req:
            req["cookies"] = []
        if isinstance(req.get("url"), str):
            req["url"] = self.redactor.redact(strip_query(req["url"]), "request.url")
        if "queryString" in req:
            req["queryString"] = []

        post_data = req.get("postData")
        if not isinstance(post_data, dict):
            return
        if isinstance(post_data.get("params"), list):
            for param in post_data["params"]:
                if not isinstance(param, dict):
                    continue
                if result.matches(str(param.get("name", ""))):
                    param["value"] = REDACTION_MARKER
                elif isinstance(param.get("value"), str):
                    param["value"] = self.redactor.redact(param["value"], "request.postData.params")
        if "text" in post_data:
            mime_type = post_data.get("mimeType") or declared_type
            post_data["text"] = self.redact_body(post_data["text"], mime_type, result, "request.postData")

    def _redact_response(self, resp: dict[str, Any], result: ClassificationResult) -> None:
        if isinstance(resp.get("headers"), list):
            resp["headers"] = self.strip_headers(resp["headers"], "response.headers")
        if "cookies" in resp:
            resp["cookies"] = []
        if isinstance(resp.get("statusText"), str):
            resp["statusText"] = self.redactor.redact(resp["statusText"], "response.statusText")
        if isinstance(resp.get("redirectURL"), str):
            resp["redirectURL"] = self.redactor.redact(strip_query(resp["redirectURL"]), "response.redirectURL")
        if isinstance(resp.get("content"), dict):
            self._redact_content(resp["content"], result, "response.content")

    def redact_entry(self, entry: Any, result: ClassificationResult | None = None) -> Any:
        """Redact a single HAR entry (request/response pair).

        The input is not modified.

        Args:
            entry: HAR entry object
            result: Classification to apply to body documents; defaults to
                the rule table (substring matching)

        Returns:
            Redacted copy of the entry, or the marker if the entry is not
            an object
        """
        if not isinstance(entry, dict):
            _LOGGER.warning("Entry is not an object, replacing it")
            return REDACTION_MARKER

        if result is None:
            result = self.classifier.baseline()

        redacted = copy.deepcopy(entry)
        if isinstance(redacted.get("request"), dict):
            self._redact_request(redacted["request"], result)
        if isinstance(redacted.get("response"), dict):
            self._redact_response(redacted["response"], result)
        if isinstance(redacted.get("_summary"), str):
            redacted["_summary"] = self.redactor.redact(redacted["_summary"], "_summary")
        return redacted
