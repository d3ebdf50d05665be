"""Per-entry redaction pipeline.

Each entry moves through ``RECEIVED -> SUMMARIZED -> CLASSIFIED ->
REDACTED -> DONE``. Summarization and intelligent classification are
optional: they only run when capabilities are available and the entry
looks like an API call, and any failure in them is logged and discarded.
Baseline redaction with the rule table always runs last.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from har_scrubber.patterns import load_content_rules
from har_scrubber.pipeline.capabilities import Unavailable
from har_scrubber.redaction import (
    REDACTION_MARKER,
    FieldClassifier,
    RedactionEngine,
    field_names,
    infer_schema,
    strip_query,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from har_scrubber.pipeline.capabilities import Capabilities

_LOGGER = logging.getLogger(__name__)

# Maximum size in bytes for content to be summarized in one call (~3000 tokens)
MAX_SUMMARIZABLE_SIZE = 3000 * 4

_PARTIAL_NOTICE = "<notification>this is a partial request, summarize only based on the content you have</notification>"


class Stage(Enum):
    """Pipeline states of a single entry."""

    RECEIVED = "received"
    SUMMARIZED = "summarized"
    CLASSIFIED = "classified"
    REDACTED = "redacted"
    DONE = "done"


def _too_large(text: str) -> bool:
    return len(text.encode("utf-8")) > MAX_SUMMARIZABLE_SIZE


def _body_block(tag: str, text: Any) -> str:
    """Wrap a body for the summarizer, pretty-printing it when it is JSON."""
    if not isinstance(text, str) or not text:
        return ""
    try:
        text = json.dumps(json.loads(text), indent=2)
    except ValueError:
        pass
    return f"<{tag}>{text}</{tag}>"


def entry_url(entry: Any) -> str:
    """Best-effort request URL of an entry, for logging."""
    if isinstance(entry, dict) and isinstance(entry.get("request"), dict):
        return str(entry["request"].get("url", "<no url>"))
    return "<malformed entry>"


class EntryPipeline:
    """Run one HAR entry through summarization, classification and redaction.

    Args:
        capabilities: Capability variant selected by the batch probe
        engine: Redaction engine (default: built from the rule tables)
        stage_timeout: Seconds allowed for each external call
        gate: Semaphore bounding concurrent external calls across entries
        custom_patterns: Optional path to custom patterns file
    """

    def __init__(
        self,
        capabilities: Capabilities | None = None,
        *,
        engine: RedactionEngine | None = None,
        stage_timeout: float | None = 30.0,
        gate: asyncio.Semaphore | None = None,
        custom_patterns: str | None = None,
    ) -> None:
        self.capabilities = capabilities or Unavailable()
        self.engine = engine or RedactionEngine(custom_patterns=custom_patterns)
        self.stage_timeout = stage_timeout
        self.gate = gate
        self.classifier = FieldClassifier(
            self.capabilities.classifier,
            timeout=stage_timeout,
            gate=gate,
            custom_patterns=custom_patterns,
        )
        rules = load_content_rules(custom_patterns)
        self.summarizable_types = tuple(t.lower() for t in rules.get("summarizable_types", []))
        self.static_asset_markers = tuple(m.lower() for m in rules.get("static_asset_markers", []))
        self.api_url_markers = tuple(m.lower() for m in rules.get("api_url_markers", []))

    # -------------------------------------------------------------------------
    # Entry shape
    # -------------------------------------------------------------------------

    def is_summarizable(self, mime_type: Any) -> bool:
        """Check whether a content type is JSON-like enough to summarize."""
        if not isinstance(mime_type, str) or not mime_type:
            return False
        lower = mime_type.lower()
        return any(t in lower for t in self.summarizable_types)

    def is_static_asset(self, content_type: str, url: str) -> bool:
        """Check for stylesheets, scripts, images, fonts, media and HTML pages."""
        try:
            path = urlsplit(url).path.lower()
        except ValueError:
            path = url.lower()
        for marker in self.static_asset_markers:
            if marker.startswith("."):
                if path.endswith(marker):
                    return True
            elif marker in content_type:
                return True
        return False

    def is_api_call(self, entry: dict[str, Any]) -> bool:
        """Check whether an entry looks like an API call rather than a page or asset.

        Example:
            >>> EntryPipeline().is_api_call({"request": {"method": "POST", "url": "https://x/login"}})
            True
        """
        request = entry.get("request") if isinstance(entry.get("request"), dict) else {}
        response = entry.get("response") if isinstance(entry.get("response"), dict) else {}

        if str(request.get("method", "GET")).upper() != "GET":
            return True

        content = response.get("content") if isinstance(response.get("content"), dict) else {}
        content_type = str(content.get("mimeType") or "").lower()
        url = str(request.get("url", "")).lower()

        if self.is_static_asset(content_type, url):
            return False
        if any(marker in url for marker in self.api_url_markers):
            return True
        if "json" in content_type:
            return True

        headers = request.get("headers") if isinstance(request.get("headers"), list) else []
        return any(
            isinstance(h, dict)
            and str(h.get("name", "")).lower() == "accept"
            and "application/json" in str(h.get("value", "")).lower()
            for h in headers
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _call_external(self, call: Callable[[], Awaitable[Any]]) -> Any:
        if self.gate is None:
            return await asyncio.wait_for(call(), self.stage_timeout)
        async with self.gate:
            return await asyncio.wait_for(call(), self.stage_timeout)

    async def summarize(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Attach a ``_summary`` annotation to an API call entry.

        Oversized request/response bodies are summarized separately, and
        bodies that are too large on their own are skipped with a note.
        """
        summarizer = self.capabilities.summarizer
        if summarizer is None:
            return entry

        request = entry.get("request") or {}
        response = entry.get("response") or {}
        content = response.get("content") or {}
        if not self.is_summarizable(content.get("mimeType")):
            _LOGGER.debug("Skipping summary for non-JSON content type: %s", content.get("mimeType"))
            return entry

        base = f"<method>{request.get('method', '')}</method>\n<url>{request.get('url', '')}</url>"
        request_block = _body_block("requestBody", (request.get("postData") or {}).get("text"))
        response_block = _body_block("responseBody", content.get("text"))

        full = f"{base}\n{request_block}\n{response_block}"
        if not _too_large(full):
            summary = await self._call_external(lambda: summarizer.summarize(full))
        else:
            parts: list[str] = []
            for label, block in (("Request", request_block), ("Response", response_block)):
                if not block:
                    continue
                if _too_large(block):
                    parts.append(f"{label} body was too large to process")
                    continue
                partial = f"{_PARTIAL_NOTICE}\n{base}\n{block}"
                parts.append(await self._call_external(lambda text=partial: summarizer.summarize(text)))
            summary = "\n".join(parts)

        if not isinstance(summary, str) or not summary:
            return entry
        result = copy.deepcopy(entry)
        result["_summary"] = summary
        return result

    async def _classify_document(self, text: str, where: str) -> str:
        data = json.loads(text)
        schema = infer_schema(data)
        _LOGGER.debug("Inferred schema for %s: %s", where, json.dumps(schema.to_dict()))
        names = field_names(schema)
        result = await self.classifier.classify(names)
        if not result:
            return text
        _LOGGER.debug("Sensitive fields in %s: %s", where, ", ".join(sorted(result.fields)))
        return json.dumps(self.engine.redact_value(data, result, where), allow_nan=False)

    async def classify(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Redact JSON bodies using fields chosen for each document's own schema."""
        if self.capabilities.classifier is None:
            return entry

        result = copy.deepcopy(entry)
        request = result.get("request") or {}
        post_data = request.get("postData")
        if isinstance(post_data, dict) and isinstance(post_data.get("text"), str) and post_data["text"]:
            if self.is_summarizable(post_data.get("mimeType")):
                post_data["text"] = await self._classify_document(post_data["text"], "request.postData")

        content = (result.get("response") or {}).get("content")
        if isinstance(content, dict) and isinstance(content.get("text"), str) and content["text"]:
            if self.is_summarizable(content.get("mimeType")) and content.get("encoding") != "base64":
                content["text"] = await self._classify_document(content["text"], "response.content")
        return result

    async def _run_optional(
        self,
        stage: Stage,
        step: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
        entry: dict[str, Any],
        url: str,
    ) -> dict[str, Any]:
        try:
            result = await step(entry)
        except Exception as e:
            _LOGGER.warning("Optional %s stage failed for %s: %s", stage.value, url, str(e) or type(e).__name__)
            return entry
        _LOGGER.debug("%s: %s", stage.value, url)
        return result

    def fail_closed(self, entry: Any) -> Any:
        """Skeleton of an entry whose redaction failed: no headers, no bodies."""
        if not isinstance(entry, dict):
            return REDACTION_MARKER
        request = entry.get("request") if isinstance(entry.get("request"), dict) else {}
        response = entry.get("response") if isinstance(entry.get("response"), dict) else {}
        content = response.get("content") if isinstance(response.get("content"), dict) else {}
        url = request.get("url")
        return {
            "startedDateTime": entry.get("startedDateTime"),
            "time": entry.get("time"),
            "request": {
                "method": request.get("method"),
                "url": self.engine.redactor.redact(strip_query(url)) if isinstance(url, str) else None,
                "headers": [],
                "cookies": [],
                "queryString": [],
            },
            "response": {
                "status": response.get("status"),
                "statusText": "",
                "headers": [],
                "cookies": [],
                "content": {"mimeType": content.get("mimeType"), "size": content.get("size"), "text": REDACTION_MARKER},
            },
        }

    async def process(self, entry: Any) -> Any:
        """Run an entry through every stage and return its redacted copy.

        Never raises (other than cancellation): optional-stage failures are
        discarded and a failing baseline yields a fail-closed skeleton.
        """
        url = entry_url(entry)
        _LOGGER.debug("%s: %s", Stage.RECEIVED.value, url)

        record = entry
        if self.capabilities.available and isinstance(entry, dict) and self.is_api_call(entry):
            record = await self._run_optional(Stage.SUMMARIZED, self.summarize, record, url)
            record = await self._run_optional(Stage.CLASSIFIED, self.classify, record, url)
        else:
            _LOGGER.debug("Skipping optional stages for %s", url)

        try:
            redacted = self.engine.redact_entry(record)
        except Exception as e:
            _LOGGER.warning("Baseline redaction failed for %s, dropping headers and bodies: %s", url, e)
            redacted = self.fail_closed(record)
        _LOGGER.debug("%s: %s", Stage.REDACTED.value, url)
        _LOGGER.debug("%s: %s", Stage.DONE.value, url)
        return redacted
