"""Batch scheduling of HAR entries through the redaction pipeline.

The scheduler keeps at most ``concurrency`` entries in flight and starts
the next unstarted entry as soon as any in-flight one completes. Entries
complete out of order; every result is reported with its original index
so the caller can reassemble the log.
"""

from __future__ import annotations

import asyncio
import copy
import gzip
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from har_scrubber.pipeline.capabilities import probe_capabilities
from har_scrubber.pipeline.entry import EntryPipeline
from har_scrubber.pipeline.events import (
    CompleteEvent,
    EntryEvent,
    ErrorEvent,
    InitEvent,
    ProgressEvent,
)
from har_scrubber.redaction import (
    DEFAULT_MAX_HAR_SIZE,
    HarSizeError,
    PatternRedactor,
    validate_har_structure,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from har_scrubber.pipeline.capabilities import CapabilityProvider
    from har_scrubber.pipeline.events import ScrubEvent

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4

# Tasks left running after a consumer stopped reading; held so they are not collected mid-flight
_detached: set[asyncio.Task[Any]] = set()


class ScrubError(RuntimeError):
    """Raised when a batch ends with an error event instead of results."""


def _detach(task: asyncio.Task[Any]) -> None:
    _detached.add(task)
    task.add_done_callback(_detached.discard)


class BatchScheduler:
    """Run every entry of a HAR log through the entry pipeline.

    Args:
        provider: Optional capability provider, probed once per batch
        concurrency: Maximum number of entries processed at the same time
        external_concurrency: Maximum concurrent calls to external
            capabilities (default: same as ``concurrency``)
        stage_timeout: Seconds allowed for each external call
        custom_patterns: Optional path to custom patterns file

    Example:
        >>> async def main(har):  # doctest: +SKIP
        ...     async for event in BatchScheduler().stream(har):
        ...         print(event.to_dict()["type"])
    """

    def __init__(
        self,
        provider: CapabilityProvider | None = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        external_concurrency: int | None = None,
        stage_timeout: float | None = 30.0,
        custom_patterns: str | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.provider = provider
        self.concurrency = concurrency
        self.external_concurrency = external_concurrency or concurrency
        self.stage_timeout = stage_timeout
        self.custom_patterns = custom_patterns

    async def stream(self, har: dict[str, Any] | str | bytes) -> AsyncIterator[ScrubEvent]:
        """Scrub a HAR log, yielding events as entries complete.

        The stream is ``init``, then one ``entry`` and one ``progress``
        event per entry, then ``complete``. If the log cannot be parsed or
        has no entries container, a single ``error`` event is yielded and
        nothing is processed.

        Stopping iteration early leaves in-flight entries running to
        completion in the background; they are neither awaited nor
        cancelled.

        Args:
            har: Parsed HAR document, or its JSON text

        Yields:
            Scheduler events
        """
        try:
            if isinstance(har, (str, bytes, bytearray)):
                har = await asyncio.to_thread(json.loads, har)
            warnings = validate_har_structure(har)
        except (ValueError, RecursionError) as e:
            _LOGGER.error("Cannot scrub HAR: %s", e)
            yield ErrorEvent(str(e))
            return

        for warning in warnings:
            _LOGGER.warning("HAR validation: %s", warning)

        entries: list[Any] = har["log"]["entries"]
        total = len(entries)

        capabilities = await probe_capabilities(self.provider)
        pipeline = EntryPipeline(
            capabilities,
            stage_timeout=self.stage_timeout,
            gate=asyncio.Semaphore(self.external_concurrency),
            custom_patterns=self.custom_patterns,
        )
        _LOGGER.info(
            "Scrubbing %d entries with%s advanced features", total, "" if capabilities.available else "out"
        )
        yield InitEvent(total)

        pending: dict[asyncio.Task[Any], int] = {}
        cursor = 0
        completed = 0

        def fill() -> None:
            nonlocal cursor
            while cursor < total and len(pending) < self.concurrency:
                task = asyncio.create_task(pipeline.process(entries[cursor]))
                pending[task] = cursor
                cursor += 1

        try:
            fill()
            while pending:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                finished = sorted((pending.pop(task), task) for task in done)
                fill()
                for index, task in finished:
                    try:
                        entry = task.result()
                    except Exception as e:
                        _LOGGER.warning("Entry %d failed unexpectedly, replacing it: %s", index, e)
                        entry = pipeline.fail_closed(entries[index])
                    completed += 1
                    yield EntryEvent(index, entry)
                    yield ProgressEvent(completed, total)
        finally:
            if pending:
                _LOGGER.debug("Stream closed with %d entries in flight", len(pending))
            for task in pending:
                _detach(task)

        if total == 0:
            yield ProgressEvent(0, 0)
        _LOGGER.info("Scrubbed %d entries", total)
        yield CompleteEvent()


async def scrub_har(
    har: dict[str, Any] | str | bytes,
    provider: CapabilityProvider | None = None,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    external_concurrency: int | None = None,
    stage_timeout: float | None = 30.0,
    custom_patterns: str | None = None,
    include_summaries: bool = True,
    on_event: Callable[[ScrubEvent], None] | None = None,
) -> dict[str, Any]:
    """Scrub a whole HAR document and reassemble it in original order.

    Args:
        har: Parsed HAR document, or its JSON text
        provider: Optional capability provider (summarizer/classifier)
        concurrency: Maximum number of entries processed at the same time
        external_concurrency: Maximum concurrent external calls
        stage_timeout: Seconds allowed for each external call
        custom_patterns: Optional path to custom patterns JSON file
        include_summaries: Keep ``_summary`` annotations on entries
        on_event: Optional callback invoked with every event

    Returns:
        Scrubbed HAR data

    Raises:
        ScrubError: If the log could not be parsed or has no entries container

    Example:
        >>> import asyncio
        >>> asyncio.run(scrub_har({"log": {"entries": []}}))
        {'log': {'entries': []}}
    """
    if isinstance(har, (str, bytes, bytearray)):
        try:
            har = await asyncio.to_thread(json.loads, har)
        except (ValueError, RecursionError) as e:
            raise ScrubError(f"Invalid JSON in HAR data: {e}") from e

    scheduler = BatchScheduler(
        provider,
        concurrency=concurrency,
        external_concurrency=external_concurrency,
        stage_timeout=stage_timeout,
        custom_patterns=custom_patterns,
    )
    results: list[Any] = []
    async for event in scheduler.stream(har):
        if on_event is not None:
            on_event(event)
        if isinstance(event, ErrorEvent):
            raise ScrubError(event.message)
        if isinstance(event, InitEvent):
            results = [None] * event.total
        elif isinstance(event, EntryEvent):
            results[event.index] = event.entry

    if not include_summaries:
        for entry in results:
            if isinstance(entry, dict):
                entry.pop("_summary", None)

    # The stream rejects anything that is not a HAR object before any entry event
    document = cast("dict[str, Any]", har)
    output = {key: copy.deepcopy(value) for key, value in document.items() if key != "log"}
    log = {key: copy.deepcopy(value) for key, value in document["log"].items() if key != "entries"}
    log["entries"] = results

    # Page titles often carry account names or e-mail addresses
    if isinstance(log.get("pages"), list):
        redactor = PatternRedactor.load(custom_patterns)
        for page in log["pages"]:
            if isinstance(page, dict) and isinstance(page.get("title"), str):
                page["title"] = redactor.redact(page["title"], "log.pages.title")

    output["log"] = log
    return output


def scrub_har_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    *,
    provider: CapabilityProvider | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    custom_patterns: str | None = None,
    max_size: int | None = DEFAULT_MAX_HAR_SIZE,
    include_summaries: bool = True,
    on_event: Callable[[ScrubEvent], None] | None = None,
) -> str:
    """Scrub a HAR file and write the result to a new file.

    Args:
        input_path: Path to input HAR file (``.har`` or ``.har.gz``)
        output_path: Path to output file (default: input name with
            ``.scrubbed.har`` suffix)
        provider: Optional capability provider (summarizer/classifier)
        concurrency: Maximum number of entries processed at the same time
        custom_patterns: Optional path to custom patterns JSON file
        max_size: Maximum file size in bytes (default: 100MB). Set to None to disable.
        include_summaries: Keep ``_summary`` annotations on entries
        on_event: Optional callback invoked with every event

    Returns:
        Path to the scrubbed file

    Raises:
        HarSizeError: If file exceeds max_size limit
        ScrubError: If the file is not a valid HAR log
        FileNotFoundError: If input file doesn't exist
    """
    input_path = Path(input_path)
    input_str = str(input_path)

    if max_size is not None:
        file_size = input_path.stat().st_size
        if file_size > max_size:
            raise HarSizeError(file_size, max_size)

    if output_path is None:
        stem = input_str
        for suffix in (".gz", ".har"):
            if stem.endswith(suffix):
                stem = stem[: -len(suffix)]
        output_str = stem + ".scrubbed.har"
    else:
        output_str = str(output_path)

    if input_str.endswith(".gz"):
        with gzip.open(input_str, "rt", encoding="utf-8") as f:
            raw = f.read()
    else:
        with open(input_str, encoding="utf-8") as f:
            raw = f.read()

    scrubbed = asyncio.run(
        scrub_har(
            raw,
            provider,
            concurrency=concurrency,
            custom_patterns=custom_patterns,
            include_summaries=include_summaries,
            on_event=on_event,
        )
    )

    with open(output_str, "w", encoding="utf-8") as f:
        json.dump(scrubbed, f, indent=2)

    _LOGGER.info("Scrubbed HAR written to: %s", output_str)
    return output_str
