"""Concurrent redaction pipeline for HAR logs.

Exports:
    - BatchScheduler: stream redacted entries with bounded concurrency
    - scrub_har / scrub_har_file: scrub a whole document or file
    - EntryPipeline: per-entry summarize/classify/redact stages
    - probe_capabilities: select Available/Unavailable capabilities

The Ollama-backed capability provider lives in
``har_scrubber.pipeline.ollama`` and needs the 'llm' extra.
"""

from __future__ import annotations

from har_scrubber.pipeline.capabilities import (
    Available,
    Capabilities,
    CapabilityProvider,
    ExternalClassifier,
    StaticCapabilities,
    Summarizer,
    Unavailable,
    probe_capabilities,
)
from har_scrubber.pipeline.entry import EntryPipeline, Stage
from har_scrubber.pipeline.events import (
    CompleteEvent,
    EntryEvent,
    ErrorEvent,
    InitEvent,
    ProgressEvent,
    ScrubEvent,
)
from har_scrubber.pipeline.scheduler import (
    DEFAULT_CONCURRENCY,
    BatchScheduler,
    ScrubError,
    scrub_har,
    scrub_har_file,
)

__all__ = [
    # Scheduling
    "BatchScheduler",
    "DEFAULT_CONCURRENCY",
    "ScrubError",
    "scrub_har",
    "scrub_har_file",
    # Entries
    "EntryPipeline",
    "Stage",
    # Capabilities
    "Available",
    "Unavailable",
    "Capabilities",
    "CapabilityProvider",
    "ExternalClassifier",
    "Summarizer",
    "StaticCapabilities",
    "probe_capabilities",
    # Events
    "ScrubEvent",
    "InitEvent",
    "ProgressEvent",
    "EntryEvent",
    "CompleteEvent",
    "ErrorEvent",
]
