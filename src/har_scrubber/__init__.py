"""HAR redaction library.

This library scrubs personal, financial, authentication and health data
from HAR (HTTP Archive) logs before they are shared:

- Headers, cookies and query strings are stripped
- Sensitive fields in JSON and form bodies are replaced by type-shaped markers
- E-mails, card numbers, IDs and secrets are scrubbed from remaining text
- An optional local language model can summarize API calls and pick
  sensitive fields per document; rule-based redaction always runs last

Core redaction has ZERO dependencies (only stdlib).
Optional features require: ollama (llm), typer (cli).

Example usage:
    import asyncio
    from har_scrubber import scrub_har

    clean_har = asyncio.run(scrub_har(har_data))

    # Or stream events as entries complete
    from har_scrubber import BatchScheduler

    async for event in BatchScheduler(concurrency=4).stream(har_data):
        print(event.to_dict())
"""

from __future__ import annotations

__version__ = "0.1.0"

# Re-export public API for convenience
from har_scrubber.pipeline import (
    BatchScheduler,
    ScrubError,
    StaticCapabilities,
    scrub_har,
    scrub_har_file,
)
from har_scrubber.redaction import (
    FieldClassifier,
    PatternRedactor,
    RedactionEngine,
    infer_schema,
)

__all__ = [
    "__version__",
    "BatchScheduler",
    "FieldClassifier",
    "PatternRedactor",
    "RedactionEngine",
    "ScrubError",
    "StaticCapabilities",
    "infer_schema",
    "scrub_har",
    "scrub_har_file",
]
