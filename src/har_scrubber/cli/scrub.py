"""Scrub command for har-scrubber CLI."""

from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from har_scrubber.patterns import PatternLoadError

if TYPE_CHECKING:
    from har_scrubber.pipeline import ScrubEvent


class _EventPrinter:
    """Render scheduler events as a progress line or as JSON lines."""

    def __init__(self, as_json: bool) -> None:
        self.as_json = as_json

    def __call__(self, event: ScrubEvent) -> None:
        from har_scrubber.pipeline import CompleteEvent, InitEvent, ProgressEvent

        if self.as_json:
            typer.echo(json.dumps(event.to_dict()))
            return
        if isinstance(event, InitEvent):
            typer.echo(f"  Entries: {event.total}")
        elif isinstance(event, ProgressEvent):
            typer.echo(f"\r  Progress: {event.current}/{event.total}", nl=False)
        elif isinstance(event, CompleteEvent):
            typer.echo()


def scrub(
    input_file: Annotated[
        Path,
        typer.Argument(help="HAR file to scrub (.har or .har.gz)"),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output filename (default: input.scrubbed.har)"),
    ] = None,
    concurrency: Annotated[
        int,
        typer.Option("--concurrency", "-j", help="Entries processed at the same time (default: 4)"),
    ] = 4,
    patterns: Annotated[
        Path | None,
        typer.Option("--patterns", "-p", help="Custom patterns JSON file"),
    ] = None,
    ollama_model: Annotated[
        str | None,
        typer.Option(
            "--ollama-model",
            "-m",
            envvar="HAR_SCRUBBER_OLLAMA_MODEL",
            help="Local Ollama model for summaries and field classification",
        ),
    ] = None,
    ollama_host: Annotated[
        str | None,
        typer.Option("--ollama-host", envvar="OLLAMA_HOST", help="Ollama server URL"),
    ] = None,
    no_summaries: Annotated[
        bool,
        typer.Option("--no-summaries", help="Drop model-generated summaries from the output"),
    ] = False,
    events: Annotated[
        bool,
        typer.Option("--events", help="Print the event stream as JSON lines"),
    ] = False,
    compress: Annotated[
        bool,
        typer.Option("--compress", "-c", help="Also create compressed .har.gz file"),
    ] = False,
    max_size: Annotated[
        int | None,
        typer.Option("--max-size", help="Max file size in MB (default: 100, 0=unlimited)"),
    ] = 100,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log each pipeline stage"),
    ] = False,
) -> None:
    """Remove sensitive data from a HAR file.

    Strips cookies, auth headers and query strings, replaces sensitive
    fields in JSON and form bodies, and scrubs e-mails, card numbers,
    IDs and secrets from the remaining text.

    With --ollama-model, a local model also summarizes API calls and
    picks sensitive fields per response; rule-based scrubbing still runs
    on every entry.

    Args:
        input_file: HAR file to scrub
        output: Output filename (default: input.scrubbed.har)
        concurrency: Entries processed at the same time
        patterns: Custom patterns JSON file to merge with defaults
        ollama_model: Ollama model name enabling the optional stages
        ollama_host: Ollama server URL
        no_summaries: Drop model-generated summaries from the output
        events: Print the event stream as JSON lines
        compress: Also create compressed .har.gz file
        max_size: Maximum file size in MB (default: 100, 0=unlimited)
        verbose: Log each pipeline stage

    Example:
        har-scrubber scrub device.har
        har-scrubber scrub device.har --output clean.har --compress
        har-scrubber scrub device.har --ollama-model llama3.2 --concurrency 2
        har-scrubber scrub device.har --events > events.jsonl
    """
    from har_scrubber.pipeline import ScrubError, scrub_har_file
    from har_scrubber.redaction import HarSizeError

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not input_file.exists():
        typer.echo(f"Error: File not found: {input_file}", err=True)
        raise typer.Exit(1)

    if concurrency < 1:
        typer.echo(f"Error: concurrency must be >= 1, got {concurrency}", err=True)
        raise typer.Exit(1)

    if max_size is not None and max_size < 0:
        typer.echo(f"Error: max-size must be >= 0, got {max_size}", err=True)
        raise typer.Exit(1)

    max_size_bytes: int | None = None
    if max_size is not None and max_size > 0:
        max_size_bytes = max_size * 1024 * 1024

    provider = None
    if ollama_model:
        try:
            from har_scrubber.pipeline.ollama import OllamaCapabilities
        except ImportError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
        provider = OllamaCapabilities(ollama_model, host=ollama_host)

    if not events:
        typer.echo(f"Scrubbing {input_file}...")
        if provider is None:
            typer.echo("  Using rule-based scrubbing")
        else:
            typer.echo(f"  Using local model {ollama_model} when available")

    try:
        result_path = scrub_har_file(
            input_file,
            output,
            provider=provider,
            concurrency=concurrency,
            custom_patterns=str(patterns) if patterns else None,
            max_size=max_size_bytes,
            include_summaries=not no_summaries,
            on_event=_EventPrinter(events),
        )
        if not events:
            typer.echo(f"  Scrubbed: {result_path}")

        if compress:
            compressed_path = Path(result_path).with_suffix(".har.gz")
            with open(result_path, "rb") as f_in, gzip.open(compressed_path, "wb", compresslevel=9) as f_out:
                f_out.write(f_in.read())
            if not events:
                gz_size = compressed_path.stat().st_size / 1024 / 1024
                typer.echo(f"  Compressed: {compressed_path} ({gz_size:.1f} MB)")
    except HarSizeError as e:
        size_mb = e.size / 1024 / 1024
        limit_mb = e.max_size / 1024 / 1024
        typer.echo(f"Error: File too large ({size_mb:.1f} MB > {limit_mb:.1f} MB limit)", err=True)
        typer.echo("  Use --max-size to increase limit or --max-size 0 to disable", err=True)
        raise typer.Exit(1) from None
    except ScrubError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except PatternLoadError as e:
        typer.echo(f"Error: Failed to load patterns: {e}", err=True)
        raise typer.Exit(1) from None
    except OSError as e:
        typer.echo(f"Error: I/O error: {e}", err=True)
        raise typer.Exit(1) from None

    if not events:
        typer.echo()
        typer.echo("WARNING: Automated scrubbing is best-effort.")
        typer.echo("Before sharing, search the .har file for names, account numbers,")
        typer.echo("and any values specific to your own account.")
