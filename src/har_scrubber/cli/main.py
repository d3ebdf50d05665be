"""Typer application behind the ``har-scrubber`` command.

The only command is ``scrub``; the callback adds a global ``--version``.
"""

from __future__ import annotations

from typing import Annotated

try:
    import typer
except ImportError as e:
    raise ImportError("CLI dependencies not installed. Install with: pip install har-scrubber[cli]") from e

from har_scrubber import __version__
from har_scrubber.cli.scrub import scrub

app = typer.Typer(
    name="har-scrubber",
    help="Redact personal, financial and authentication data from HAR logs.",
    no_args_is_help=True,
)
app.command(name="scrub", help="Scrub a .har or .har.gz file into a shareable copy")(scrub)


def _show_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"har-scrubber {__version__}")
    raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=_show_version, is_eager=True, help="Show version and exit."),
    ] = False,
) -> None:
    r"""Redact personal, financial and authentication data from HAR logs.

    \b
    Examples:
        har-scrubber scrub session.har
        har-scrubber scrub session.har.gz -o shared.har --compress
        har-scrubber scrub session.har --ollama-model llama3.2 --events
    """
