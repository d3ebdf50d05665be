"""Run the har-scrubber command line with ``python -m har_scrubber``."""

from __future__ import annotations

import sys

_INSTALL_HINT = "The har-scrubber command line needs typer: pip install har-scrubber[cli]"


def main() -> None:
    """Start the typer app, or exit with an install hint when typer is missing."""
    try:
        from har_scrubber.cli.main import app
    except ImportError as e:
        print(_INSTALL_HINT, file=sys.stderr)
        print(f"Import failed: {e}", file=sys.stderr)
        sys.exit(1)
    app()


if __name__ == "__main__":
    main()
