"""CLI for har-scrubber.

This module provides a Typer-based CLI for scrubbing HAR files.

Requires the 'cli' optional dependency: pip install har-scrubber[cli]
"""

from __future__ import annotations
