"""Tests for CLI main module."""

from __future__ import annotations

import pytest


class TestCliImport:
    """Tests for CLI import availability."""

    def test_can_import_cli_with_typer(self) -> None:
        """Test CLI can be imported when typer is available."""
        pytest.importorskip("typer")
        from har_scrubber.cli.main import app

        assert app is not None

    def test_version_option(self) -> None:
        """Test version option works."""
        pytest.importorskip("typer")
        from typer.testing import CliRunner

        from har_scrubber import __version__
        from har_scrubber.cli.main import app

        runner = CliRunner()
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"har-scrubber {__version__}" in result.stdout

    def test_help_lists_scrub(self) -> None:
        """Test the scrub command is registered."""
        pytest.importorskip("typer")
        from typer.testing import CliRunner

        from har_scrubber.cli.main import app

        result = CliRunner().invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "scrub" in result.stdout
