"""Command line interface."""

from resilient_fetch.cli.commands import cli


__all__ = ["cli"]
