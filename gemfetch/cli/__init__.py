"""Command line interface."""

from gemfetch.cli.main import cli


__all__ = ["cli"]
