"""Command line interface for taskgate."""

from taskgate.cli.logging_setup import setup_logging
from taskgate.cli.main import cli

__all__ = ["cli", "setup_logging"]
