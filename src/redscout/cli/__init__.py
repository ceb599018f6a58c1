"""Command-line interface for redscout."""

from .app import build_parser, configure_logging, main

__all__ = ["build_parser", "configure_logging", "main"]
