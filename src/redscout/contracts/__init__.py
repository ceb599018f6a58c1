"""Contract helpers for the redscout CLI."""

from .error import (
    ConnectivityError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    ParseError,
    ResourceError,
    ValidationError,
    VersionUnsupportedError,
    die,
    guard_cli,
)

__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "ValidationError",
    "VersionUnsupportedError",
    "ConnectivityError",
    "ResourceError",
    "ParseError",
    "guard_cli",
    "die",
]
