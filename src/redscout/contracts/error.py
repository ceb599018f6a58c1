"""Error envelope helpers and exit codes for the redscout CLI."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from functools import wraps
from typing import Any, NoReturn, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Exit(IntEnum):
    """Stable exit codes shared across the CLI."""

    OK = 0
    BAD_INPUT = 2
    UNSUPPORTED = 3
    CONNECTIVITY = 4
    IO = 5


@dataclass(slots=True)
class ErrorEnvelope:
    """Machine-readable error contract for CLI failures."""

    error: str
    detail: str
    hint: str | None = None

    def to_json(self) -> str:
        payload = {"error": self.error, "detail": self.detail}
        if self.hint:
            payload["hint"] = self.hint
        return json.dumps(payload, ensure_ascii=False)


def die(code: Exit, kind: str, detail: str, hint: str | None = None) -> NoReturn:
    """Emit standardized JSON error on stderr and exit with a stable code."""

    env = ErrorEnvelope(error=kind, detail=detail, hint=hint)
    sys.stderr.write(env.to_json() + "\n")
    try:
        sys.stderr.flush()
    finally:
        sys.exit(int(code))


class EnvelopeError(Exception):
    """Base exception that carries an optional hint for the error envelope."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ValidationError(EnvelopeError):
    """Raised for invalid configuration values, before any connection attempt."""


class VersionUnsupportedError(EnvelopeError):
    """Raised when the server is older than the minimum supported version."""


class ConnectivityError(EnvelopeError):
    """Raised when the store cannot be reached or a command fails in transit."""


class ResourceError(EnvelopeError):
    """Raised when scratch logs cannot be created or written."""


class ParseError(EnvelopeError):
    """Raised for malformed log records or status lines; callers skip them."""


_EXCEPTION_ORDER: tuple[tuple[type[EnvelopeError], Exit, str], ...] = (
    (ValidationError, Exit.BAD_INPUT, "Validation"),
    (VersionUnsupportedError, Exit.UNSUPPORTED, "VersionUnsupported"),
    (ConnectivityError, Exit.CONNECTIVITY, "Connectivity"),
    (ResourceError, Exit.IO, "Resource"),
    (ParseError, Exit.BAD_INPUT, "Parse"),
)


def guard_cli(fn: Callable[..., T]) -> Callable[..., T]:
    """Decorate a CLI handler to enforce exit codes and error envelopes."""

    @wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except EnvelopeError as exc:
            for exc_type, exit_code, label in _EXCEPTION_ORDER:
                if isinstance(exc, exc_type):
                    die(exit_code, label, str(exc), hint=getattr(exc, "hint", None))
            die(Exit.BAD_INPUT, "UnhandledEnvelope", str(exc), hint=getattr(exc, "hint", None))
        except FileNotFoundError as exc:
            die(Exit.IO, "FileNotFound", str(exc))

    return _wrapped


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
