"""Hierarchical key model: delimiter segmentation and wildcard-id inference."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Pattern

WILDCARD = "{id}"

# Ordered segments; the empty tuple is the root namespace.
Key = tuple[str, ...]


class KeyModelError(ValueError):
    """Base class for key/prefix relationship failures."""


class NotAChildError(KeyModelError):
    """Raised when a key does not live below the given prefix."""


class ExactMatchError(KeyModelError):
    """Raised when a key is the prefix itself and so has no child segment."""


class EmptySegmentError(KeyModelError):
    """Raised when appending an empty segment to a prefix."""


class EmptyKeyError(KeyModelError):
    """Raised when popping a segment from the root key."""


def compile_id_patterns(patterns: Iterable[str | Pattern[str]]) -> tuple[Pattern[str], ...]:
    """Compile identifier patterns; strings are matched against whole segments."""

    compiled: list[Pattern[str]] = []
    for pattern in patterns:
        if isinstance(pattern, str):
            compiled.append(re.compile(pattern))
        else:
            compiled.append(pattern)
    return tuple(compiled)


class KeyParser:
    """Stateless key parser configured with a delimiter and id patterns."""

    __slots__ = ("delimiter", "id_patterns")

    def __init__(
        self, delimiter: str = ":", id_patterns: Iterable[str | Pattern[str]] = ()
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        self.delimiter = delimiter
        self.id_patterns = compile_id_patterns(id_patterns)

    def matches_id(self, segment: str) -> bool:
        return any(pattern.fullmatch(segment) for pattern in self.id_patterns)

    def _collapse(self, segment: str) -> str:
        return WILDCARD if self.matches_id(segment) else segment

    def tokenize(self, raw: str, infer_ids: bool = False) -> Key:
        """Split ``raw`` into segments, collapsing id-like segments when asked.

        A string without the delimiter is returned as a single segment, as-is.
        """

        if not raw:
            return ()
        if self.delimiter not in raw:
            return (raw,)
        parts = raw.split(self.delimiter)
        if infer_ids:
            return tuple(self._collapse(part) for part in parts)
        return tuple(parts)

    def join(self, key: Key) -> str:
        return self.delimiter.join(key)

    def is_prefix_of(self, key: Key, prefix: Key) -> bool:
        if len(prefix) > len(key):
            return False
        for segment, expected in zip(key, prefix):
            if expected == WILDCARD:
                # An already-collapsed key segment also satisfies the wildcard.
                if segment != WILDCARD and not self.matches_id(segment):
                    return False
            elif segment != expected:
                return False
        return True

    def namespace_of(self, key: Key, prefix: Key, infer_ids: bool = False) -> str:
        """Return the immediate child segment of ``key`` below ``prefix``."""

        if not self.is_prefix_of(key, prefix):
            raise NotAChildError(
                f"key {self.join(key)!r} is not a child of prefix {self.join(prefix)!r}"
            )
        if len(key) == len(prefix):
            raise ExactMatchError(
                f"key {self.join(key)!r} is exactly the prefix {self.join(prefix)!r}"
            )
        segment = key[len(prefix)]
        return self._collapse(segment) if infer_ids else segment

    def append(self, prefix: Key, segment: str, infer_ids: bool = True) -> Key:
        if not segment:
            raise EmptySegmentError("cannot append an empty segment")
        if infer_ids:
            segment = self._collapse(segment)
        return (*prefix, segment)

    @staticmethod
    def pop(key: Key) -> Key:
        if not key:
            raise EmptyKeyError("cannot pop a segment from the root key")
        return key[:-1]


__all__ = [
    "WILDCARD",
    "Key",
    "KeyParser",
    "KeyModelError",
    "NotAChildError",
    "ExactMatchError",
    "EmptySegmentError",
    "EmptyKeyError",
    "compile_id_patterns",
]
