"""Line codecs for the two working logs and the live command stream."""

from __future__ import annotations

import re
from dataclasses import dataclass

from redscout.contracts.error import ParseError
from redscout.core.ops import SCRIPT_COMMANDS

_QUOTED_TOKEN_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')


@dataclass(frozen=True, slots=True)
class ScanRecord:
    """One sampled key: ``<key> <memory-bytes> <ttl-seconds> <type>``."""

    key: str
    memory: int
    ttl: int
    type: str

    def to_line(self) -> str:
        return f"{self.key} {self.memory} {self.ttl} {self.type}\n"

    @classmethod
    def parse(cls, line: str) -> ScanRecord:
        fields = line.split()
        if len(fields) != 4:
            raise ParseError(f"scan record needs 4 fields, got {len(fields)}: {line!r}")
        key, raw_memory, raw_ttl, key_type = fields
        try:
            return cls(key=key, memory=int(raw_memory), ttl=int(raw_ttl), type=key_type)
        except ValueError as exc:
            raise ParseError(f"scan record has non-integer size or ttl: {line!r}") from exc


@dataclass(frozen=True, slots=True)
class OpRecord:
    """One observed command: ``<key> <command>``; ``key`` may be empty."""

    key: str
    command: str

    def to_line(self) -> str:
        return f"{self.key} {self.command}\n"

    @classmethod
    def parse(cls, line: str) -> OpRecord:
        # Keyless commands are written with an empty key, split to one field and
        # are rejected here: they cannot be attributed to a namespace or hot key.
        fields = line.split()
        if len(fields) != 2:
            raise ParseError(f"operation record needs 2 fields, got {len(fields)}: {line!r}")
        return cls(key=fields[0], command=fields[1])


def parse_monitor_line(line: str) -> OpRecord | None:
    """Extract ``(key, command)`` from a MONITOR entry.

    The first quoted token is the command and the second, if present, the key.
    Script evaluation entries return ``None`` because their arguments are an
    opaque payload rather than keys. Entries without any quoted token raise
    :class:`ParseError`.
    """

    tokens = _QUOTED_TOKEN_RE.findall(line)
    if not tokens:
        raise ParseError(f"no command in monitor line: {line!r}")
    command = tokens[0].lower()
    if command in SCRIPT_COMMANDS:
        return None
    key = tokens[1] if len(tokens) > 1 else ""
    return OpRecord(key=key, command=command)


__all__ = ["ScanRecord", "OpRecord", "parse_monitor_line"]
