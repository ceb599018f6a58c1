"""Append-only scratch logs shared between a sampling writer and its readers."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import IO

from redscout.contracts.error import ResourceError

logger = logging.getLogger(__name__)


class WorkingLog:
    """A scratch file plus the exclusive lock every reader and writer takes.

    The file is never truncated: aggregations re-read it from the start, so
    callers hold :meth:`locked` for the whole write batch or read pass.
    """

    def __init__(self, handle: IO[str], path: Path) -> None:
        self._handle = handle
        self.path = path
        self.lock = threading.Lock()
        self.lines_written = 0

    @classmethod
    def create(cls, directory: Path, prefix: str) -> WorkingLog:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handle = tempfile.NamedTemporaryFile(  # noqa: SIM115 - closed in close()
                mode="w+",
                encoding="utf-8",
                dir=directory,
                prefix=prefix,
                suffix=".log",
                delete=False,
            )
        except OSError as exc:
            raise ResourceError(
                f"Cannot create working log in {directory}: {exc}",
                hint="Point --logs-dir at a writable directory",
            ) from exc
        logger.info("Created working log %s", handle.name)
        return cls(handle, Path(handle.name))

    @contextlib.contextmanager
    def locked(self) -> Iterator[WorkingLog]:
        with self.lock:
            yield self

    def append_lines(self, lines: Iterable[str]) -> int:
        """Append pre-terminated lines; caller must hold :attr:`lock`."""

        count = 0
        for line in lines:
            self._handle.write(line)
            count += 1
        self._handle.flush()
        self.lines_written += count
        return count

    def iter_lines(self) -> Iterator[str]:
        """Yield every line from the start; caller must hold :attr:`lock`.

        The write position is restored to the end once iteration finishes.
        """

        self._handle.flush()
        self._handle.seek(0)
        try:
            for line in self._handle:
                yield line.rstrip("\n")
        finally:
            self._handle.seek(0, os.SEEK_END)

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def close(self) -> None:
        with self.lock:
            if not self._handle.closed:
                self._handle.close()

    def remove(self) -> None:
        self.close()
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove working log %s: %s", self.path, exc)
        else:
            logger.info("Removed working log %s", self.path)


__all__ = ["WorkingLog"]
