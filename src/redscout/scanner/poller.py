"""Background task that refreshes server info on a fixed interval."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class InfoPoller:
    """Run ``poll`` every ``interval`` seconds on a daemon thread.

    Setting ``stop_event`` ends the loop before the next wake-up; an in-flight
    poll is left to finish. Exceptions from ``poll`` go to :attr:`on_error`
    and the loop keeps running.
    """

    def __init__(
        self,
        poll: Callable[[], object],
        interval: float,
        stop_event: threading.Event | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive; got {interval}")
        self._poll = poll
        self.interval = interval
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._thread: threading.Thread | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="redscout-info-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        self.join(timeout)

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if thread and not thread.is_alive():
            self._thread = None

    def _run(self) -> None:
        logger.debug("Info poller started (interval=%.1fs)", self.interval)
        while not self._stop.wait(self.interval):
            try:
                self._poll()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Info poll failed: %s", exc)
                if self.on_error:
                    self.on_error(exc)
            finally:
                self.ticks += 1
        logger.debug("Info poller stopped after %d ticks", self.ticks)


__all__ = ["InfoPoller"]
