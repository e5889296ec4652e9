"""Background countdown driver for timed sessions."""

from __future__ import annotations

import logging
import threading
from typing import Callable


logger = logging.getLogger("assessment.ticker")


class Ticker:
    """Call `tick` once per `interval` seconds in a daemon thread.

    The loop ends when `tick` returns False (session no longer in
    progress) or when `stop()` is called.
    """

    def __init__(self, tick: Callable[[], bool], interval: float = 1.0, name: str = "ticker"):
        self._tick = tick
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "Ticker":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                if not self._tick():
                    return
            except Exception:
                logger.exception("tick_failed thread=%s", self._thread.name)
                return
