"""Debounce for bursts of sketch file changes."""
from __future__ import annotations

import logging
import time
from typing import Callable

log = logging.getLogger(__name__)


class ChangeAccumulator:
    """
    Collapses a burst of change notifications into one logical change.

    Debounce semantics:
    - Wait debounce_seconds after the last change before considering ready
    - Keep the newest change timestamp seen (that is what the relaunch records)
    - Force readiness after MAX_DEBOUNCE_SECONDS even if changes keep coming,
      so an editor that autosaves continuously still gets a restart
    """

    MAX_DEBOUNCE_SECONDS = 5.0

    def __init__(self, debounce_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            debounce_seconds: Seconds of quiet before ready
            clock: Monotonic time source, injectable for tests
        """
        self.debounce_seconds = debounce_seconds
        self._clock = clock

        self._latest: float | None = None
        self._count = 0
        self._last_change_time: float | None = None
        self._first_change_time: float | None = None

    @property
    def pending(self) -> bool:
        return self._latest is not None

    @property
    def count(self) -> int:
        return self._count

    def add_change(self, modified_at: float) -> None:
        """
        Record a change whose file timestamp is modified_at.

        Resets the debounce timer.
        """
        now = self._clock()
        if self._latest is None or modified_at > self._latest:
            self._latest = modified_at
        self._count += 1
        self._last_change_time = now
        if self._first_change_time is None:
            self._first_change_time = now

        log.debug(f"Change recorded at mtime {modified_at} (burst size: {self._count})")

    def is_ready(self) -> bool:
        """
        Returns True if either:
        - Debounce period elapsed since the last change
        - The burst has lasted longer than MAX_DEBOUNCE_SECONDS
        """
        if self._latest is None or self._last_change_time is None:
            return False

        now = self._clock()
        if self._first_change_time is not None:
            if now - self._first_change_time >= self.MAX_DEBOUNCE_SECONDS:
                log.info(f"Max debounce cap ({self.MAX_DEBOUNCE_SECONDS}s) exceeded - forcing restart")
                return True

        return now - self._last_change_time >= self.debounce_seconds

    def get_and_clear(self) -> float | None:
        """Return the newest change timestamp and reset the accumulator."""
        latest = self._latest
        self._latest = None
        self._count = 0
        self._last_change_time = None
        self._first_change_time = None
        return latest
