"""Countdown for a timed attempt. Forces submission when it reaches zero."""
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SessionTimer:
    """
    One-second countdown seeded from the test duration, less any time already
    spent when an attempt is resumed.

    There is no pause: the only ways out are expiry (which calls on_expire once)
    or the attempt being submitted, after which is_active() reports False.
    """

    def __init__(
        self,
        duration_minutes: int,
        on_expire: Callable[[], object],
        is_active: Optional[Callable[[], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
        elapsed_seconds: int = 0,
    ):
        self.time_left = max(0, int(duration_minutes) * 60 - max(0, int(elapsed_seconds)))
        self.on_expire = on_expire
        self.is_active = is_active or (lambda: True)
        self.expired = False
        self._clock = clock
        self._last_tick = clock()

    def tick(self) -> None:
        """Count down one second; fire on_expire on reaching zero."""
        if self.expired or not self.is_active():
            return
        if self.time_left > 0:
            self.time_left -= 1
        if self.time_left == 0:
            self.expired = True
            logger.info("Timer expired, forcing submission")
            self.on_expire()

    def sync(self) -> int:
        """
        Apply one tick per whole second elapsed since the last tick.

        Returns:
            Number of ticks applied
        """
        now = self._clock()
        elapsed = int(now - self._last_tick)
        if elapsed <= 0:
            return 0
        self._last_tick += elapsed
        applied = 0
        for _ in range(elapsed):
            if self.expired:
                break
            self.tick()
            applied += 1
        return applied

    @property
    def display(self) -> str:
        """Remaining time as H:MM:SS or M:SS."""
        hours, rest = divmod(self.time_left, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"
