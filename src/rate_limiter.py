import logging
import threading
import time
from collections.abc import Callable

COOLDOWN_BASE = 30.0  # Seconds of cooldown after the first 429
COOLDOWN_MAX = 300.0


def cooldown_duration(consecutive_429_count: int) -> float:
    """Return cooldown seconds for the given count of consecutive 429s."""
    if consecutive_429_count <= 0:
        return 0.0
    return min(COOLDOWN_BASE * 2 ** (consecutive_429_count - 1), COOLDOWN_MAX)


class RateLimiter:
    """Request pacing and 429 cooldown state for a single provider."""

    def __init__(
        self,
        name: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.name = name
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep

        self.last_request_time: float | None = None
        self.cooldown_until = 0.0
        self.consecutive_429_count = 0

        self._lock = threading.Lock()

    def time_until_ready(self) -> float:
        """Seconds until both the interval and any cooldown have passed."""
        now = self.clock()
        wait = max(0.0, self.cooldown_until - now)
        if self.last_request_time is not None:
            wait = max(wait, self.last_request_time + self.min_interval - now)
        return wait

    def wait(self) -> None:
        """Block until a request may be sent, then claim the slot."""
        # Held across the sleep so concurrent callers are serialized
        with self._lock:
            wait = self.time_until_ready()
            if wait > 0:
                if self.cooldown_until > self.clock():
                    logging.debug(f"[{self.name}] In cooldown, waiting {wait:.1f}s")
                else:
                    logging.debug(f"[{self.name}] Rate limiting, waiting {wait:.1f}s")
                self.sleep(wait)
            self.last_request_time = self.clock()

    def record_rate_limited(self) -> float:
        """Register a 429 response and return the cooldown it started."""
        with self._lock:
            self.consecutive_429_count += 1
            duration = cooldown_duration(self.consecutive_429_count)
            self.cooldown_until = self.clock() + duration

        logging.warning(
            f"[{self.name}] 429 received (count: {self.consecutive_429_count}). "
            f"Entering cooldown for {duration:.0f}s"
        )
        return duration

    def record_success(self) -> None:
        """Clear cooldown state after a successful request."""
        with self._lock:
            if self.consecutive_429_count > 0:
                logging.info(f"[{self.name}] Cooldown reset after successful request")
            self.consecutive_429_count = 0
            self.cooldown_until = 0.0
