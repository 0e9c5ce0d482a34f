"""In-memory brute-force throttle for the login forms."""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 15 * 60
MAX_ATTEMPTS = 25
# expired rows are swept once this many addresses are tracked
SWEEP_THRESHOLD = 1000


class ThrottleDecision(str, enum.Enum):
    ALLOWED = "allowed"
    LOCKED = "locked"


@dataclass
class _Window:
    count: int
    window_start: float


class LoginThrottle:
    """
    Count failed logins per client address in a fixed window.

    An address is locked once it reaches ``limit`` failures inside the window and
    stays locked until the window expires. A successful login clears it. State is
    per-process; read-modify-write happens without awaiting, so it is consistent
    on a single event loop but not across threads or workers.
    """

    def __init__(
        self,
        limit: int = MAX_ATTEMPTS,
        window_seconds: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sweep_threshold: int = SWEEP_THRESHOLD,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self.sweep_threshold = sweep_threshold
        self._windows: Dict[str, _Window] = {}

    def check(self, address: str) -> ThrottleDecision:
        row = self._windows.get(address)
        if row is None:
            return ThrottleDecision.ALLOWED
        if self.clock() - row.window_start > self.window_seconds:
            del self._windows[address]
            return ThrottleDecision.ALLOWED
        if row.count >= self.limit:
            return ThrottleDecision.LOCKED
        return ThrottleDecision.ALLOWED

    def record_failure(self, address: str) -> int:
        """Count one failed attempt and return the in-window total."""
        if len(self._windows) >= self.sweep_threshold:
            self.prune()
        now = self.clock()
        row = self._windows.get(address)
        if row is None or now - row.window_start > self.window_seconds:
            row = _Window(count=0, window_start=now)
            self._windows[address] = row
        row.count += 1
        if row.count == self.limit:
            logger.warning(f"Locking out {address} after {row.count} failed logins")
        return row.count

    def prune(self) -> int:
        """Forget every address whose window has expired; returns how many were dropped."""
        now = self.clock()
        expired = [
            address for address, row in self._windows.items()
            if now - row.window_start > self.window_seconds
        ]
        for address in expired:
            del self._windows[address]
        return len(expired)

    def tracked(self) -> int:
        return len(self._windows)

    def reset(self, address: str) -> None:
        self._windows.pop(address, None)

    def attempts(self, address: str) -> int:
        row = self._windows.get(address)
        return row.count if row else 0
