"""
Throttle Gate
=============

Minimum wall-clock spacing between admitted frames.

Rejected ticks are dropped, never queued.
"""

from typing import Optional


class ThrottleGate:
    """
    Enforces `now - last_admitted_at >= scan_interval`.

    Attributes:
        scan_interval: Minimum spacing in seconds
        last_admitted_at: Time of the last admission (None = never)
    """

    def __init__(self, scan_interval: float = 2.0) -> None:
        if scan_interval < 0:
            raise ValueError("scan_interval must be >= 0")
        self.scan_interval = scan_interval
        self.last_admitted_at: Optional[float] = None

    def is_open(self, now: float) -> bool:
        """Whether a frame at `now` would be admitted."""
        if self.last_admitted_at is None:
            return True
        return now - self.last_admitted_at >= self.scan_interval

    def mark(self, now: float) -> None:
        """Record an admission at `now`."""
        self.last_admitted_at = now

    def try_admit(self, now: float) -> bool:
        """Admit and record `now` if the interval has elapsed."""
        if not self.is_open(now):
            return False
        self.mark(now)
        return True

    def reset(self) -> None:
        self.last_admitted_at = None
