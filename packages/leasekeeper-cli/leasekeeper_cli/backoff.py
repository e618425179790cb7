"""Backoff schedule for polling a busy lease"""
import random
from dataclasses import dataclass
from typing import Iterator


@dataclass
class BackoffPolicy:
    """
    Pause schedule for polling a busy lease.

    The n-th pause (n from 1) is base_delay * factor**(n-1), never more than
    max_delay. With jitter the pause is spread by +/- jitter_range so waiting
    processes do not retry in lockstep.
    """
    base_delay: float = 0.5
    factor: float = 1.8
    max_delay: float = 10.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        exponent = attempt - 1 if attempt > 1 else 0
        delay = min(self.base_delay * self.factor ** exponent, self.max_delay)
        if self.jitter:
            delay *= random.uniform(1 - self.jitter_range, 1 + self.jitter_range)
        return delay

    def delays(self) -> Iterator[float]:
        """Endless pauses for attempts 1, 2, 3, ..."""
        attempt = 1
        while True:
            yield self.next_delay(attempt)
            attempt += 1
