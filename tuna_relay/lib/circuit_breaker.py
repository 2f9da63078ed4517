# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
CircuitBreaker — suspends a transactional channel after repeated failures.

Closed: requests flow, consecutive failures are counted.
Open:   after ``max_failures`` in a row, nothing is sent until ``cooldown``
        seconds have passed on the (monotonic) clock.

The breaker never closes on its own; the owning channel calls ``poll()``
on every sampling tick and before draining, which closes an expired breaker
and starts a fresh failure count.
"""

import time
from typing import Callable


class CircuitBreaker:
    def __init__(self, max_failures: int = 3, cooldown: float = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        if max_failures < 1:
            raise ValueError("max_failures must be >= 1")
        self.max_failures = max_failures
        self.cooldown = cooldown
        self.failures = 0
        self.opened_until: float | None = None
        self._clock = clock

    @property
    def is_open(self) -> bool:
        return self.opened_until is not None

    def cooldown_remaining(self) -> float:
        if self.opened_until is None:
            return 0.0
        return max(0.0, self.opened_until - self._clock())

    def record_success(self):
        self.failures = 0

    def record_failure(self) -> bool:
        """Count a failure. Returns True if this one opened the breaker."""
        self.failures += 1
        if self.failures >= self.max_failures and self.opened_until is None:
            self.opened_until = self._clock() + self.cooldown
            return True
        return False

    def poll(self) -> bool:
        """Close the breaker if its cooldown has elapsed. Returns True on close."""
        if self.opened_until is None or self._clock() < self.opened_until:
            return False
        self.opened_until = None
        self.failures = 0
        return True
