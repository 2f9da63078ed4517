# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Exponential reconnect delays for streaming channels."""


class BackoffScheduler:
    """``min(initial * factor ** (attempt - 1), max_delay)`` — pure, no jitter.

    Units are whatever the caller uses (the channels use seconds).
    """

    def __init__(self, initial_delay: float = 1.0, max_delay: float = 30.0,
                 factor: float = 1.5):
        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if factor < 1:
            raise ValueError("factor must be >= 1")
        if max_delay < initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.factor = factor

    def next_delay(self, attempt: int) -> float:
        """Delay before reconnect *attempt* (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        try:
            delay = self.initial_delay * self.factor ** (attempt - 1)
        except OverflowError:
            return self.max_delay
        return max(self.initial_delay, min(delay, self.max_delay))
