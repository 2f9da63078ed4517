# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Demo provider — plays through a fixed playlist in real time.

Handy for exercising the channels without a real player.  Every track runs
for its full duration, then the next one starts; after the last track the
player reports "stopped" for one track length before starting over.
"""

import time
from typing import Callable

from ..lib.snapshot import Snapshot, Status
from .base import Provider

PLAYLIST = [
    {
        "title": "Welcome",
        "artists": ("Tuna Relay",),
        "duration_ms": 30_000,
        "cover": "",
    },
    {
        "title": "Backoff Blues",
        "artists": ("The Retries", "Max Delay"),
        "duration_ms": 45_000,
        "cover": "",
    },
    {
        "title": "Open Circuit",
        "artists": ("Cooldown",),
        "duration_ms": 20_000,
        "cover": "",
    },
]


class DemoProvider(Provider):
    id = "demo"

    def __init__(self, playlist=None, clock: Callable[[], float] = time.monotonic):
        self.playlist = list(playlist or PLAYLIST)
        self._clock = clock
        self._started = clock()

    def _position(self) -> tuple[int, int, bool]:
        """(track index, progress ms, playing) for the current clock."""
        elapsed = int((self._clock() - self._started) * 1000)
        lengths = [t["duration_ms"] for t in self.playlist]
        cycle = sum(lengths) + lengths[-1]  # trailing pause
        offset = elapsed % cycle
        for index, length in enumerate(lengths):
            if offset < length:
                return index, offset, True
            offset -= length
        return len(lengths) - 1, lengths[-1], False

    async def sample(self) -> Snapshot | None:
        if not self.playlist:
            return None
        index, progress, playing = self._position()
        track = self.playlist[index]
        return Snapshot(
            title=track["title"],
            artists=track["artists"],
            status=Status.PLAYING if playing else Status.STOPPED,
            progress_ms=progress,
            duration_ms=track["duration_ms"],
            cover=track.get("cover", ""),
        )
