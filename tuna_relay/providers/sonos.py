# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Sonos provider — reports what a Sonos speaker (or its group coordinator)
is playing.  SoCo is blocking, so every read runs in a small thread pool.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor

from soco import SoCo

from ..lib.snapshot import Snapshot, Status, parse_timecode
from .base import Provider

logger = logging.getLogger(__name__)

COORDINATOR_TTL = 30  # seconds between group coordinator lookups

_TRANSPORT_STATES = {
    "PLAYING": Status.PLAYING,
    "TRANSITIONING": Status.PLAYING,
    "PAUSED_PLAYBACK": Status.STOPPED,
    "STOPPED": Status.STOPPED,
}


def snapshot_from_sonos(track_info: dict, transport_info: dict, speaker_ip: str) -> Snapshot | None:
    """Map SoCo's track/transport dicts to a Snapshot (None if no title)."""
    title = (track_info.get("title") or "").strip()
    if not title:
        return None

    artist = (track_info.get("artist") or "").strip()
    cover = track_info.get("album_art") or ""
    if cover.startswith("/"):
        cover = f"http://{speaker_ip}:1400{cover}"

    state = (transport_info.get("current_transport_state") or "").upper()
    return Snapshot(
        title=title,
        artists=(artist,) if artist else (),
        status=_TRANSPORT_STATES.get(state, Status.UNKNOWN),
        progress_ms=parse_timecode(track_info.get("position")),
        duration_ms=parse_timecode(track_info.get("duration")),
        cover=cover,
    )


def _consume_result(future):
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Late Sonos read failed: %s", future.exception())


class SonosProvider(Provider):
    id = "sonos"

    def __init__(self, ip: str, speaker=None, timeout: float = 1.0):
        self.ip = ip
        self.timeout = timeout
        self._inflight: asyncio.Future | None = None
        self.speaker = speaker or SoCo(ip)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="sonos")
        self._coordinator = None
        self._coordinator_checked = 0.0

    def _get_coordinator(self):
        """Group coordinator with caching; falls back to the speaker itself."""
        now = time.monotonic()
        if self._coordinator is not None and now - self._coordinator_checked < COORDINATOR_TTL:
            return self._coordinator
        try:
            coordinator = self.speaker.group.coordinator
            if not (coordinator and coordinator.ip_address):
                coordinator = self.speaker
        except Exception as e:
            logger.debug("Error getting coordinator, using speaker %s: %s", self.ip, e)
            coordinator = self.speaker
        if self._coordinator is not None and coordinator is not self._coordinator:
            logger.info("Sonos coordinator changed to %s", getattr(coordinator, "ip_address", "?"))
        self._coordinator = coordinator
        self._coordinator_checked = now
        return coordinator

    def _read(self) -> Snapshot | None:
        coordinator = self._get_coordinator()
        track_info = coordinator.get_current_track_info()
        transport_info = coordinator.get_current_transport_info()
        return snapshot_from_sonos(track_info, transport_info,
                                   getattr(coordinator, "ip_address", self.ip))

    async def sample(self) -> Snapshot | None:
        """Read now-playing, giving up after ``timeout`` seconds.

        A read that timed out keeps its worker thread; no new read starts
        until it finishes, so a hung speaker cannot pile up requests.
        """
        if self._inflight is not None and not self._inflight.done():
            logger.debug("Sonos %s: previous read still running, skipping", self.ip)
            return None
        loop = asyncio.get_running_loop()
        self._inflight = loop.run_in_executor(self._executor, self._read)
        try:
            return await asyncio.wait_for(asyncio.shield(self._inflight), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Sonos %s did not answer within %.1fs", self.ip, self.timeout)
            self._inflight.add_done_callback(_consume_result)
            return None
        except Exception as e:
            logger.warning("Sonos %s unreachable: %s", self.ip, e)
            self._coordinator = None
            return None

    async def close(self):
        self._executor.shutdown(wait=False)
