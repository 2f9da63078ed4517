# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Snapshot / Envelope — the values that flow through the relay.

A Snapshot is one observation of "what is playing".  Providers build them,
the ChangeFilter compares them, and every accepted one is wrapped in an
Envelope (origin + timestamp) that all channels share read-only.

Wire shape (identical for hub and HTTP collectors):

    {
      "data": {"cover": "...", "title": "...", "artists": [...],
               "status": "playing", "progress": 61000, "duration": 215000,
               "album_url": "..."},
      "hostname": "living-room",
      "timestamp": "2026-01-01T12:00:00.000Z"
    }
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Status(str, Enum):
    PLAYING = "playing"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


def parse_timecode(value: str | None) -> int:
    """Convert a ``M:SS`` or ``H:MM:SS`` position to milliseconds.

    Empty, malformed or non-time values (Sonos reports ``NOT_IMPLEMENTED``
    for radio streams) yield 0.
    """
    if not value:
        return 0
    try:
        parts = [int(p) for p in value.strip().split(":")]
    except ValueError:
        return 0
    if any(p < 0 for p in parts):
        return 0
    if len(parts) == 2:
        minutes, seconds = parts
        return (minutes * 60 + seconds) * 1000
    if len(parts) == 3:
        hours, minutes, seconds = parts
        return (hours * 3600 + minutes * 60 + seconds) * 1000
    return 0


@dataclass(frozen=True)
class Snapshot:
    title: str
    artists: tuple[str, ...] = ()
    status: Status = Status.UNKNOWN
    progress_ms: int = 0
    duration_ms: int = 0
    cover: str = ""
    album_url: str = ""

    def __post_init__(self):
        if not self.title:
            raise ValueError("Snapshot.title is required")
        if self.progress_ms < 0 or self.duration_ms < 0:
            raise ValueError("progress_ms and duration_ms must be non-negative")
        # Normalise so equality stays structural whatever the provider passed
        object.__setattr__(self, "artists", tuple(self.artists))
        object.__setattr__(self, "status", Status(self.status))
        object.__setattr__(self, "cover", self.cover or "")
        object.__setattr__(self, "album_url", self.album_url or "")

    def to_dict(self) -> dict:
        return {
            "cover": self.cover,
            "title": self.title,
            "artists": list(self.artists),
            "status": self.status.value,
            "progress": self.progress_ms,
            "duration": self.duration_ms,
            "album_url": self.album_url,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Envelope:
    """An accepted Snapshot plus delivery metadata."""

    snapshot: Snapshot
    hostname: str
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def wrap(cls, snapshot: Snapshot, hostname: str, now: datetime | None = None) -> "Envelope":
        return cls(snapshot=snapshot, hostname=hostname, timestamp=now or _utcnow())

    @property
    def iso_timestamp(self) -> str:
        ts = self.timestamp.astimezone(timezone.utc)
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_payload(self) -> dict:
        return {
            "data": self.snapshot.to_dict(),
            "hostname": self.hostname,
            "timestamp": self.iso_timestamp,
        }
