"""
Source Data Providers — where snapshots come from.

A provider answers one question per tick: what is playing right now?
It returns a Snapshot, or None when there is nothing to report (no player,
no title).  The relay behaves the same whichever provider is configured.

Current providers:
  sonos  — a Sonos speaker via SoCo (``source.ip`` required)
  demo   — a built-in playlist advancing in real time (default)
"""

import logging

from .base import Provider
from .demo import DemoProvider

logger = logging.getLogger(__name__)

__all__ = ["Provider", "DemoProvider", "create_provider"]


def create_provider(source: dict, timeout: float = 1.0) -> Provider:
    """Build the provider selected by the config ``source`` section.

    *timeout* bounds a single sample; the publisher passes its tick interval.
    """
    kind = (source.get("type") or "demo").lower()
    if kind == "demo":
        return DemoProvider()
    if kind == "sonos":
        ip = source.get("ip")
        if not ip:
            raise ValueError("source.ip is required for the sonos provider")
        from .sonos import SonosProvider
        return SonosProvider(ip, timeout=timeout)
    raise ValueError(f"Unknown source type: {kind}")
