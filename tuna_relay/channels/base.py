# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for relay channels.

A channel is one outbound destination.  The publisher hands it every
accepted Envelope through ``publish()``, which must return immediately:
all network work runs in tasks the channel owns, so a slow or dead
destination never holds up the sampling loop or its siblings.

Subclass contract:

    class MyChannel(Channel):
        kind = "mine"

        async def start(self) -> None: ...
        def publish(self, envelope) -> None: ...
        async def stop(self) -> None: ...
        def status(self) -> dict: ...

Optional overrides:
    tick()  — called once per sampling tick (timers that decay per tick)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Coroutine

from ..lib.config import ChannelConfig
from ..lib.snapshot import Envelope, Snapshot

log = logging.getLogger(__name__)


class Channel(ABC):
    """Interface every outbound destination must implement."""

    kind: str = ""

    def __init__(self, config: ChannelConfig):
        self.config = config
        self.name = config.name
        self.delivered = 0
        self.last_delivered: Snapshot | None = None
        self._tasks: set[asyncio.Task] = set()

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    def publish(self, envelope: Envelope) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    def status(self) -> dict: ...

    def tick(self) -> None:
        pass  # no per-tick bookkeeping by default

    # ── Helpers for subclasses ──

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run *coro* as a task owned by this channel."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _cancel_tasks(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _mark_delivered(self, envelope: Envelope):
        snapshot = envelope.snapshot
        if snapshot == self.last_delivered:
            log.debug("[%s] Re-delivered unchanged data: %s", self.name, snapshot.title)
        self.last_delivered = snapshot
        self.delivered += 1

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} {self.config.url}>"
