# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
StreamingChannel — delivery over a persistent hub connection.

Phases:

    DISCONNECTED --start()/retry--> CONNECTING --ok--> CONNECTED
    CONNECTING  --fail--> DISCONNECTED (+ one backoff retry timer)
    CONNECTED   --transport dropped--> RECONNECTING (transport retries itself)
    RECONNECTING --transport back--> CONNECTED
    RECONNECTING --transport gave up--> DISCONNECTED (+ backoff retry timer)

Streaming channels never queue: a publish while not CONNECTED is counted
and dropped, the next sampling tick supersedes it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum

from ..lib.backoff import BackoffScheduler
from ..lib.config import STREAMING, ChannelConfig
from ..lib.snapshot import Envelope
from .base import Channel

log = logging.getLogger(__name__)

HUB_METHOD = "SendPlayerData"


class Phase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class StreamingState:
    phase: Phase = Phase.DISCONNECTED
    available: bool = False
    attempts: int = 0
    retry_deadline: float | None = None
    last_retry_delay: float | None = None
    failures: int = 0
    skipped: int = 0


class StreamingChannel(Channel):
    kind = STREAMING

    def __init__(self, config: ChannelConfig, transport, backoff: BackoffScheduler | None = None):
        super().__init__(config)
        self.transport = transport
        self.backoff = backoff or BackoffScheduler(
            config.initial_delay, config.max_delay, config.backoff_factor)
        self.state = StreamingState()
        self._retry_handle: asyncio.TimerHandle | None = None
        self._connect_task: asyncio.Task | None = None
        self._stopped = False

        transport.on_close(self._on_transport_closed)
        transport.on_reconnecting(self._on_transport_reconnecting)
        transport.on_reconnected(self._on_transport_reconnected)

    @property
    def connected(self) -> bool:
        return self.state.phase is Phase.CONNECTED

    # ── Lifecycle ──

    async def start(self):
        """Kick off the first connection attempt without waiting for it."""
        self._stopped = False
        if self.state.phase is Phase.DISCONNECTED and self._connect_task is None:
            self._connect_task = self._spawn(self._connect())

    async def stop(self):
        self._stopped = True
        self._cancel_retry()
        await self._cancel_tasks()
        self._connect_task = None
        try:
            await self.transport.stop()
        except Exception as e:
            log.warning("[%s] Error stopping transport: %s", self.name, e)
        self.state.phase = Phase.DISCONNECTED
        self.state.available = False
        log.info("[%s] Channel stopped", self.name)

    async def _connect(self):
        self.state.phase = Phase.CONNECTING
        try:
            await self.transport.start()
        except Exception as e:
            self.state.phase = Phase.DISCONNECTED
            self.state.available = False
            log.warning("[%s] Connection start failed: %s", self.name, e)
            self._schedule_retry()
            return False
        finally:
            self._connect_task = None
        self._cancel_retry()
        self.state.phase = Phase.CONNECTED
        self.state.available = True
        self.state.attempts = 0
        log.info("[%s] Connection started successfully (%s)", self.name, self.config.url)
        return True

    # ── Backoff retry ──

    def _schedule_retry(self):
        if self._stopped:
            return
        self.state.attempts += 1
        delay = self.backoff.next_delay(self.state.attempts)
        self._cancel_retry()
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(delay, self._on_retry_timer)
        self.state.retry_deadline = time.monotonic() + delay
        self.state.last_retry_delay = delay
        log.info("[%s] Scheduling reconnect attempt %d in %dms",
                 self.name, self.state.attempts, round(delay * 1000))

    def _cancel_retry(self):
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        self.state.retry_deadline = None

    def _on_retry_timer(self):
        self._retry_handle = None
        self.state.retry_deadline = None
        if self._stopped or self.state.phase is not Phase.DISCONNECTED:
            return
        self._connect_task = self._spawn(self._connect())

    # ── Transport events ──

    def _on_transport_reconnecting(self, error):
        self.state.phase = Phase.RECONNECTING
        self.state.available = False
        log.warning("[%s] Connection lost, reconnecting... %s", self.name, error or "")

    def _on_transport_reconnected(self, connection_id):
        self.state.phase = Phase.CONNECTED
        self.state.available = True
        self.state.attempts = 0
        log.info("[%s] Connection reestablished. Connection ID: %s", self.name, connection_id)

    def _on_transport_closed(self, error):
        self.state.phase = Phase.DISCONNECTED
        self.state.available = False
        log.warning("[%s] Connection closed%s", self.name, f": {error}" if error else "")
        self._schedule_retry()

    # ── Publishing ──

    def publish(self, envelope: Envelope):
        if self.state.phase is not Phase.CONNECTED:
            self.state.skipped += 1
            log.debug("[%s] Not connected (%s), skipping send",
                      self.name, self.state.phase.value)
            return
        self._spawn(self._send(envelope))

    async def _send(self, envelope: Envelope):
        try:
            await asyncio.wait_for(
                self.transport.invoke(HUB_METHOD, envelope.to_payload()),
                self.config.invoke_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Stays CONNECTED: the transport owns reconnection
            self.state.available = False
            self.state.failures += 1
            log.error("[%s] Error sending to hub: %s", self.name,
                      e if str(e) else type(e).__name__)
            return False
        self.state.available = True
        self.state.failures = 0
        self._mark_delivered(envelope)
        log.debug("[%s] Data sent: %s", self.name, envelope.snapshot.title)
        return True

    def status(self) -> dict:
        s = self.state
        return {
            "name": self.name,
            "kind": self.kind,
            "url": self.config.url,
            "phase": s.phase.value,
            "available": s.available,
            "reconnect_attempts": s.attempts,
            "retry_in": (max(0.0, s.retry_deadline - time.monotonic())
                         if s.retry_deadline is not None else None),
            "consecutive_failures": s.failures,
            "skipped": s.skipped,
            "delivered": self.delivered,
        }
