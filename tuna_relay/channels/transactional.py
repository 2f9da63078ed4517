# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
TransactionalChannel — independent request/response deliveries.

Envelopes go into a FIFO DeliveryQueue drained by a single task, so at most
one request per channel is ever in flight.  Consecutive failures trip the
CircuitBreaker; while it is open items keep queueing but nothing is sent.
A failed item is dropped, not retried — the next accepted snapshot
supersedes it.
"""

import logging
from collections import deque

from ..lib.circuit_breaker import CircuitBreaker
from ..lib.config import TRANSACTIONAL, ChannelConfig
from ..lib.errors import RequestFailure
from ..lib.snapshot import Envelope
from .base import Channel

log = logging.getLogger(__name__)


class DeliveryQueue:
    """Unbounded FIFO of envelopes waiting for delivery."""

    def __init__(self):
        self._items: deque[Envelope] = deque()

    def push(self, envelope: Envelope):
        self._items.append(envelope)

    def pop(self) -> Envelope:
        return self._items.popleft()

    def clear(self):
        self._items.clear()

    def __len__(self):
        return len(self._items)

    def __bool__(self):
        return bool(self._items)


class TransactionalChannel(Channel):
    kind = TRANSACTIONAL

    def __init__(self, config: ChannelConfig, transport, breaker: CircuitBreaker | None = None):
        super().__init__(config)
        self.transport = transport
        self.breaker = breaker or CircuitBreaker(config.max_failures, config.cooldown)
        self.queue = DeliveryQueue()
        self.draining = False
        self.failed = 0
        self._stopped = False

    async def start(self):
        self._stopped = False
        await self.transport.start()

    async def stop(self):
        self._stopped = True
        await self._cancel_tasks()
        self.draining = False
        if self.queue:
            log.info("[%s] Dropping %d undelivered item(s) on shutdown", self.name, len(self.queue))
            self.queue.clear()
        await self.transport.stop()
        log.info("[%s] Channel stopped", self.name)

    def publish(self, envelope: Envelope):
        """Enqueue; draining starts unless the breaker is open."""
        if self._stopped:
            return
        self.queue.push(envelope)
        if self.breaker.is_open and not self.breaker.poll():
            log.debug("[%s] Breaker open (%.1fs left), queued (%d pending)",
                      self.name, self.breaker.cooldown_remaining(), len(self.queue))
            return
        self._kick()

    def tick(self):
        if self.breaker.poll():
            log.info("[%s] Cooldown elapsed, resuming delivery (%d pending)",
                     self.name, len(self.queue))
            self._kick()

    def _kick(self):
        if self._stopped or self.draining or not self.queue or self.breaker.is_open:
            return
        self.draining = True
        self._spawn(self._drain())

    async def _drain(self):
        try:
            while self.queue and not self.breaker.is_open and not self._stopped:
                envelope = self.queue.pop()
                if await self._deliver(envelope):
                    self.breaker.record_success()
                elif self.breaker.record_failure():
                    log.warning("[%s] %d consecutive failures, pausing delivery for %.0fs",
                                self.name, self.breaker.max_failures, self.breaker.cooldown)
        finally:
            self.draining = False

    async def _deliver(self, envelope: Envelope) -> bool:
        try:
            status = await self.transport.post(envelope.to_payload())
        except RequestFailure as e:
            self.failed += 1
            log.warning("[%s] Delivery failed: %s", self.name, e)
            return False
        except Exception as e:
            self.failed += 1
            log.error("[%s] Delivery unexpected error: %s", self.name, e)
            return False
        self._mark_delivered(envelope)
        log.debug("[%s] Delivered %s (HTTP %d)", self.name, envelope.snapshot.title, status)
        return True

    def status(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind,
            "url": self.config.url,
            "breaker": "open" if self.breaker.is_open else "closed",
            "cooldown_remaining": self.breaker.cooldown_remaining(),
            "consecutive_failures": self.breaker.failures,
            "queued": len(self.queue),
            "draining": self.draining,
            "delivered": self.delivered,
            "failed": self.failed,
        }
