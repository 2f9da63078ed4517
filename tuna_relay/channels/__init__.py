"""
Outbound channels for the relay.

Each channel is one destination with its own delivery and recovery policy.
The factory ``create_channel`` turns a ChannelConfig into the right channel
wired to a real transport.

Supported kinds:
  - ``streaming``      – SignalR hub over a WebSocket; transport-level
                         automatic reconnect plus exponential backoff retries
  - ``transactional``  – independent HTTP POSTs through a FIFO queue with a
                         consecutive-failure circuit breaker
"""

import logging

from ..lib.config import STREAMING, TRANSACTIONAL, ChannelConfig
from .base import Channel
from .http import HttpTransport
from .hub import HubConnection
from .streaming import StreamingChannel
from .transactional import DeliveryQueue, TransactionalChannel

logger = logging.getLogger(__name__)

__all__ = [
    "Channel",
    "DeliveryQueue",
    "HttpTransport",
    "HubConnection",
    "StreamingChannel",
    "TransactionalChannel",
    "create_channel",
]


def create_channel(config: ChannelConfig) -> Channel:
    """Build a channel for *config* with its production transport."""
    if config.kind == STREAMING:
        transport = HubConnection(config.url, reconnect_delays=config.reconnect_delays)
        channel = StreamingChannel(config, transport)
    elif config.kind == TRANSACTIONAL:
        transport = HttpTransport(config.url, timeout=config.timeout)
        channel = TransactionalChannel(config, transport)
    else:
        raise ValueError(f"Unknown channel kind: {config.kind}")
    logger.info("Channel %s: %s -> %s", config.name, config.kind, config.url)
    return channel
