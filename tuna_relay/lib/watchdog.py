# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""systemd notify support for the relay service.

Announces READY=1 once the publisher is running and keeps sending
WATCHDOG=1 while the sampling loop is alive.  Everything is a no-op when
NOTIFY_SOCKET is unset (dev mode, tests).

Usage:
    from tuna_relay.lib.watchdog import watchdog_loop
    asyncio.create_task(watchdog_loop(publisher.alive))
"""

import asyncio
import logging
import os
import socket
from typing import Callable

logger = logging.getLogger(__name__)


def sd_notify(msg: str) -> bool:
    """Send *msg* to the systemd notify socket. Returns False if there is none."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.debug("sd_notify(%s) failed: %s", msg, e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(alive: Callable[[], bool], interval: float = 20):
    """Heartbeat every *interval* seconds for as long as ``alive()`` holds.

    When the guarded loop dies the heartbeat stops and systemd restarts us
    (requires WatchdogSec= in the unit file).
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ss)", interval)
    while alive():
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
    logger.warning("Sampling loop stopped — watchdog heartbeat ends")
