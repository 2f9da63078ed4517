#!/usr/bin/env python3
# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Tuna Relay publisher (tuna-relay)

Samples the configured Source Data Provider once per refresh interval,
drops snapshots the ChangeFilter considers unchanged, and fans every
accepted one out to all configured channels.  Each channel recovers from
its own failures; nothing a channel does can stall the sampling loop.

Optional status endpoint: GET /status on ``status_port``.
"""

import argparse
import asyncio
import logging
import os
import signal
import time

from aiohttp import web

from .channels import Channel, create_channel
from .lib.change_filter import ChangeFilter
from .lib.config import CONFIG_ENV, RelayConfig, reload_config
from .lib.snapshot import Envelope
from .lib.watchdog import sd_notify, watchdog_loop
from .providers import Provider, create_provider

logger = logging.getLogger(__name__)


class Publisher:
    """Owns the channels and the sampling loop."""

    def __init__(self, provider: Provider, channels: list[Channel], *,
                 hostname: str, interval: float = 1.0,
                 change_filter: ChangeFilter | None = None):
        self.provider = provider
        self.channels = list(channels)
        self.hostname = hostname
        self.interval = interval
        self.change_filter = change_filter or ChangeFilter()
        self.running = False
        self.ticks = 0
        self.accepted = 0
        self.last_tick: float | None = None
        self._loop_task: asyncio.Task | None = None

    # ── Sampling ──

    async def tick(self) -> bool:
        """Sample once and dispatch if changed. Returns True if dispatched."""
        self.ticks += 1
        for channel in self.channels:
            try:
                channel.tick()
            except Exception as e:
                logger.error("[%s] tick failed: %s", channel.name, e)

        try:
            snapshot = await self.provider.sample()
        except Exception as e:
            logger.warning("Provider %s failed: %s", self.provider.id, e)
            return False
        if snapshot is None:
            return False
        if not self.change_filter.should_send(snapshot):
            return False

        self.accepted += 1
        envelope = Envelope.wrap(snapshot, self.hostname)
        logger.info("Now %s: %s — %s", snapshot.status.value, snapshot.title,
                    ", ".join(snapshot.artists) or "?")
        for channel in self.channels:
            try:
                channel.publish(envelope)
            except Exception as e:
                logger.error("[%s] publish failed: %s", channel.name, e)
        return True

    async def _run(self):
        loop = asyncio.get_running_loop()
        while self.running:
            started = loop.time()
            try:
                await self.tick()
            except Exception as e:
                logger.error("Sampling tick failed: %s", e)
            self.last_tick = time.monotonic()
            await asyncio.sleep(max(0.0, self.interval - (loop.time() - started)))

    # ── Lifecycle ──

    async def start(self):
        self.running = True
        for channel in self.channels:
            try:
                await channel.start()
            except Exception as e:
                logger.error("[%s] start failed: %s", channel.name, e)
        self.last_tick = time.monotonic()
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Publishing to %d channel(s) every %dms as %s",
                    len(self.channels), round(self.interval * 1000), self.hostname)

    async def stop(self):
        self.running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        await asyncio.gather(*(c.stop() for c in self.channels), return_exceptions=True)
        await self.provider.close()
        logger.info("Publisher stopped")

    def alive(self, max_age: float | None = None) -> bool:
        """True while the sampling loop runs and finished a tick within *max_age*
        seconds (default: a minute, or three intervals if that is longer)."""
        if max_age is None:
            max_age = max(60.0, self.interval * 3)
        task = self._loop_task
        if task is None or task.done() or self.last_tick is None:
            return False
        return time.monotonic() - self.last_tick < max_age

    def status(self) -> dict:
        return {
            "hostname": self.hostname,
            "running": self.running,
            "ticks": self.ticks,
            "accepted": self.accepted,
            "last_accepted": (self.change_filter.last_accepted.to_dict()
                              if self.change_filter.last_accepted else None),
            "channels": [c.status() for c in self.channels],
        }


# ---------------------------------------------------------------------------
# Status endpoint
# ---------------------------------------------------------------------------

def create_status_app(publisher: Publisher) -> web.Application:
    async def handle_status(request: web.Request) -> web.Response:
        return web.json_response(publisher.status())

    app = web.Application()
    app.router.add_get("/status", handle_status)
    return app


async def start_status_server(publisher: Publisher, port: int) -> web.AppRunner:
    runner = web.AppRunner(create_status_app(publisher))
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    logger.info("Status endpoint on http://0.0.0.0:%d/status", port)
    return runner


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_publisher(config: RelayConfig) -> Publisher:
    provider = create_provider(config.source, timeout=config.refresh_rate)
    channels = [create_channel(c) for c in config.channels]
    return Publisher(provider, channels, hostname=config.hostname,
                     interval=config.refresh_rate)


async def main(config: RelayConfig):
    publisher = build_publisher(config)
    await publisher.start()

    runner = None
    if config.status_port:
        runner = await start_status_server(publisher, config.status_port)

    watchdog = asyncio.create_task(watchdog_loop(publisher.alive))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)
    try:
        await stop_event.wait()
    finally:
        sd_notify("STOPPING=1")
        watchdog.cancel()
        await publisher.stop()
        if runner:
            await runner.cleanup()


def run():
    parser = argparse.ArgumentParser(description="Relay what is playing to remote collectors")
    parser.add_argument("--config", help=f"Config file path (default: ${CONFIG_ENV} or search path)")
    args = parser.parse_args()
    if args.config:
        os.environ[CONFIG_ENV] = args.config

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    reload_config()
    config = RelayConfig.load()
    logging.getLogger().setLevel(config.log_level)
    asyncio.run(main(config))


if __name__ == "__main__":
    run()
