# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""HTTP POST transport for transactional channels."""

import asyncio
import logging

import aiohttp

from .. import __version__
from ..lib.errors import RequestFailure

logger = logging.getLogger(__name__)


class HttpTransport:
    """Posts JSON bodies to one URL; any non-2xx, network error or timeout
    is raised as RequestFailure."""

    def __init__(self, url: str, *, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def start(self):
        if self._session:
            return
        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=300,
            keepalive_timeout=60,
            force_close=False,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={"User-Agent": f"TunaRelay/{__version__}"},
        )
        logger.info("HTTP transport ready -> %s", self.url)

    async def stop(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def post(self, body: dict) -> int:
        if not self._session:
            raise RequestFailure("HTTP session not started")
        try:
            async with self._session.post(self.url, json=body) as resp:
                if not 200 <= resp.status < 300:
                    raise RequestFailure(f"HTTP {resp.status} from {self.url}", status=resp.status)
                return resp.status
        except asyncio.TimeoutError as e:
            raise RequestFailure(f"timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise RequestFailure(f"request error: {e}") from e
