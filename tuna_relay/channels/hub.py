# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Minimal SignalR hub client (JSON hub protocol over a WebSocket).

Negotiation is skipped: the hub URL is opened directly as a WebSocket
(``http://host/tuna`` -> ``ws://host/tuna``).  Only what the relay needs is
implemented — handshake, invocations with completions, pings and close
messages — plus SignalR-style automatic reconnect:

    hub = HubConnection("http://localhost:9155/tuna")
    hub.on_reconnecting(lambda err: ...)
    hub.on_reconnected(lambda connection_id: ...)
    hub.on_close(lambda err: ...)      # automatic reconnect gave up
    await hub.start()                  # raises ConnectionFailure
    await hub.invoke("SendPlayerData", payload)
    await hub.stop()

Every record on the wire is a JSON object terminated by 0x1E.
"""

import asyncio
import itertools
import json
import logging
import uuid
from typing import Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..lib.errors import ConnectionFailure, HubError, TransportClosed

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\x1e"
HANDSHAKE = {"protocol": "json", "version": 1}

# Hub message types
INVOCATION = 1
STREAM_ITEM = 2
COMPLETION = 3
PING = 6
CLOSE = 7

# SignalR client defaults for withAutomaticReconnect(), in seconds
DEFAULT_RECONNECT_DELAYS = (0, 2, 10, 30)
KEEPALIVE_INTERVAL = 15.0
HANDSHAKE_TIMEOUT = 15.0

_CONNECT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


def _ws_url(url: str) -> str:
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


def _encode(message: dict) -> str:
    return json.dumps(message, separators=(",", ":")) + RECORD_SEPARATOR


def _text(frame) -> str:
    if isinstance(frame, bytes):
        try:
            return frame.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Hub sent undecodable binary frame (%d bytes)", len(frame))
            return ""
    return frame


def _records(frame) -> list[dict]:
    """Split a frame into hub messages, skipping anything that is not a JSON object."""
    messages = []
    for record in _text(frame).split(RECORD_SEPARATOR):
        if not record:
            continue
        try:
            message = json.loads(record)
        except json.JSONDecodeError:
            logger.warning("Hub sent invalid JSON record: %.80s", record)
            continue
        if not isinstance(message, dict):
            logger.warning("Hub sent non-object record: %.80s", record)
            continue
        messages.append(message)
    return messages


class HubConnection:
    def __init__(self, url: str, *, reconnect_delays=DEFAULT_RECONNECT_DELAYS,
                 handshake_timeout: float = HANDSHAKE_TIMEOUT,
                 keepalive_interval: float = KEEPALIVE_INTERVAL):
        self.url = _ws_url(url)
        self.connection_id: str | None = None
        self._reconnect_delays = tuple(reconnect_delays)
        self._handshake_timeout = handshake_timeout
        self._keepalive_interval = keepalive_interval

        self._ws = None
        self._reader_task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._pending: dict[str, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._stopping = False

        self._close_callbacks: list[Callable] = []
        self._reconnecting_callbacks: list[Callable] = []
        self._reconnected_callbacks: list[Callable] = []

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # ── Event registration ──

    def on_close(self, callback: Callable):
        """``callback(error)`` — connection is gone and will not come back by itself."""
        self._close_callbacks.append(callback)

    def on_reconnecting(self, callback: Callable):
        """``callback(error)`` — connection dropped, automatic reconnect started."""
        self._reconnecting_callbacks.append(callback)

    def on_reconnected(self, callback: Callable):
        """``callback(connection_id)`` — automatic reconnect succeeded."""
        self._reconnected_callbacks.append(callback)

    def _emit(self, callbacks: list[Callable], arg):
        for callback in list(callbacks):
            try:
                callback(arg)
            except Exception as e:
                logger.error("Hub event handler %r failed: %s", callback, e)

    # ── Lifecycle ──

    async def start(self):
        """Open the socket and complete the hub handshake."""
        if self._ws is not None:
            return
        self._stopping = False
        await self._open()

    async def stop(self):
        """Close the connection without firing any events."""
        self._stopping = True
        for task in (self._reconnect_task, self._keepalive_task):
            if task and task is not asyncio.current_task():
                task.cancel()
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Error closing hub socket: %s", e)
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None
        self._fail_pending(TransportClosed("hub connection stopped"))
        self.connection_id = None

    async def _open(self):
        try:
            ws = await websockets.connect(self.url, open_timeout=self._handshake_timeout)
        except _CONNECT_ERRORS as e:
            raise ConnectionFailure(f"cannot connect to {self.url}: {e}") from e

        try:
            await ws.send(_encode(HANDSHAKE))
            frame = await asyncio.wait_for(ws.recv(), self._handshake_timeout)
        except _CONNECT_ERRORS as e:
            await ws.close()
            raise ConnectionFailure(f"hub handshake with {self.url} failed: {e}") from e

        handshake, _, rest = _text(frame).partition(RECORD_SEPARATOR)
        try:
            response = json.loads(handshake or "{}")
        except json.JSONDecodeError:
            response = None
        if not isinstance(response, dict):
            response = {"error": f"invalid handshake response {handshake[:80]!r}"}
        if response.get("error"):
            await ws.close()
            raise ConnectionFailure(f"hub rejected handshake: {response['error']}")

        self._ws = ws
        self.connection_id = uuid.uuid4().hex
        self._reader_task = asyncio.create_task(self._read_loop(ws, rest))
        self._keepalive_task = asyncio.create_task(self._keepalive_loop(ws))
        logger.debug("Hub handshake complete: %s (%s)", self.url, self.connection_id)

    # ── Invocation ──

    async def invoke(self, method: str, *args):
        """Call a hub method and wait for its completion result."""
        ws = self._ws
        if ws is None:
            raise TransportClosed("hub is not connected")
        invocation_id = str(next(self._ids))
        future = asyncio.get_running_loop().create_future()
        self._pending[invocation_id] = future
        try:
            await ws.send(_encode({
                "type": INVOCATION,
                "invocationId": invocation_id,
                "target": method,
                "arguments": list(args),
            }))
            return await future
        except ConnectionClosed as e:
            raise TransportClosed(f"hub connection closed: {e}") from e
        finally:
            self._pending.pop(invocation_id, None)

    def _fail_pending(self, error: Exception):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    # ── Receive side ──

    async def _read_loop(self, ws, leftover: str):
        error: Exception | None = None
        allow_reconnect = True
        try:
            close = self._handle(_records(leftover))
            if close is None:
                async for frame in ws:
                    close = self._handle(_records(frame))
                    if close is not None:
                        break
            if close is not None:
                allow_reconnect = bool(close.get("allowReconnect", False))
                if close.get("error"):
                    error = TransportClosed(f"server closed connection: {close['error']}")
        except ConnectionClosed as e:
            error = TransportClosed(f"hub connection lost: {e}")
        except Exception as e:
            logger.error("Hub reader failed: %r", e)
            error = TransportClosed(f"hub reader failed: {e!r}")
        try:
            await ws.close()
        except Exception as e:
            logger.debug("Error closing dropped hub socket: %s", e)
        self._connection_lost(ws, error, allow_reconnect)

    def _handle(self, messages: list[dict]) -> dict | None:
        """Process received messages. Returns the close message, if any."""
        for message in messages:
            kind = message.get("type")
            if kind == COMPLETION:
                self._complete(message)
            elif kind == CLOSE:
                return message
            elif kind in (PING, INVOCATION, STREAM_ITEM):
                pass  # server pings and server-to-client calls need no answer
            else:
                logger.debug("Ignoring hub message type %s", kind)
        return None

    def _complete(self, message: dict):
        future = self._pending.get(str(message.get("invocationId")))
        if future is None or future.done():
            return
        if message.get("error"):
            future.set_exception(HubError(message["error"]))
        else:
            future.set_result(message.get("result"))

    async def _keepalive_loop(self, ws):
        try:
            while True:
                await asyncio.sleep(self._keepalive_interval)
                await ws.send(_encode({"type": PING}))
        except ConnectionClosed:
            pass  # reader notices the closure

    def _connection_lost(self, ws, error: Exception | None, allow_reconnect: bool):
        if self._ws is ws:
            self._ws = None
        if self._keepalive_task:
            self._keepalive_task.cancel()
            self._keepalive_task = None
        self._fail_pending(error or TransportClosed("hub connection closed"))
        if self._stopping:
            return
        if allow_reconnect and self._reconnect_delays:
            self._reconnect_task = asyncio.create_task(self._reconnect(error))
        else:
            self.connection_id = None
            self._emit(self._close_callbacks, error)

    async def _reconnect(self, error: Exception | None):
        self._emit(self._reconnecting_callbacks, error)
        for attempt, delay in enumerate(self._reconnect_delays, 1):
            await asyncio.sleep(delay)
            if self._stopping:
                return
            try:
                await self._open()
            except Exception as e:
                logger.debug("Hub reconnect attempt %d/%d failed: %s",
                             attempt, len(self._reconnect_delays), e)
                error = e
                continue
            self._emit(self._reconnected_callbacks, self.connection_id)
            return
        self.connection_id = None
        self._emit(self._close_callbacks, error)
