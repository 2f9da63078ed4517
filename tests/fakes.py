import asyncio

from tuna_relay.lib.config import STREAMING, TRANSACTIONAL, ChannelConfig
from tuna_relay.lib.errors import ConnectionFailure, RequestFailure
from tuna_relay.lib.snapshot import Envelope, Snapshot, Status


def snapshot(title="A", status=Status.PLAYING, progress_ms=0, **kw) -> Snapshot:
    return Snapshot(title=title, status=status, progress_ms=progress_ms, **kw)


def envelope(title="A", **kw) -> Envelope:
    return Envelope.wrap(snapshot(title, **kw), "test-host")


def streaming_config(**kw) -> ChannelConfig:
    return ChannelConfig(name=kw.pop("name", "prod"), kind=STREAMING,
                         url="http://localhost:9155/tuna", **kw)


def transactional_config(**kw) -> ChannelConfig:
    return ChannelConfig(name=kw.pop("name", "webhook"), kind=TRANSACTIONAL,
                         url="http://localhost:8080/hook", **kw)


async def settle(channel) -> None:
    """Wait until every task the channel spawned has finished."""
    while channel._tasks:
        await asyncio.gather(*list(channel._tasks), return_exceptions=True)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeHub:
    """Stands in for HubConnection."""

    def __init__(self, fail_starts: int = 0) -> None:
        self.fail_starts = fail_starts
        self.starts = 0
        self.stopped = False
        self.invocations: list[tuple[str, dict]] = []
        self.invoke_error: Exception | None = None
        self._close = []
        self._reconnecting = []
        self._reconnected = []

    def on_close(self, callback) -> None:
        self._close.append(callback)

    def on_reconnecting(self, callback) -> None:
        self._reconnecting.append(callback)

    def on_reconnected(self, callback) -> None:
        self._reconnected.append(callback)

    async def start(self) -> None:
        self.starts += 1
        if self.starts <= self.fail_starts:
            raise ConnectionFailure("connection refused")

    async def stop(self) -> None:
        self.stopped = True

    async def invoke(self, method: str, payload: dict):
        if self.invoke_error is not None:
            raise self.invoke_error
        self.invocations.append((method, payload))

    def fire_close(self, error=None) -> None:
        for cb in self._close:
            cb(error)

    def fire_reconnecting(self, error=None) -> None:
        for cb in self._reconnecting:
            cb(error)

    def fire_reconnected(self, connection_id="abc") -> None:
        for cb in self._reconnected:
            cb(connection_id)


class FakeHttp:
    """Stands in for HttpTransport; *results* are statuses or exceptions, in order."""

    def __init__(self, results=None, delay: float = 0.0) -> None:
        self.results = list(results or [])
        self.delay = delay
        self.requests: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def post(self, body: dict) -> int:
        self.requests.append(body)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.results.pop(0) if self.results else 200
            if isinstance(result, Exception):
                raise result
            if not 200 <= result < 300:
                raise RequestFailure(f"HTTP {result}", status=result)
            return result
        finally:
            self.in_flight -= 1


class FakeProvider:
    id = "fake"

    def __init__(self, samples) -> None:
        self.samples = list(samples)
        self.closed = False

    async def sample(self):
        item = self.samples.pop(0) if self.samples else None
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class RecordingChannel:
    """Minimal Channel double that records what the publisher does to it."""

    kind = "recording"

    def __init__(self, name: str = "rec", fail_publish: bool = False) -> None:
        self.name = name
        self.fail_publish = fail_publish
        self.published: list[Envelope] = []
        self.ticks = 0
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def tick(self) -> None:
        self.ticks += 1

    def publish(self, envelope: Envelope) -> None:
        if self.fail_publish:
            raise RuntimeError("channel exploded")
        self.published.append(envelope)

    def status(self) -> dict:
        return {"name": self.name, "published": len(self.published)}
