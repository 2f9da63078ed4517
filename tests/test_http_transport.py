import asyncio
import unittest

from aiohttp import test_utils, web

from tuna_relay.channels.http import HttpTransport
from tuna_relay.lib.errors import RequestFailure


class TestHttpTransport(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bodies: list[dict] = []

        async def ok(request: web.Request) -> web.Response:
            self.bodies.append(await request.json())
            return web.Response(status=204)

        async def broken(request: web.Request) -> web.Response:
            return web.Response(status=500, text="nope")

        async def slow(request: web.Request) -> web.Response:
            await asyncio.sleep(1)
            return web.Response(status=200)

        app = web.Application()
        app.router.add_post("/ok", ok)
        app.router.add_post("/broken", broken)
        app.router.add_post("/slow", slow)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.transports: list[HttpTransport] = []

    async def asyncTearDown(self) -> None:
        for transport in self.transports:
            await transport.stop()
        await self.server.close()

    async def make(self, path: str, timeout: float = 5.0) -> HttpTransport:
        transport = HttpTransport(str(self.server.make_url(path)), timeout=timeout)
        await transport.start()
        self.transports.append(transport)
        return transport

    async def test_posts_json_body(self) -> None:
        transport = await self.make("/ok")
        status = await transport.post({"data": {"title": "A"}, "hostname": "h"})
        self.assertEqual(status, 204)
        self.assertEqual(self.bodies, [{"data": {"title": "A"}, "hostname": "h"}])

    async def test_bad_status_is_request_failure(self) -> None:
        transport = await self.make("/broken")
        with self.assertRaises(RequestFailure) as ctx:
            await transport.post({})
        self.assertEqual(ctx.exception.status, 500)

    async def test_timeout_is_request_failure(self) -> None:
        transport = await self.make("/slow", timeout=0.1)
        with self.assertRaises(RequestFailure) as ctx:
            await transport.post({})
        self.assertIsNone(ctx.exception.status)

    async def test_network_error_is_request_failure(self) -> None:
        transport = HttpTransport(f"http://127.0.0.1:{test_utils.unused_port()}/hook")
        await transport.start()
        self.transports.append(transport)
        with self.assertRaises(RequestFailure):
            await transport.post({})

    async def test_post_before_start_fails(self) -> None:
        transport = HttpTransport(str(self.server.make_url("/ok")))
        with self.assertRaises(RequestFailure):
            await transport.post({})


if __name__ == "__main__":
    unittest.main()
