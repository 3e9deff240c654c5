"""Unit tests for UploadTransport against a local aiohttp server."""

import asyncio
import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from korbivoice.exceptions import UploadFailed
from korbivoice.upload.transport import TransportResponse, UploadTransport


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.unit
class TestTransportResponse:

    @pytest.mark.parametrize("status,expected", [(200, True), (204, True), (299, True),
                                                 (199, False), (301, False), (500, False)])
    def test_is_success(self, status, expected):
        assert TransportResponse(status, b"").is_success is expected


@pytest.mark.unit
class TestUploadTransport:

    @pytest.mark.asyncio
    async def test_post_sends_body_and_content_type(self):
        received = {}

        async def handler(request):
            received["content_type"] = request.headers["Content-Type"]
            received["body"] = await request.read()
            return web.json_response({"status": "ok"})

        app = web.Application()
        app.router.add_post("/hook", handler)

        async with TestServer(app) as server:
            response = await UploadTransport().post(
                str(server.make_url("/hook")), b"payload", "multipart/form-data; boundary=Boundary-x"
            )

        assert received == {"content_type": "multipart/form-data; boundary=Boundary-x", "body": b"payload"}
        assert response.status == 200
        assert response.body == b'{"status": "ok"}'

    @pytest.mark.asyncio
    async def test_non_2xx_is_returned_not_raised(self):
        async def handler(request):
            return web.Response(status=500, text="kaputt")

        app = web.Application()
        app.router.add_post("/hook", handler)

        async with TestServer(app) as server:
            response = await UploadTransport().post(str(server.make_url("/hook")), b"", "text/plain")

        assert response.status == 500
        assert response.body == b"kaputt"
        assert not response.is_success

    @pytest.mark.asyncio
    async def test_fetch(self):
        async def handler(request):
            return web.Response(text="done")

        app = web.Application()
        app.router.add_get("/status", handler)

        async with TestServer(app) as server:
            response = await UploadTransport().fetch(str(server.make_url("/status")))

        assert response.body == b"done"

    @pytest.mark.asyncio
    async def test_connection_refused_raises_upload_failed(self):
        transport = UploadTransport(timeout_seconds=2.0)

        with pytest.raises(UploadFailed) as exc_info:
            await transport.post(f"http://127.0.0.1:{unused_port()}/hook", b"x", "text/plain")

        assert exc_info.value.original_error is not None
        assert exc_info.value.user_message == "Upload fehlgeschlagen"

    @pytest.mark.asyncio
    async def test_timeout_raises_upload_failed(self):
        async def handler(request):
            await asyncio.sleep(2)
            return web.Response(text="late")

        app = web.Application()
        app.router.add_post("/hook", handler)

        async with TestServer(app) as server:
            with pytest.raises(UploadFailed):
                await UploadTransport(timeout_seconds=0.2).post(
                    str(server.make_url("/hook")), b"x", "text/plain"
                )
