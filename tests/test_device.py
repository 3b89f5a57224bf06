"""Unit tests for DeviceConnection (request/response matching over a mocked WebSocket)."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from camera_bridge.device import (
    DeviceConnection,
    DeviceDisconnectedError,
    PhotoRequestError,
    PhotoRequestTimeout,
)
from tests.conftest import run_async


def make_websocket(fail: bool = False) -> MagicMock:
    ws = MagicMock()
    ws.send_text = AsyncMock(side_effect=RuntimeError("closed") if fail else None)
    return ws


def sent_messages(ws) -> list[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.await_args_list]


async def wait_for_request(ws) -> str:
    for _ in range(100):
        requests = [m for m in sent_messages(ws) if m["type"] == "photo_request"]
        if requests:
            return requests[-1]["requestId"]
        await asyncio.sleep(0)
    raise AssertionError("photo_request was never sent")


class TestRequestPhoto:
    def test_response_resolves_request(self):
        ws = make_websocket()
        connection = DeviceConnection(ws, "alice", request_timeout=1)

        async def scenario():
            task = asyncio.create_task(connection.request_photo())
            request_id = await wait_for_request(ws)
            assert connection.resolve({
                "type": "photo_response",
                "requestId": request_id,
                "data": base64.b64encode(b"img").decode("ascii"),
                "mimeType": "image/jpeg",
                "timestamp": 99,
            })
            return request_id, await task

        request_id, photo = run_async(scenario())
        assert photo.request_id == request_id
        assert photo.data == b"img"
        assert connection.pending_count == 0

    def test_photo_error_raises(self):
        ws = make_websocket()
        connection = DeviceConnection(ws, "alice", request_timeout=1)

        async def scenario():
            task = asyncio.create_task(connection.request_photo())
            request_id = await wait_for_request(ws)
            connection.fail({"type": "photo_error", "requestId": request_id, "message": "lens covered"})
            await task

        with pytest.raises(PhotoRequestError, match="lens covered"):
            run_async(scenario())

    def test_timeout(self):
        connection = DeviceConnection(make_websocket(), "alice", request_timeout=0.01)

        with pytest.raises(PhotoRequestTimeout):
            run_async(connection.request_photo())
        assert connection.pending_count == 0

    def test_close_fails_pending_with_disconnect(self):
        ws = make_websocket()
        connection = DeviceConnection(ws, "alice", request_timeout=5)

        async def scenario():
            task = asyncio.create_task(connection.request_photo())
            await wait_for_request(ws)
            connection.close("device gone")
            await task

        with pytest.raises(DeviceDisconnectedError, match="WebSocket not connected"):
            run_async(scenario())

    def test_request_after_close_raises_disconnect(self):
        connection = DeviceConnection(make_websocket(), "alice")
        connection.close()
        connection.close()

        with pytest.raises(DeviceDisconnectedError):
            run_async(connection.request_photo())

    def test_send_failure_is_disconnect(self):
        connection = DeviceConnection(make_websocket(fail=True), "alice")

        with pytest.raises(DeviceDisconnectedError):
            run_async(connection.request_photo())


class TestUnmatchedMessages:
    def test_unknown_request_id_is_ignored(self):
        connection = DeviceConnection(make_websocket(), "alice")
        assert connection.resolve({"type": "photo_response", "requestId": "nope", "data": ""}) is False
        assert connection.fail({"type": "photo_error", "requestId": "nope"}) is False


class TestShowText:
    def test_show_text_sends_display_message(self):
        ws = make_websocket()
        connection = DeviceConnection(ws, "alice")
        run_async(connection.show_text("hola", 1500))
        assert sent_messages(ws) == [{"type": "display_text", "text": "hola", "durationMs": 1500}]

    def test_show_text_after_close_does_not_raise(self):
        connection = DeviceConnection(make_websocket(), "alice")
        connection.close()
        run_async(connection.show_text("hola"))
