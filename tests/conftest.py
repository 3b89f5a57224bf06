"""Shared pytest configuration and fixtures for the camera bridge test suite."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Coroutine, TypeVar
from unittest.mock import AsyncMock, MagicMock

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from camera_bridge.models import PhotoData  # noqa: E402

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def make_photo(request_id: str = "req-1", data: bytes = b"\xff\xd8jpeg\xff\xd9", timestamp: int = 1_700_000_000_000) -> PhotoData:
    return PhotoData(
        request_id=request_id,
        data=data,
        mime_type="image/jpeg",
        filename=f"{request_id}.jpg",
        timestamp=timestamp,
        size=len(data),
    )


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeCamera:
    """Camera whose request_photo returns queued photos or raises queued errors."""

    def __init__(self) -> None:
        self.calls = 0
        self.results: list[Any] = []
        self.gate: asyncio.Event | None = None

    async def request_photo(self) -> PhotoData:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            result = self.results.pop(0)
        else:
            result = make_photo(f"req-{self.calls}")
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingSink:
    def __init__(self) -> None:
        self.photos: list[tuple[str, PhotoData]] = []

    async def handle_photo(self, user_id: str, photo: PhotoData) -> None:
        self.photos.append((user_id, photo))


def make_sink(handler):
    """Wrap a bare coroutine function as a photo sink."""

    class FunctionSink:
        async def handle_photo(self, user_id, photo):
            return await handler(user_id, photo)

    return FunctionSink()


def make_channel(closed: bool = False, fail: bool = False) -> MagicMock:
    from fastapi.websockets import WebSocketState

    ws = MagicMock()
    ws.client_state = WebSocketState.DISCONNECTED if closed else WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.send_text = AsyncMock(side_effect=RuntimeError("broken pipe") if fail else None)
    return ws


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(100.0)


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
