"""Shared fixtures: a fake Stream Deck host socket."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State


class FakeWebSocket:
    """Stream Deck ホスト側ソケットのスタブ"""

    def __init__(self, frames=None):
        self.state = State.OPEN
        self.sent: list[dict] = []
        self.frames: list[str] = list(frames or [])
        self.closed = False

    async def send(self, data: str):
        self.sent.append(json.loads(data))

    async def recv(self) -> str:
        if self.frames:
            return self.frames.pop(0)
        self.state = State.CLOSED
        raise ConnectionClosedOK(None, None)

    async def close(self):
        self.state = State.CLOSED
        self.closed = True

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def open_adapter(fake_ws):
    """アダプターを FakeWebSocket に接続し、ハンドシェイク分の送信履歴を消す"""

    async def _open(adapter, uuid="UUID-1", register_event="registerPlugin", action_info=None, port=28196):
        with patch(
            "twitchmod.streamdeck.connection.websockets.connect",
            new=AsyncMock(return_value=fake_ws),
        ):
            assert await adapter.connect(port, uuid, register_event, None, action_info)
        fake_ws.sent.clear()
        return fake_ws

    return _open
