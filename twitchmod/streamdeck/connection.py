"""
Stream Deck WebSocket 接続

プラグイン / Property Inspector 共通の接続処理。
- 登録ハンドシェイク（registerEvent + UUID）
- イベント名 -> ハンドラのディスパッチテーブル
- ベストエフォート送信（未接続時は何もしない）

再接続・リトライは行わない（ホストはプラグインの生存期間中ずっと動いている前提）。
"""

import asyncio
import inspect
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from .protocol import ConnectionEvent, Envelope, EventSent, ProtocolError, parse_info

Handler = Callable[[Envelope], Union[None, Awaitable[None]]]
EventName = Union[str, Enum]

DEFAULT_HOST = "127.0.0.1"


def event_name(event: EventName) -> str:
    if isinstance(event, Enum):
        return str(event.value)
    return event


class StreamDeckConnection:
    """ホストへの WebSocket 接続とイベントディスパッチ

    サブクラスは RECOGNIZED_EVENTS で受け付けるイベント名を宣言する。
    それ以外のイベントは黙って捨てる。
    """

    RECOGNIZED_EVENTS: frozenset[str] = frozenset()

    def __init__(
        self,
        handlers: Optional[Mapping[EventName, Handler]] = None,
        host: str = DEFAULT_HOST,
    ):
        self.host = host
        self.port: Optional[int] = None
        self.uuid: Optional[str] = None
        self.register_event: Optional[str] = None
        self.info: Optional[dict] = None
        self.action_info: Optional[dict] = None

        self._ws: Any = None
        self._handlers: dict[str, Handler] = {}
        for event, handler in (handlers or {}).items():
            self.set_handler(event, handler)

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    def _get_url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    # ========== ハンドラ登録 ==========

    def set_handler(self, event: EventName, handler: Optional[Handler]):
        """ハンドラを登録（None で解除）"""
        name = event_name(event)
        if handler is None:
            self._handlers.pop(name, None)
        else:
            self._handlers[name] = handler

    def on(self, event: EventName):
        """ハンドラを登録するデコレータ"""
        def decorator(func: Handler) -> Handler:
            self.set_handler(event, func)
            return func
        return decorator

    # ========== 接続 ==========

    async def connect(
        self,
        port: Union[int, str],
        uuid: str,
        register_event: str,
        info: Union[str, Mapping, None] = None,
        action_info: Union[str, Mapping, None] = None,
    ) -> bool:
        """ホストに接続して登録"""
        self.port = int(port)
        self.uuid = uuid
        self.register_event = register_event
        self.info = parse_info(info)
        self.action_info = parse_info(action_info)

        try:
            logger.info(f"Connecting to Stream Deck at {self._get_url()}")
            self._ws = await websockets.connect(self._get_url())
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to Stream Deck: {e}")
            self._ws = None
            await self._fire(ConnectionEvent.ERROR, {"error": str(e)})
            return False

        await self.register()
        await self.send({"event": EventSent.GET_SETTINGS.value, "context": self.uuid})
        await self.send({"event": EventSent.GET_GLOBAL_SETTINGS.value, "context": self.uuid})

        logger.info(f"Registered with Stream Deck ({register_event})")
        await self._fire(ConnectionEvent.CONNECTED)
        return True

    async def register(self) -> bool:
        return await self.send({"event": self.register_event, "uuid": self.uuid})

    async def run(self):
        """受信ループ（接続が閉じるまで）"""
        if self._ws is None:
            logger.warning("Stream Deck connection is not open")
            return

        try:
            while self._ws is not None:
                try:
                    frame = await self._ws.recv()
                except ConnectionClosed:
                    logger.warning("Stream Deck WebSocket connection closed")
                    break
                await self.handle_frame(frame)
        finally:
            self._ws = None

        await self._fire(ConnectionEvent.DISCONNECTED)

    async def start(
        self,
        port: Union[int, str],
        uuid: str,
        register_event: str,
        info: Union[str, Mapping, None] = None,
        action_info: Union[str, Mapping, None] = None,
    ) -> bool:
        """接続して受信ループを実行"""
        if not await self.connect(port, uuid, register_event, info, action_info):
            return False
        await self.run()
        return True

    async def close(self):
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()
            logger.info("Disconnected from Stream Deck")

    # ========== 送信 ==========

    async def send(self, message: Union[dict, Envelope]) -> bool:
        """メッセージを送信（未接続なら送らずに False）"""
        if not self.is_open:
            return False

        if isinstance(message, Envelope):
            data = message.to_dict()
        else:
            data = message

        try:
            await self._ws.send(json.dumps(data))
        except ConnectionClosed as e:
            logger.debug(f"Dropped {data.get('event')}: connection closed ({e})")
            return False

        logger.debug(f"Sent: {data.get('event')}")
        return True

    # ========== 受信 ==========

    async def handle_frame(self, frame: Union[str, bytes]) -> bool:
        """受信フレームをデコードしてディスパッチ"""
        try:
            envelope = Envelope.decode(frame)
        except ProtocolError as e:
            logger.warning(f"Dropped malformed frame from Stream Deck: {e}")
            return False
        return await self.dispatch(envelope)

    async def dispatch(self, envelope: Envelope) -> bool:
        """イベント名に対応するハンドラを呼び出す

        Returns:
            ハンドラを呼び出した場合 True（未知のイベント・未登録は False）
        """
        if envelope.event not in self.RECOGNIZED_EVENTS:
            return False

        handler = self._handlers.get(envelope.event)
        if handler is None:
            return False

        logger.debug(f"Received: {envelope.event} ({envelope.context})")
        await self._invoke(handler, envelope)
        return True

    async def _fire(self, event: ConnectionEvent, payload: Optional[dict] = None):
        handler = self._handlers.get(event.value)
        if handler is not None:
            await self._invoke(handler, Envelope(event=event.value, context=self.uuid, payload=payload))

    async def _invoke(self, handler: Handler, envelope: Envelope):
        try:
            result = handler(envelope)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in handler for {envelope.event}: {e}")
