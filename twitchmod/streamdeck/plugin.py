"""Stream Deck Plugin アダプター"""

from typing import Any, Optional

from .connection import StreamDeckConnection
from .protocol import Destination, EventReceived, EventSent


class StreamDeckPlugin(StreamDeckConnection):
    """プラグイン（バックグラウンドプロセス）側のアダプター

    使用例:
    ```python
    async def on_key_down(envelope: Envelope):
        await plugin.show_ok(envelope.context)

    plugin = StreamDeckPlugin({EventReceived.KEY_DOWN: on_key_down})
    await plugin.start(port, plugin_uuid, register_event, info)
    ```
    """

    RECOGNIZED_EVENTS = frozenset(
        e.value for e in EventReceived if e is not EventReceived.SEND_TO_PROPERTY_INSPECTOR
    )

    @staticmethod
    def _require_context(context: Optional[str]) -> str:
        if not context:
            raise ValueError("context is required")
        return context

    # ========== 設定 ==========

    async def set_settings(self, context: str, settings: dict) -> bool:
        return await self.send({
            "event": EventSent.SET_SETTINGS.value,
            "context": self._require_context(context),
            "payload": settings,
        })

    async def get_settings(self, context: str) -> bool:
        return await self.send({
            "event": EventSent.GET_SETTINGS.value,
            "context": self._require_context(context),
        })

    async def set_global_settings(self, settings: dict) -> bool:
        return await self.send({
            "event": EventSent.SET_GLOBAL_SETTINGS.value,
            "context": self.uuid,
            "payload": settings,
        })

    async def get_global_settings(self) -> bool:
        return await self.send({
            "event": EventSent.GET_GLOBAL_SETTINGS.value,
            "context": self.uuid,
        })

    # ========== ホスト操作 ==========

    async def open_url(self, url: str) -> bool:
        return await self.send({
            "event": EventSent.OPEN_URL.value,
            "payload": {"url": url},
        })

    async def log_message(self, message: str) -> bool:
        """Stream Deck のログファイルに書き込む"""
        return await self.send({
            "event": EventSent.LOG_MESSAGE.value,
            "payload": {"message": message},
        })

    # ========== キー表示 ==========

    async def set_title(
        self,
        context: str,
        title: str,
        target: Destination = Destination.HARDWARE_AND_SOFTWARE,
        state: Optional[int] = None,
    ) -> bool:
        payload: dict[str, Any] = {"title": title, "target": int(target)}
        if state is not None:
            payload["state"] = state
        return await self.send({
            "event": EventSent.SET_TITLE.value,
            "context": self._require_context(context),
            "payload": payload,
        })

    async def set_image(
        self,
        context: str,
        image: str,
        target: Destination = Destination.HARDWARE_AND_SOFTWARE,
        state: Optional[int] = None,
    ) -> bool:
        """キー画像を設定（image は base64 data URL または SVG）"""
        payload: dict[str, Any] = {"image": image, "target": int(target)}
        if state is not None:
            payload["state"] = state
        return await self.send({
            "event": EventSent.SET_IMAGE.value,
            "context": self._require_context(context),
            "payload": payload,
        })

    async def set_state(self, context: str, state: int) -> bool:
        return await self.send({
            "event": EventSent.SET_STATE.value,
            "context": self._require_context(context),
            "payload": {"state": state},
        })

    async def show_alert(self, context: str) -> bool:
        return await self.send({
            "event": EventSent.SHOW_ALERT.value,
            "context": self._require_context(context),
        })

    async def show_ok(self, context: str) -> bool:
        return await self.send({
            "event": EventSent.SHOW_OK.value,
            "context": self._require_context(context),
        })

    # ========== Property Inspector ==========

    async def send_to_property_inspector(
        self, context: str, payload: dict, action: Optional[str] = None
    ) -> bool:
        message: dict[str, Any] = {
            "event": EventSent.SEND_TO_PROPERTY_INSPECTOR.value,
            "context": self._require_context(context),
            "payload": payload,
        }
        if action is not None:
            message["action"] = action
        return await self.send(message)
