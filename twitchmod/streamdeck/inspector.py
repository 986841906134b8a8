"""Stream Deck Property Inspector アダプター"""

from .connection import StreamDeckConnection
from .protocol import EventReceived, EventSent


class StreamDeckPropertyInspector(StreamDeckConnection):
    """Property Inspector（設定 UI）側のアダプター

    送信はすべて自分の UUID をコンテキストにする。
    """

    RECOGNIZED_EVENTS = frozenset({
        EventReceived.SEND_TO_PROPERTY_INSPECTOR.value,
        EventReceived.SETTINGS.value,
        EventReceived.GLOBAL_SETTINGS.value,
    })

    @property
    def action(self) -> str:
        """このインスペクターが表示しているアクションの UUID"""
        return (self.action_info or {}).get("action", "")

    async def send_to_plugin(self, payload: dict) -> bool:
        return await self.send({
            "event": EventSent.SEND_TO_PLUGIN.value,
            "action": self.action,
            "context": self.uuid,
            "payload": payload,
        })

    async def set_settings(self, settings: dict) -> bool:
        return await self.send({
            "event": EventSent.SET_SETTINGS.value,
            "context": self.uuid,
            "payload": settings,
        })

    async def get_settings(self) -> bool:
        return await self.send({
            "event": EventSent.GET_SETTINGS.value,
            "context": self.uuid,
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

    async def open_url(self, url: str) -> bool:
        return await self.send({
            "event": EventSent.OPEN_URL.value,
            "payload": {"url": url},
        })
