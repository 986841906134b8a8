"""Stream Deck - ホストとの WebSocket プロトコルアダプター"""

from .connection import StreamDeckConnection
from .inspector import StreamDeckPropertyInspector
from .plugin import StreamDeckPlugin
from .protocol import (
    ConnectionEvent,
    Destination,
    Envelope,
    EventReceived,
    EventSent,
    ProtocolError,
)

__all__ = [
    "StreamDeckConnection",
    "StreamDeckPlugin",
    "StreamDeckPropertyInspector",
    "ConnectionEvent",
    "Destination",
    "Envelope",
    "EventReceived",
    "EventSent",
    "ProtocolError",
]
