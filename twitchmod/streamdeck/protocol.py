"""
Stream Deck プロトコル定義

ホスト（Stream Deck アプリ）とローカル WebSocket でやり取りする JSON エンベロープと、
イベント名の定数。イベント名はホスト側が完全一致で判定するため文字列は変更しないこと。
"""

import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional, Union


class EventReceived(str, Enum):
    """ホストから受信するイベント"""
    SETTINGS = "didReceiveSettings"
    GLOBAL_SETTINGS = "didReceiveGlobalSettings"
    KEY_DOWN = "keyDown"
    KEY_UP = "keyUp"
    WILL_APPEAR = "willAppear"
    WILL_DISAPPEAR = "willDisappear"
    TITLE_PARAMETERS_DID_CHANGE = "titleParametersDidChange"
    DEVICE_DID_CONNECT = "deviceDidConnect"
    DEVICE_DID_DISCONNECT = "deviceDidDisconnect"
    APPLICATION_DID_LAUNCH = "applicationDidLaunch"
    APPLICATION_DID_TERMINATE = "applicationDidTerminate"
    SYSTEM_DID_WAKE_UP = "systemDidWakeUp"
    PROPERTY_INSPECTOR_DID_APPEAR = "propertyInspectorDidAppear"
    PROPERTY_INSPECTOR_DID_DISAPPEAR = "propertyInspectorDidDisappear"
    SEND_TO_PLUGIN = "sendToPlugin"
    SEND_TO_PROPERTY_INSPECTOR = "sendToPropertyInspector"


class EventSent(str, Enum):
    """ホストへ送信するイベント"""
    SET_SETTINGS = "setSettings"
    GET_SETTINGS = "getSettings"
    SET_GLOBAL_SETTINGS = "setGlobalSettings"
    GET_GLOBAL_SETTINGS = "getGlobalSettings"
    OPEN_URL = "openUrl"
    LOG_MESSAGE = "logMessage"
    SET_TITLE = "setTitle"
    SET_IMAGE = "setImage"
    SET_STATE = "setState"
    SHOW_ALERT = "showAlert"
    SHOW_OK = "showOk"
    SEND_TO_PLUGIN = "sendToPlugin"
    SEND_TO_PROPERTY_INSPECTOR = "sendToPropertyInspector"


class ConnectionEvent(str, Enum):
    """アダプター内部のライフサイクルイベント（ワイヤーには流れない）"""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class Destination(IntEnum):
    """setTitle / setImage の表示先"""
    HARDWARE_AND_SOFTWARE = 0
    HARDWARE_ONLY = 1
    SOFTWARE_ONLY = 2


class ProtocolError(Exception):
    """不正なフレーム"""
    pass


@dataclass
class Envelope:
    """WebSocket メッセージのエンベロープ"""
    event: str
    context: Optional[str] = None
    action: Optional[str] = None
    device: Optional[str] = None
    payload: Optional[dict] = None
    device_info: Optional[dict] = None
    uuid: Optional[str] = None  # 登録フレームのみ

    # 受信時の生データ
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Envelope":
        if not isinstance(data, Mapping):
            raise ProtocolError(f"Envelope must be a JSON object, got {type(data).__name__}")

        event = data.get("event")
        if not isinstance(event, str) or not event:
            raise ProtocolError("Envelope has no event name")

        payload = data.get("payload")
        return cls(
            event=event,
            context=data.get("context"),
            action=data.get("action"),
            device=data.get("device"),
            payload=payload if isinstance(payload, dict) else None,
            device_info=data.get("deviceInfo"),
            uuid=data.get("uuid"),
            raw=dict(data),
        )

    @classmethod
    def decode(cls, frame: Union[str, bytes]) -> "Envelope":
        """JSON テキストフレームをデコード"""
        try:
            data = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Invalid JSON frame: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """ワイヤー形式の辞書（未設定のフィールドは省略）"""
        data: dict[str, Any] = {"event": str(getattr(self.event, "value", self.event))}
        if self.uuid is not None:
            data["uuid"] = self.uuid
        if self.context is not None:
            data["context"] = self.context
        if self.action is not None:
            data["action"] = self.action
        if self.device is not None:
            data["device"] = self.device
        if self.payload is not None:
            data["payload"] = self.payload
        if self.device_info is not None:
            data["deviceInfo"] = self.device_info
        return data

    def encode(self) -> str:
        return json.dumps(self.to_dict())

    # ========== payload アクセサ ==========

    @property
    def body(self) -> dict:
        return self.payload or {}

    @property
    def settings(self) -> dict:
        return self.body.get("settings") or {}

    @property
    def coordinates(self) -> Optional[dict]:
        return self.body.get("coordinates")

    @property
    def state(self) -> Optional[int]:
        return self.body.get("state")

    @property
    def user_desired_state(self) -> Optional[int]:
        return self.body.get("userDesiredState")

    @property
    def is_in_multi_action(self) -> bool:
        return bool(self.body.get("isInMultiAction", False))

    @property
    def title(self) -> Optional[str]:
        return self.body.get("title")

    @property
    def title_parameters(self) -> Optional[dict]:
        return self.body.get("titleParameters")

    @property
    def application(self) -> Optional[str]:
        return self.body.get("application")


def parse_info(value: Union[str, Mapping, None]) -> Optional[dict]:
    """起動引数の info / actionInfo（JSON 文字列または辞書）をパース"""
    if value is None or value == "":
        return None
    if isinstance(value, Mapping):
        return dict(value)
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid info JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("Info must be a JSON object")
    return data
