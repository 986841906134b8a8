"""Settings - アクション設定・グローバル設定のデータモデル

Stream Deck ホストが永続化する設定をローカルにミラーするための型。
ワイヤー上のキーは camelCase（ホスト/Property Inspector と共通）。
"""

import re
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

# アクション設定のデフォルト値
DEFAULT_SHIELD_DURATION = 300  # 秒
DEFAULT_FOLLOW_DURATION = 10  # 分
DEFAULT_SLOW_DELAY = 3  # 秒

ACTION_SETTING_DEFAULTS: dict[str, int] = {
    "shieldDuration": DEFAULT_SHIELD_DURATION,
    "followDuration": DEFAULT_FOLLOW_DURATION,
    "slowDelay": DEFAULT_SLOW_DELAY,
}

GLOBAL_SETTING_KEYS: tuple[str, ...] = (
    "twitchChannel",
    "twitchToken",
    "twitchBroadcasterId",
    "twitchModeratorId",
    "twitchClientId",
)

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def parse_int(value: Any) -> Optional[int]:
    """先頭の整数部分をパース（"12abc" -> 12、パース不能なら None）"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def coerce_int(value: Any, default: int) -> int:
    """整数に変換、パース不能・未指定・0 の場合はデフォルト値"""
    parsed = parse_int(value)
    return parsed if parsed else default


def normalize_channel(value: Optional[str]) -> str:
    """チャンネル名を正規化（前後の空白と先頭の @ を除去）"""
    cleaned = (value or "").strip()
    if cleaned.startswith("@"):
        cleaned = cleaned[1:].strip()
    return cleaned


@dataclass
class ActionSettings:
    """アクションインスタンスごとの設定"""
    shield_duration: int = DEFAULT_SHIELD_DURATION
    follow_duration: int = DEFAULT_FOLLOW_DURATION
    slow_delay: int = DEFAULT_SLOW_DELAY

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ActionSettings":
        data = data or {}
        return cls(
            shield_duration=coerce_int(data.get("shieldDuration"), DEFAULT_SHIELD_DURATION),
            follow_duration=coerce_int(data.get("followDuration"), DEFAULT_FOLLOW_DURATION),
            slow_delay=coerce_int(data.get("slowDelay"), DEFAULT_SLOW_DELAY),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "shieldDuration": self.shield_duration,
            "followDuration": self.follow_duration,
            "slowDelay": self.slow_delay,
        }


@dataclass
class GlobalSettings:
    """プラグイン全体で共有される Twitch 認証情報"""
    twitch_channel: str = ""
    twitch_token: str = ""
    twitch_broadcaster_id: str = ""
    twitch_moderator_id: str = ""
    twitch_client_id: str = ""

    def __post_init__(self):
        for f in fields(self):
            setattr(self, f.name, (getattr(self, f.name) or "").strip())
        self.twitch_channel = normalize_channel(self.twitch_channel)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "GlobalSettings":
        data = data or {}

        def _str(key: str) -> str:
            value = data.get(key)
            return "" if value is None else str(value)

        return cls(
            twitch_channel=_str("twitchChannel"),
            twitch_token=_str("twitchToken"),
            twitch_broadcaster_id=_str("twitchBroadcasterId"),
            twitch_moderator_id=_str("twitchModeratorId"),
            twitch_client_id=_str("twitchClientId"),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "twitchChannel": self.twitch_channel,
            "twitchToken": self.twitch_token,
            "twitchBroadcasterId": self.twitch_broadcaster_id,
            "twitchModeratorId": self.twitch_moderator_id,
            "twitchClientId": self.twitch_client_id,
        }

    @property
    def bearer_token(self) -> str:
        """Helix 用トークン（oauth: プレフィックスなし）"""
        token = self.twitch_token
        if token.startswith("oauth:"):
            token = token[len("oauth:"):]
        return token

    @property
    def moderator_id(self) -> str:
        """モデレーターID（未設定時は配信者ID）"""
        return self.twitch_moderator_id or self.twitch_broadcaster_id

    @property
    def is_complete(self) -> bool:
        """Helix 呼び出しに必要な項目が揃っているか"""
        return bool(self.twitch_token and self.twitch_client_id and self.twitch_broadcaster_id)
