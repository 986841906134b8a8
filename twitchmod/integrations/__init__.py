"""Integrations - 外部サービス連携モジュール

Twitch Helix API と Twitch IRC チャットとの連携を提供。
"""

from .chat import ChatConfig, RaidEvent, TwitchChat
from .helix import (
    REQUIRED_SCOPES,
    ChatSettings,
    HelixClient,
    HelixConfig,
    TokenInfo,
    TwitchAPIError,
    TwitchAuthError,
    TwitchError,
    TwitchRateLimitError,
    missing_scopes,
)

__all__ = [
    "ChatConfig",
    "RaidEvent",
    "TwitchChat",
    "REQUIRED_SCOPES",
    "ChatSettings",
    "HelixClient",
    "HelixConfig",
    "TokenInfo",
    "TwitchAPIError",
    "TwitchAuthError",
    "TwitchError",
    "TwitchRateLimitError",
    "missing_scopes",
]
