"""Validation - Property Inspector 入力値の検証

検証エラーは例外ではなくメッセージのリストとして返す（UI のエラーパネルに表示）。
"""

import re
from typing import Mapping, Optional

from .settings import normalize_channel

USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9_]{4,25}")
NUMERIC_ID_PATTERN = re.compile(r"[0-9]+")
USER_ID_URL_PATTERN = re.compile(r"twitch\.tv/.*/([0-9]+)")

# エラーメッセージ
ERROR_INVALID_CHANNEL = "Invalid Twitch channel name"
ERROR_TOKEN_REQUIRED = "OAuth token is required"
ERROR_BROADCASTER_ID = "Broadcaster ID must be numeric"
ERROR_MODERATOR_ID = "Moderator ID must be numeric"


def validate_twitch_username(username: Optional[str]) -> bool:
    """Twitch ユーザー名（4〜25文字の英数字とアンダースコア）"""
    return USERNAME_PATTERN.fullmatch(normalize_channel(username)) is not None


def validate_numeric_id(value: Optional[str]) -> bool:
    """配信者ID・モデレーターID（数字のみ）"""
    return NUMERIC_ID_PATTERN.fullmatch((value or "").strip()) is not None


def validate_oauth_token(token: Optional[str]) -> bool:
    """OAuth トークンの簡易チェック

    oauth: で始まるか 21 文字以上なら OK とするだけの緩いヒューリスティック。
    正しいトークンであることは保証しない（確認は Helix の validate で行う）。
    """
    if not token:
        return False
    return token.startswith("oauth:") or len(token) > 20


def parse_twitch_user_id(value: Optional[str]) -> Optional[str]:
    """ユーザーIDを抽出（数字そのもの、または twitch.tv の URL 末尾）"""
    value = (value or "").strip()
    if NUMERIC_ID_PATTERN.fullmatch(value):
        return value

    match = USER_ID_URL_PATTERN.search(value)
    if match:
        return match.group(1)
    return None


def validate_global_settings(form: Mapping[str, Optional[str]]) -> list[str]:
    """グローバル設定フォームを検証

    Args:
        form: フィールドID -> 入力値（フォームに存在しないフィールドは検証しない）

    Returns:
        エラーメッセージのリスト（空なら OK）
    """
    errors = []

    if "twitchChannel" in form and not validate_twitch_username(form["twitchChannel"]):
        errors.append(ERROR_INVALID_CHANNEL)

    if "twitchToken" in form and not form["twitchToken"]:
        errors.append(ERROR_TOKEN_REQUIRED)

    if "twitchBroadcasterId" in form and not validate_numeric_id(form["twitchBroadcasterId"]):
        errors.append(ERROR_BROADCASTER_ID)

    if "twitchModeratorId" in form and not validate_numeric_id(form["twitchModeratorId"]):
        errors.append(ERROR_MODERATOR_ID)

    return errors
