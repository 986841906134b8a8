"""Twitch Helix API クライアント

モデレーション系エンドポイントのみ扱う。

必要なスコープ:
- moderator:manage:shield_mode
- moderator:manage:automod
- channel:manage:redemptions
- moderator:manage:chat_settings
- chat:edit / chat:read（IRC 側で使用）

参考: https://dev.twitch.tv/docs/api/reference
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from loguru import logger

from ..core.settings import GlobalSettings
from ..core.utils import RateLimiter

REQUIRED_SCOPES: tuple[str, ...] = (
    "moderator:manage:shield_mode",
    "moderator:manage:automod",
    "channel:manage:redemptions",
    "moderator:manage:chat_settings",
    "chat:edit",
    "chat:read",
)

# 引き換えステータス更新は 1 リクエスト最大 50 件
REDEMPTION_PAGE_SIZE = 50


@dataclass
class HelixConfig:
    """Helix API 設定"""
    base_url: str = "https://api.twitch.tv/helix"
    auth_url: str = "https://id.twitch.tv/oauth2"
    timeout: float = 10.0
    requests_per_minute: int = 800  # Helix のデフォルトバケット


@dataclass
class TokenInfo:
    """トークン検証結果"""
    login: str
    user_id: str
    client_id: str
    scopes: list[str] = field(default_factory=list)
    expires_in: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "TokenInfo":
        return cls(
            login=data.get("login", ""),
            user_id=data.get("user_id", ""),
            client_id=data.get("client_id", ""),
            scopes=list(data.get("scopes") or []),
            expires_in=int(data.get("expires_in", 0)),
        )


@dataclass
class ChatSettings:
    """チャット設定"""
    slow_mode: bool = False
    slow_mode_wait_time: Optional[int] = None  # 秒
    follower_mode: bool = False
    follower_mode_duration: Optional[int] = None  # 分
    subscriber_mode: bool = False
    emote_mode: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSettings":
        return cls(
            slow_mode=bool(data.get("slow_mode", False)),
            slow_mode_wait_time=data.get("slow_mode_wait_time"),
            follower_mode=bool(data.get("follower_mode", False)),
            follower_mode_duration=data.get("follower_mode_duration"),
            subscriber_mode=bool(data.get("subscriber_mode", False)),
            emote_mode=bool(data.get("emote_mode", False)),
        )


def missing_scopes(info: TokenInfo) -> list[str]:
    """不足しているスコープ"""
    granted = set(info.scopes)
    return [scope for scope in REQUIRED_SCOPES if scope not in granted]


class TwitchError(Exception):
    """Twitch関連エラーの基底クラス"""
    pass


class TwitchAuthError(TwitchError):
    """トークンが無効・期限切れ"""
    pass


class TwitchRateLimitError(TwitchError):
    """レート制限"""
    pass


class TwitchAPIError(TwitchError):
    """Helix APIエラー"""
    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Twitch API Error {status}: {message}")


class HelixClient:
    """Twitch Helix API クライアント

    使用例:
    ```python
    async with HelixClient(settings) as helix:
        active = await helix.get_shield_mode()
        await helix.set_shield_mode(not active)
    ```
    """

    def __init__(
        self,
        settings: GlobalSettings,
        config: Optional[HelixConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.config = config or HelixConfig()
        self._limiter = RateLimiter(self.config.requests_per_minute, 60.0)
        self._client = httpx.AsyncClient(timeout=self.config.timeout, transport=transport)

    @property
    def broadcaster_id(self) -> str:
        return self.settings.twitch_broadcaster_id

    @property
    def moderator_id(self) -> str:
        return self.settings.moderator_id

    def _moderation_params(self) -> dict[str, str]:
        return {"broadcaster_id": self.broadcaster_id, "moderator_id": self.moderator_id}

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.bearer_token}",
            "Client-Id": self.settings.twitch_client_id,
        }

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message") or response.reason_phrase
        except ValueError:
            return response.text or response.reason_phrase

    async def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json: Optional[dict] = None,
    ) -> dict:
        """Helix へリクエストを送信"""
        if not self._limiter.try_acquire():
            raise TwitchRateLimitError("Local Helix request budget exhausted")

        url = f"{self.config.base_url}{path}"
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise TwitchError(f"Helix {method} {path} failed: {e}") from e

        if response.status_code == 401:
            raise TwitchAuthError(self._error_message(response))
        if response.status_code == 429:
            raise TwitchRateLimitError(self._error_message(response))
        if response.status_code >= 400:
            raise TwitchAPIError(response.status_code, self._error_message(response))

        logger.debug(f"Helix {method} {path} -> {response.status_code}")
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ========== 認証 ==========

    async def validate_token(self) -> TokenInfo:
        """トークンを検証（接続テスト用）"""
        try:
            response = await self._client.get(
                f"{self.config.auth_url}/validate",
                headers={"Authorization": f"OAuth {self.settings.bearer_token}"},
            )
        except httpx.HTTPError as e:
            raise TwitchError(f"Token validation failed: {e}") from e

        if response.status_code == 401:
            raise TwitchAuthError(self._error_message(response))
        if response.status_code >= 400:
            raise TwitchAPIError(response.status_code, self._error_message(response))

        return TokenInfo.from_dict(response.json())

    # ========== Shield Mode ==========

    async def get_shield_mode(self) -> bool:
        data = await self._request("GET", "/moderation/shield_mode", params=self._moderation_params())
        items = data.get("data") or [{}]
        return bool(items[0].get("is_active", False))

    async def set_shield_mode(self, active: bool) -> bool:
        data = await self._request(
            "PUT",
            "/moderation/shield_mode",
            params=self._moderation_params(),
            json={"is_active": active},
        )
        items = data.get("data") or [{}]
        result = bool(items[0].get("is_active", active))
        logger.info(f"Shield mode: {'on' if result else 'off'}")
        return result

    # ========== チャット設定 ==========

    async def get_chat_settings(self) -> ChatSettings:
        data = await self._request("GET", "/chat/settings", params=self._moderation_params())
        items = data.get("data") or [{}]
        return ChatSettings.from_dict(items[0])

    async def update_chat_settings(self, **changes: Any) -> ChatSettings:
        """チャット設定を部分更新（Helix のフィールド名をそのまま渡す）"""
        data = await self._request(
            "PATCH", "/chat/settings", params=self._moderation_params(), json=changes
        )
        items = data.get("data") or [changes]
        return ChatSettings.from_dict(items[0])

    async def set_slow_mode(self, enabled: bool, wait_seconds: int = 3) -> ChatSettings:
        changes: dict[str, Any] = {"slow_mode": enabled}
        if enabled:
            changes["slow_mode_wait_time"] = wait_seconds
        return await self.update_chat_settings(**changes)

    async def set_followers_only(self, enabled: bool, duration_minutes: int = 10) -> ChatSettings:
        changes: dict[str, Any] = {"follower_mode": enabled}
        if enabled:
            changes["follower_mode_duration"] = duration_minutes
        return await self.update_chat_settings(**changes)

    async def set_subscribers_only(self, enabled: bool) -> ChatSettings:
        return await self.update_chat_settings(subscriber_mode=enabled)

    async def set_emote_only(self, enabled: bool) -> ChatSettings:
        return await self.update_chat_settings(emote_mode=enabled)

    # ========== AutoMod ==========

    async def manage_held_message(self, msg_id: str, allow: bool = True):
        """AutoMod で保留されたメッセージを承認 / 拒否"""
        await self._request(
            "POST",
            "/moderation/automod/message",
            json={
                "user_id": self.moderator_id,
                "msg_id": msg_id,
                "action": "ALLOW" if allow else "DENY",
            },
        )
        logger.info(f"AutoMod message {msg_id}: {'allowed' if allow else 'denied'}")

    # ========== ユーザー ==========

    async def get_users(self, logins: list[str]) -> list[dict]:
        if not logins:
            return []
        data = await self._request("GET", "/users", params=[("login", login) for login in logins])
        return data.get("data") or []

    # ========== チャンネルポイント ==========

    async def get_manageable_rewards(self) -> list[dict]:
        data = await self._request(
            "GET",
            "/channel_points/custom_rewards",
            params={"broadcaster_id": self.broadcaster_id, "only_manageable_rewards": "true"},
        )
        return data.get("data") or []

    async def get_unfulfilled_redemption_ids(self, reward_id: str) -> list[str]:
        ids: list[str] = []
        cursor: Optional[str] = None
        while True:
            params = {
                "broadcaster_id": self.broadcaster_id,
                "reward_id": reward_id,
                "status": "UNFULFILLED",
                "first": str(REDEMPTION_PAGE_SIZE),
            }
            if cursor:
                params["after"] = cursor
            data = await self._request(
                "GET", "/channel_points/custom_rewards/redemptions", params=params
            )
            ids.extend(item["id"] for item in data.get("data") or [])
            cursor = (data.get("pagination") or {}).get("cursor")
            if not cursor:
                return ids

    async def clear_redemption_queue(self, status: str = "FULFILLED") -> int:
        """未処理の引き換えをすべて FULFILLED / CANCELED にする

        Returns:
            更新した引き換え数
        """
        if status not in ("FULFILLED", "CANCELED"):
            raise ValueError(f"Invalid redemption status: {status}")

        cleared = 0
        for reward in await self.get_manageable_rewards():
            ids = await self.get_unfulfilled_redemption_ids(reward["id"])
            for start in range(0, len(ids), REDEMPTION_PAGE_SIZE):
                batch = ids[start:start + REDEMPTION_PAGE_SIZE]
                params = [("id", i) for i in batch]
                params += [("broadcaster_id", self.broadcaster_id), ("reward_id", reward["id"])]
                await self._request(
                    "PATCH",
                    "/channel_points/custom_rewards/redemptions",
                    params=params,
                    json={"status": status},
                )
                cleared += len(batch)
        return cleared

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
