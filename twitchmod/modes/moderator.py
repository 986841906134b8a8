"""Moderator Mode - Twitch モデレーション用プラグイン本体

Stream Deck のキー操作 → Twitch Helix / IRC
"""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Optional

from loguru import logger

from ..core.actions import TOGGLE_ACTIONS, ActionType, PluginMessage
from ..core.settings import ActionSettings, GlobalSettings
from ..core.utils import format_number, format_time
from ..integrations.chat import ChatConfig, RaidEvent, TwitchChat
from ..integrations.helix import HelixClient, HelixConfig, TwitchError, missing_scopes
from ..streamdeck.plugin import StreamDeckPlugin
from ..streamdeck.protocol import ConnectionEvent, Envelope, EventReceived

STATE_OFF = 0
STATE_ON = 1


class ActionError(Exception):
    """キー操作を実行できない（認証情報なし、対象なし等）"""
    pass


class RaidTracker:
    """直近のレイド元（シャウトアウト対象）

    レイド受信で上書きされ、シャウトアウト時に読み出してクリアする。有効期限はない。
    """

    def __init__(self):
        self._current: Optional[RaidEvent] = None

    @property
    def current(self) -> Optional[RaidEvent]:
        return self._current

    def set(self, raid: RaidEvent):
        self._current = raid

    def take(self) -> Optional[RaidEvent]:
        raid, self._current = self._current, None
        return raid


class HeldMessageQueue:
    """AutoMod で保留中のメッセージID（古い順）"""

    def __init__(self):
        self._ids: deque[str] = deque()

    def push(self, msg_id: str):
        if msg_id not in self._ids:
            self._ids.append(msg_id)

    def pop(self) -> Optional[str]:
        return self._ids.popleft() if self._ids else None

    def __len__(self) -> int:
        return len(self._ids)


class TwitchModPlugin:
    """Twitch モデレーターツール

    イベント名 -> ハンドラの対応表を StreamDeckPlugin に渡して構築する。

    使用例:
    ```python
    mod = TwitchModPlugin()
    await mod.run(port, plugin_uuid, register_event, info)
    ```
    """

    def __init__(
        self,
        helix_config: Optional[HelixConfig] = None,
        chat_config: Optional[ChatConfig] = None,
        helix_factory: Optional[Callable[[GlobalSettings], HelixClient]] = None,
        enable_chat: bool = True,
    ):
        self.helix_config = helix_config or HelixConfig()
        self.chat_config = chat_config or ChatConfig()
        self._helix_factory = helix_factory or (lambda s: HelixClient(s, self.helix_config))
        self.enable_chat = enable_chat

        self.plugin = StreamDeckPlugin({
            EventReceived.GLOBAL_SETTINGS: self.on_global_settings,
            EventReceived.SETTINGS: self.on_settings,
            EventReceived.WILL_APPEAR: self.on_will_appear,
            EventReceived.WILL_DISAPPEAR: self.on_will_disappear,
            EventReceived.KEY_DOWN: self.on_key_down,
            EventReceived.SEND_TO_PLUGIN: self.on_send_to_plugin,
            EventReceived.SYSTEM_DID_WAKE_UP: self.on_system_did_wake_up,
            ConnectionEvent.DISCONNECTED: self.on_disconnected,
        })

        self.global_settings = GlobalSettings()
        self.action_settings: dict[str, ActionSettings] = {}
        self.raids = RaidTracker()
        self.held_messages = HeldMessageQueue()

        self._helix: Optional[HelixClient] = None
        self._chat: Optional[TwitchChat] = None
        self._chat_task: Optional[asyncio.Task] = None
        self._shield_timers: dict[str, asyncio.Task] = {}

        # キー押下時の処理（戻り値はトグルの新しい状態、トグル以外は None）
        self._actions: dict[ActionType, Callable[[str, ActionSettings], Awaitable[Optional[int]]]] = {
            ActionType.SHIELD_MODE: self._toggle_shield_mode,
            ActionType.SLOW_MODE: self._toggle_slow_mode,
            ActionType.FOLLOWERS_ONLY: self._toggle_followers_only,
            ActionType.SUBSCRIBERS_ONLY: self._toggle_subscribers_only,
            ActionType.EMOTE_ONLY: self._toggle_emote_only,
            ActionType.AUTOMOD: self._approve_held_message,
            ActionType.SHOUTOUT: self._shoutout_raider,
            ActionType.REWARDS: self._clear_rewards,
        }

    @property
    def helix(self) -> HelixClient:
        if not self.global_settings.is_complete:
            raise ActionError("Twitch credentials are not configured")
        if self._helix is None:
            self._helix = self._helix_factory(self.global_settings)
        return self._helix

    async def run(self, port: int, uuid: str, register_event: str, info: Optional[str] = None) -> bool:
        """Stream Deck に接続して受信ループを実行"""
        try:
            return await self.plugin.start(port, uuid, register_event, info)
        finally:
            await self.shutdown()

    async def shutdown(self):
        for task in self._shield_timers.values():
            task.cancel()
        self._shield_timers.clear()
        await self._stop_chat()
        if self._helix is not None:
            await self._helix.close()
            self._helix = None

    # ========== 設定 ==========

    async def apply_global_settings(self, settings: GlobalSettings):
        """認証情報を差し替え（変更があればクライアントを作り直す）"""
        if settings == self.global_settings:
            return

        logger.info(f"Global settings updated (channel: {settings.twitch_channel or '-'})")
        self.global_settings = settings
        if self._helix is not None:
            await self._helix.close()
            self._helix = None

        await self._stop_chat()
        if self.enable_chat and settings.is_complete and settings.twitch_channel:
            self._chat_task = asyncio.create_task(self._run_chat())

    async def on_global_settings(self, envelope: Envelope):
        await self.apply_global_settings(GlobalSettings.from_dict(envelope.settings))

    def on_settings(self, envelope: Envelope):
        self.action_settings[envelope.context] = ActionSettings.from_dict(envelope.settings)

    async def on_will_appear(self, envelope: Envelope):
        self.action_settings[envelope.context] = ActionSettings.from_dict(envelope.settings)
        action = ActionType.parse(envelope.action)
        if action in TOGGLE_ACTIONS and self.global_settings.is_complete:
            await self._sync_state(envelope.context, action)

    def on_will_disappear(self, envelope: Envelope):
        self.action_settings.pop(envelope.context, None)

    async def on_system_did_wake_up(self, envelope: Envelope):
        await self.plugin.get_global_settings()

    async def on_disconnected(self, envelope: Envelope):
        await self.shutdown()

    # ========== Property Inspector からのメッセージ ==========

    async def on_send_to_plugin(self, envelope: Envelope):
        payload = envelope.body
        message = payload.get("action")

        if message == PluginMessage.SAVE_GLOBAL_SETTINGS.value:
            await self.apply_global_settings(GlobalSettings.from_dict(payload))
        elif message == PluginMessage.TEST_CONNECTION.value:
            success, text = await self.test_connection(payload)
            await self.plugin.send_to_property_inspector(
                envelope.context,
                {"event": PluginMessage.CONNECTION_TEST.value, "success": success, "message": text},
                envelope.action,
            )
        else:
            logger.debug(f"Ignored sendToPlugin message: {message}")

    async def test_connection(self, payload: dict) -> tuple[bool, str]:
        """トークンを検証してスコープ不足を確認"""
        merged = self.global_settings.to_dict()
        for key in ("twitchToken", "twitchClientId", "twitchBroadcasterId"):
            if payload.get(key):
                merged[key] = payload[key]
        settings = GlobalSettings.from_dict(merged)

        if not settings.twitch_token:
            return False, "OAuth token is required"

        client = self._helix_factory(settings)
        try:
            info = await client.validate_token()
        except TwitchError as e:
            logger.warning(f"Connection test failed: {e}")
            return False, str(e)
        finally:
            await client.close()

        missing = missing_scopes(info)
        if missing:
            return False, f"Connected as {info.login}, missing scopes: {', '.join(missing)}"
        if settings.twitch_client_id and info.client_id and info.client_id != settings.twitch_client_id:
            return False, "Token was issued for a different Client ID"
        return True, f"Connected as {info.login}"

    # ========== キー操作 ==========

    async def on_key_down(self, envelope: Envelope):
        action = ActionType.parse(envelope.action)
        if action is None:
            logger.warning(f"Unknown action: {envelope.action}")
            return

        context = envelope.context
        settings = self.action_settings.get(context) or ActionSettings.from_dict(envelope.settings)

        try:
            state = await self._actions[action](context, settings)
        except (TwitchError, ActionError) as e:
            await self._fail(context, f"{action.name.lower()} failed: {e}")
            return

        if state is not None:
            await self.plugin.set_state(context, state)
        await self.plugin.show_ok(context)

    async def _fail(self, context: str, message: str):
        logger.warning(message)
        await self.plugin.log_message(message)
        await self.plugin.show_alert(context)

    async def _sync_state(self, context: str, action: ActionType):
        """トグルキーの表示状態を Twitch 側に合わせる"""
        try:
            if action is ActionType.SHIELD_MODE:
                active = await self.helix.get_shield_mode()
            else:
                chat = await self.helix.get_chat_settings()
                active = {
                    ActionType.SLOW_MODE: chat.slow_mode,
                    ActionType.FOLLOWERS_ONLY: chat.follower_mode,
                    ActionType.SUBSCRIBERS_ONLY: chat.subscriber_mode,
                    ActionType.EMOTE_ONLY: chat.emote_mode,
                }[action]
        except (TwitchError, ActionError) as e:
            logger.warning(f"Could not read state for {action.name.lower()}: {e}")
            return
        await self.plugin.set_state(context, STATE_ON if active else STATE_OFF)

    async def _toggle_shield_mode(self, context: str, settings: ActionSettings) -> int:
        active = await self.helix.set_shield_mode(not await self.helix.get_shield_mode())

        timer = self._shield_timers.pop(context, None)
        if timer:
            timer.cancel()
        if active:
            logger.info(f"Shield mode will turn off in {format_time(settings.shield_duration)}")
            self._shield_timers[context] = asyncio.create_task(
                self._shield_off_later(context, settings.shield_duration)
            )
        return STATE_ON if active else STATE_OFF

    async def _shield_off_later(self, context: str, delay: float):
        await asyncio.sleep(delay)
        self._shield_timers.pop(context, None)
        try:
            await self.helix.set_shield_mode(False)
        except (TwitchError, ActionError) as e:
            await self._fail(context, f"shield_mode auto-off failed: {e}")
            return
        await self.plugin.set_state(context, STATE_OFF)

    async def _toggle_slow_mode(self, context: str, settings: ActionSettings) -> int:
        current = await self.helix.get_chat_settings()
        result = await self.helix.set_slow_mode(not current.slow_mode, settings.slow_delay)
        return STATE_ON if result.slow_mode else STATE_OFF

    async def _toggle_followers_only(self, context: str, settings: ActionSettings) -> int:
        current = await self.helix.get_chat_settings()
        result = await self.helix.set_followers_only(not current.follower_mode, settings.follow_duration)
        return STATE_ON if result.follower_mode else STATE_OFF

    async def _toggle_subscribers_only(self, context: str, settings: ActionSettings) -> int:
        current = await self.helix.get_chat_settings()
        result = await self.helix.set_subscribers_only(not current.subscriber_mode)
        return STATE_ON if result.subscriber_mode else STATE_OFF

    async def _toggle_emote_only(self, context: str, settings: ActionSettings) -> int:
        current = await self.helix.get_chat_settings()
        result = await self.helix.set_emote_only(not current.emote_mode)
        return STATE_ON if result.emote_mode else STATE_OFF

    async def _approve_held_message(self, context: str, settings: ActionSettings) -> None:
        msg_id = self.held_messages.pop()
        if msg_id is None:
            raise ActionError("No held AutoMod messages")
        await self.helix.manage_held_message(msg_id, allow=True)

    async def _shoutout_raider(self, context: str, settings: ActionSettings) -> None:
        if self._chat is None or not self._chat.is_connected:
            raise ActionError("Twitch chat is not connected")
        raid = self.raids.take()
        if raid is None:
            raise ActionError("No raider to shout out")
        try:
            await self._chat.send_shoutout(raid)
        except (OSError, RuntimeError) as e:
            # 送信失敗時はレイド元を保持
            self.raids.set(raid)
            raise ActionError(f"Shoutout could not be sent: {e!r}") from e

    async def _clear_rewards(self, context: str, settings: ActionSettings) -> None:
        cleared = await self.helix.clear_redemption_queue()
        logger.info(f"Cleared {format_number(cleared)} redemptions")

    def hold_message(self, msg_id: str):
        """AutoMod 保留メッセージを登録（承認キーの対象になる）"""
        self.held_messages.push(msg_id)

    # ========== チャット ==========

    async def _run_chat(self):
        settings = self.global_settings
        try:
            info = await self.helix.validate_token()
        except (TwitchError, ActionError) as e:
            logger.warning(f"Twitch chat disabled: {e}")
            return

        chat = TwitchChat(settings.twitch_channel, info.login, settings.twitch_token, self.chat_config)
        chat.set_raid_callback(self.raids.set)
        self._chat = chat
        try:
            if await chat.connect():
                await chat.listen()
        except OSError as e:
            logger.warning(f"Twitch chat connection error: {e}")

    async def _stop_chat(self):
        if self._chat is not None:
            await self._chat.close()
            self._chat = None
        if self._chat_task is not None:
            task, self._chat_task = self._chat_task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Twitch chat task failed: {e}")
