"""Inspector Form - Property Inspector のフォームロジック

DOM を持たないヘッドレスなフォームコントローラ。UI の状態は InspectorUI に保持し、
描画側（HTML / テスト）はそれを読むだけにする。
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from ..core.actions import PluginMessage, settings_section
from ..core.config import InspectorConfig
from ..core.settings import (
    ACTION_SETTING_DEFAULTS,
    GLOBAL_SETTING_KEYS,
    ActionSettings,
    GlobalSettings,
)
from ..core.validation import validate_global_settings
from ..streamdeck.inspector import StreamDeckPropertyInspector
from ..streamdeck.protocol import ConnectionEvent, Envelope, EventReceived

TOKEN_GENERATOR_URL = "https://twitchapps.com/tmi/"
USER_ID_CONVERTER_URL = "https://www.streamweasels.com/tools/convert-twitch-username-to-user-id/"

TEST_BUTTON_LABEL = "Test Connection"
TEST_BUTTON_TESTING = "Testing..."
SAVE_BUTTON_LABEL = "Save"
SAVE_BUTTON_SAVED = "Saved!"

STATUS_TESTING = "Testing connection..."
STATUS_TIMED_OUT = "Test timed out"
STATUS_SUCCESS = "Connected successfully!"
STATUS_FAILED = "Connection failed"


def _empty_fields() -> dict[str, str]:
    return {key: "" for key in (*GLOBAL_SETTING_KEYS, *ACTION_SETTING_DEFAULTS)}


@dataclass
class InspectorUI:
    """Property Inspector の表示状態"""
    fields: dict[str, str] = field(default_factory=_empty_fields)
    visible_section: Optional[str] = None

    # 接続テスト
    test_button_disabled: bool = False
    test_button_label: str = TEST_BUTTON_LABEL
    status_text: str = ""
    status_class: str = ""

    # 保存ボタン
    save_button_label: str = SAVE_BUTTON_LABEL
    save_button_saved: bool = False

    # エラーパネル
    errors: list[str] = field(default_factory=list)
    error_panel_visible: bool = False


class InspectorForm:
    """Property Inspector フォームコントローラ

    使用例:
    ```python
    inspector = StreamDeckPropertyInspector()
    form = InspectorForm(inspector)
    await inspector.start(port, uuid, register_event, info, action_info)
    ```
    """

    def __init__(
        self,
        inspector: StreamDeckPropertyInspector,
        config: Optional[InspectorConfig] = None,
    ):
        self.inspector = inspector
        self.config = config or InspectorConfig()
        self.ui = InspectorUI()
        self.settings: dict = {}
        self.global_settings: dict = {}

        self._test_timer: Optional[asyncio.TimerHandle] = None
        self._save_timer: Optional[asyncio.TimerHandle] = None

        inspector.set_handler(EventReceived.SETTINGS, self.on_did_receive_settings)
        inspector.set_handler(EventReceived.GLOBAL_SETTINGS, self.on_did_receive_global_settings)
        inspector.set_handler(EventReceived.SEND_TO_PROPERTY_INSPECTOR, self.on_send_to_property_inspector)
        inspector.set_handler(ConnectionEvent.CONNECTED, self.on_connected)

        self.refresh_section()

    def on_connected(self, envelope: Envelope):
        self.refresh_section()

    def refresh_section(self):
        """アクション固有の設定セクションだけを表示"""
        self.ui.visible_section = settings_section(self.inspector.action)

    # ========== 受信 ==========

    def on_did_receive_settings(self, envelope: Envelope):
        settings = envelope.settings
        self.settings = dict(settings)
        for key in ACTION_SETTING_DEFAULTS:
            if settings.get(key):
                self.ui.fields[key] = str(settings[key])

    def on_did_receive_global_settings(self, envelope: Envelope):
        settings = envelope.settings
        self.global_settings = dict(settings)
        for key in GLOBAL_SETTING_KEYS:
            if settings.get(key):
                self.ui.fields[key] = str(settings[key])

    def on_send_to_property_inspector(self, envelope: Envelope):
        payload = envelope.body
        if payload.get("event") == PluginMessage.CONNECTION_TEST.value:
            self.handle_connection_test_result(bool(payload.get("success")), payload.get("message"))

    # ========== 入力・保存 ==========

    async def change(self, field_id: str, value: str):
        """フィールド変更（change イベント）"""
        if field_id not in self.ui.fields:
            raise KeyError(f"Unknown field: {field_id}")

        self.ui.fields[field_id] = value
        if field_id in GLOBAL_SETTING_KEYS:
            await self.save_global_settings()
        else:
            await self.save_settings()

    def collect_settings(self) -> dict:
        return ActionSettings.from_dict(self.ui.fields).to_dict()

    def collect_global_settings(self) -> dict:
        return GlobalSettings.from_dict(self.ui.fields).to_dict()

    async def save_settings(self) -> dict:
        """アクション設定を保存"""
        settings = self.collect_settings()
        await self.inspector.set_settings(settings)
        self.settings = settings
        return settings

    async def save_global_settings(self) -> dict:
        """グローバル設定を保存し、プラグインにも即時反映"""
        settings = self.collect_global_settings()
        await self.inspector.set_global_settings(settings)
        await self.inspector.send_to_plugin({
            "action": PluginMessage.SAVE_GLOBAL_SETTINGS.value,
            **settings,
        })
        self.global_settings = settings
        return settings

    async def save(self):
        """保存ボタン"""
        await self.save_global_settings()
        await self.save_settings()
        self.show_save_confirmation()

    def show_save_confirmation(self):
        self.ui.save_button_label = SAVE_BUTTON_SAVED
        self.ui.save_button_saved = True

        if self._save_timer:
            self._save_timer.cancel()
        self._save_timer = asyncio.get_running_loop().call_later(
            self.config.save_confirmation, self._reset_save_button
        )

    def _reset_save_button(self):
        self._save_timer = None
        self.ui.save_button_label = SAVE_BUTTON_LABEL
        self.ui.save_button_saved = False

    # ========== 接続テスト ==========

    async def test_connection(self):
        """プラグインに接続テストを依頼（タイムアウト付き）"""
        self.ui.test_button_disabled = True
        self.ui.test_button_label = TEST_BUTTON_TESTING
        self.ui.status_text = STATUS_TESTING
        self.ui.status_class = "status-testing"

        await self.inspector.send_to_plugin({
            "action": PluginMessage.TEST_CONNECTION.value,
            "twitchToken": self.global_settings.get("twitchToken"),
            "twitchClientId": self.global_settings.get("twitchClientId"),
            "twitchBroadcasterId": self.global_settings.get("twitchBroadcasterId"),
        })

        if self._test_timer:
            self._test_timer.cancel()
        self._test_timer = asyncio.get_running_loop().call_later(
            self.config.test_timeout, self._on_test_timeout
        )

    def _on_test_timeout(self):
        self._test_timer = None
        if not self.ui.test_button_disabled:
            return

        logger.warning(f"Connection test timed out after {self.config.test_timeout}s")
        self.ui.test_button_disabled = False
        self.ui.test_button_label = TEST_BUTTON_LABEL
        self.ui.status_text = STATUS_TIMED_OUT
        self.ui.status_class = "status-error"

    def handle_connection_test_result(self, success: bool, message: Optional[str] = None):
        if self._test_timer:
            self._test_timer.cancel()
            self._test_timer = None

        self.ui.test_button_disabled = False
        self.ui.test_button_label = TEST_BUTTON_LABEL
        self.ui.status_text = message or (STATUS_SUCCESS if success else STATUS_FAILED)
        self.ui.status_class = "status-success" if success else "status-error"

    # ========== 検証・リンク ==========

    def validate(self) -> bool:
        """グローバル設定を検証してエラーパネルを更新"""
        form = {key: self.ui.fields.get(key) for key in GLOBAL_SETTING_KEYS}
        self.ui.errors = validate_global_settings(form)
        self.ui.error_panel_visible = bool(self.ui.errors)
        return not self.ui.errors

    async def open_token_page(self) -> bool:
        return await self.inspector.open_url(TOKEN_GENERATOR_URL)

    async def open_user_id_page(self) -> bool:
        return await self.inspector.open_url(USER_ID_CONVERTER_URL)
