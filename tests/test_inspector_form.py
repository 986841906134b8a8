"""Tests for Property Inspector form controller"""

import asyncio
import json

import pytest

from twitchmod.core.config import InspectorConfig
from twitchmod.core.validation import ERROR_BROADCASTER_ID, ERROR_INVALID_CHANNEL, ERROR_MODERATOR_ID
from twitchmod.modes.inspector_form import (
    SAVE_BUTTON_LABEL,
    SAVE_BUTTON_SAVED,
    STATUS_SUCCESS,
    STATUS_TESTING,
    STATUS_TIMED_OUT,
    TEST_BUTTON_LABEL,
    TEST_BUTTON_TESTING,
    TOKEN_GENERATOR_URL,
    USER_ID_CONVERTER_URL,
    InspectorForm,
)
from twitchmod.streamdeck import StreamDeckPropertyInspector

SHIELD_ACTION = "com.twitchmod.streamdeck.shieldmode"


@pytest.fixture
def open_form(open_adapter):
    async def _open(action=SHIELD_ACTION, config=None):
        inspector = StreamDeckPropertyInspector()
        form = InspectorForm(inspector, config)
        ws = await open_adapter(
            inspector,
            uuid="PI-UUID",
            register_event="registerPropertyInspector",
            action_info={"action": action, "context": "KEY-1"},
        )
        return form, ws

    return _open


def _frame(event, payload):
    return json.dumps({"event": event, "context": "KEY-1", "payload": payload})


class TestSections:
    """アクション固有セクションの表示"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action,section", [
        ("com.twitchmod.streamdeck.shieldmode", "shieldSettings"),
        ("com.twitchmod.streamdeck.followersonly", "followerSettings"),
        ("com.twitchmod.streamdeck.slowmode", "slowSettings"),
        ("com.twitchmod.streamdeck.emoteonly", None),
        ("com.example.unknown", None),
    ])
    async def test_visible_section(self, open_form, action, section):
        form, _ = await open_form(action)
        assert form.ui.visible_section == section

    def test_before_connect(self):
        form = InspectorForm(StreamDeckPropertyInspector())
        assert form.ui.visible_section is None


class TestReceive:
    """設定の受信とフォームへの反映"""

    @pytest.mark.asyncio
    async def test_settings_populate_fields(self, open_form):
        form, _ = await open_form()
        await form.inspector.handle_frame(_frame("didReceiveSettings", {"settings": {"shieldDuration": 120}}))

        assert form.ui.fields["shieldDuration"] == "120"
        assert form.ui.fields["slowDelay"] == ""

    @pytest.mark.asyncio
    async def test_global_settings_populate_fields(self, open_form):
        form, _ = await open_form()
        await form.inspector.handle_frame(_frame("didReceiveGlobalSettings", {
            "settings": {"twitchChannel": "streamer", "twitchToken": "", "twitchClientId": "cid"},
        }))

        assert form.ui.fields["twitchChannel"] == "streamer"
        assert form.ui.fields["twitchClientId"] == "cid"
        assert form.ui.fields["twitchToken"] == ""
        assert form.global_settings["twitchClientId"] == "cid"


class TestSave:
    """保存処理"""

    @pytest.mark.asyncio
    async def test_empty_action_fields_save_defaults(self, open_form):
        form, ws = await open_form()
        await form.save_settings()

        assert ws.sent == [{
            "event": "setSettings",
            "context": "PI-UUID",
            "payload": {"shieldDuration": 300, "followDuration": 10, "slowDelay": 3},
        }]

    @pytest.mark.asyncio
    async def test_change_global_field(self, open_form):
        form, ws = await open_form()
        await form.change("twitchChannel", "@Ninja")

        assert ws.events() == ["setGlobalSettings", "sendToPlugin"]
        assert ws.sent[0]["payload"]["twitchChannel"] == "Ninja"
        relay = ws.sent[1]["payload"]
        assert relay["action"] == "saveGlobalSettings"
        assert relay["twitchChannel"] == "Ninja"
        assert ws.sent[1]["action"] == SHIELD_ACTION

    @pytest.mark.asyncio
    async def test_change_action_field(self, open_form):
        form, ws = await open_form()
        await form.change("slowDelay", "30")

        assert ws.events() == ["setSettings"]
        assert ws.sent[0]["payload"]["slowDelay"] == 30

    @pytest.mark.asyncio
    async def test_repeated_save_sends_same_messages(self, open_form):
        form, ws = await open_form()
        form.ui.fields.update({"twitchChannel": "Ninja", "twitchToken": "oauth:secret", "shieldDuration": "120"})

        for _ in range(2):
            await form.save_global_settings()
            await form.save_settings()

        assert len(ws.sent) == 6
        assert ws.sent[:3] == ws.sent[3:]
        assert ws.sent[2]["payload"]["shieldDuration"] == 120

    @pytest.mark.asyncio
    async def test_change_unknown_field(self, open_form):
        form, _ = await open_form()
        with pytest.raises(KeyError):
            await form.change("nope", "x")

    @pytest.mark.asyncio
    async def test_save_confirmation(self, open_form):
        form, ws = await open_form(config=InspectorConfig(save_confirmation=0.05))
        await form.save()

        assert ws.events() == ["setGlobalSettings", "sendToPlugin", "setSettings"]
        assert form.ui.save_button_label == SAVE_BUTTON_SAVED
        assert form.ui.save_button_saved

        await asyncio.sleep(0.1)
        assert form.ui.save_button_label == SAVE_BUTTON_LABEL
        assert not form.ui.save_button_saved


class TestConnectionTest:
    """接続テストとタイムアウト"""

    @pytest.mark.asyncio
    async def test_request(self, open_form):
        form, ws = await open_form()
        await form.inspector.handle_frame(_frame("didReceiveGlobalSettings", {
            "settings": {"twitchToken": "oauth:abc", "twitchClientId": "cid", "twitchBroadcasterId": "1"},
        }))
        await form.test_connection()

        assert form.ui.test_button_disabled
        assert form.ui.test_button_label == TEST_BUTTON_TESTING
        assert form.ui.status_text == STATUS_TESTING
        assert ws.sent[-1]["payload"] == {
            "action": "testConnection",
            "twitchToken": "oauth:abc",
            "twitchClientId": "cid",
            "twitchBroadcasterId": "1",
        }
        form.handle_connection_test_result(True)

    @pytest.mark.asyncio
    async def test_timeout(self, open_form):
        form, _ = await open_form(config=InspectorConfig(test_timeout=0.05))
        await form.test_connection()

        await asyncio.sleep(0.1)
        assert form.ui.status_text == STATUS_TIMED_OUT
        assert form.ui.status_class == "status-error"
        assert not form.ui.test_button_disabled
        assert form.ui.test_button_label == TEST_BUTTON_LABEL

    @pytest.mark.asyncio
    async def test_reply_cancels_timeout(self, open_form):
        form, _ = await open_form(config=InspectorConfig(test_timeout=0.05))
        await form.test_connection()

        await form.inspector.handle_frame(_frame("sendToPropertyInspector", {
            "event": "connectionTest", "success": True, "message": "Connected as streamer",
        }))
        assert form.ui.status_text == "Connected as streamer"
        assert form.ui.status_class == "status-success"
        assert not form.ui.test_button_disabled

        await asyncio.sleep(0.1)
        assert form.ui.status_text == "Connected as streamer"

    @pytest.mark.asyncio
    async def test_reply_without_message(self, open_form):
        form, _ = await open_form()
        await form.inspector.handle_frame(_frame("sendToPropertyInspector", {"event": "connectionTest", "success": True}))
        assert form.ui.status_text == STATUS_SUCCESS

    @pytest.mark.asyncio
    async def test_failure_reply(self, open_form):
        form, _ = await open_form()
        await form.test_connection()
        await form.inspector.handle_frame(_frame("sendToPropertyInspector", {
            "event": "connectionTest", "success": False, "message": "OAuth token is required",
        }))
        assert form.ui.status_text == "OAuth token is required"
        assert form.ui.status_class == "status-error"

    @pytest.mark.asyncio
    async def test_other_messages_ignored(self, open_form):
        form, _ = await open_form()
        await form.inspector.handle_frame(_frame("sendToPropertyInspector", {"event": "somethingElse"}))
        assert form.ui.status_text == ""


class TestValidate:
    """エラーパネル"""

    def test_errors_shown(self):
        form = InspectorForm(StreamDeckPropertyInspector())
        form.ui.fields.update({
            "twitchChannel": "ab",
            "twitchToken": "oauth:abc",
            "twitchBroadcasterId": "123abc",
            "twitchModeratorId": "",
        })

        assert not form.validate()
        assert form.ui.errors == [ERROR_INVALID_CHANNEL, ERROR_BROADCASTER_ID, ERROR_MODERATOR_ID]
        assert form.ui.error_panel_visible

    def test_valid(self):
        form = InspectorForm(StreamDeckPropertyInspector())
        form.ui.fields.update({
            "twitchChannel": "@Ninja",
            "twitchToken": "oauth:abc",
            "twitchBroadcasterId": "123",
            "twitchModeratorId": " 456 ",
        })

        assert form.validate()
        assert form.ui.errors == []
        assert not form.ui.error_panel_visible


class TestLinks:
    @pytest.mark.asyncio
    async def test_open_pages(self, open_form):
        form, ws = await open_form()
        await form.open_token_page()
        await form.open_user_id_page()

        assert [m["payload"]["url"] for m in ws.sent] == [TOKEN_GENERATOR_URL, USER_ID_CONVERTER_URL]
