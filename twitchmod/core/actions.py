"""Actions - プラグインのアクション定義"""

from enum import Enum
from typing import Optional

PLUGIN_ID = "com.twitchmod.streamdeck"


class ActionType(str, Enum):
    """アクション UUID（manifest.json と一致させること）"""
    SHIELD_MODE = f"{PLUGIN_ID}.shieldmode"
    SLOW_MODE = f"{PLUGIN_ID}.slowmode"
    FOLLOWERS_ONLY = f"{PLUGIN_ID}.followersonly"
    SUBSCRIBERS_ONLY = f"{PLUGIN_ID}.subscribersonly"
    EMOTE_ONLY = f"{PLUGIN_ID}.emoteonly"
    AUTOMOD = f"{PLUGIN_ID}.automod"
    SHOUTOUT = f"{PLUGIN_ID}.shoutout"
    REWARDS = f"{PLUGIN_ID}.rewards"

    @classmethod
    def parse(cls, uuid: Optional[str]) -> Optional["ActionType"]:
        try:
            return cls(uuid)
        except ValueError:
            return None


class PluginMessage(str, Enum):
    """Property Inspector <-> Plugin 間のリレーメッセージ種別"""
    SAVE_GLOBAL_SETTINGS = "saveGlobalSettings"  # PI -> Plugin（payload.action）
    TEST_CONNECTION = "testConnection"  # PI -> Plugin（payload.action）
    CONNECTION_TEST = "connectionTest"  # Plugin -> PI（payload.event）


# Property Inspector で表示するアクション固有の設定セクション
SETTINGS_SECTIONS: dict[ActionType, str] = {
    ActionType.SHIELD_MODE: "shieldSettings",
    ActionType.FOLLOWERS_ONLY: "followerSettings",
    ActionType.SLOW_MODE: "slowSettings",
}

# トグル系アクション（状態 0 = オフ、1 = オン）
TOGGLE_ACTIONS = frozenset({
    ActionType.SHIELD_MODE,
    ActionType.SLOW_MODE,
    ActionType.FOLLOWERS_ONLY,
    ActionType.SUBSCRIBERS_ONLY,
    ActionType.EMOTE_ONLY,
})


def settings_section(action: Optional[str]) -> Optional[str]:
    """アクションに対応する設定セクションID（なければ None）"""
    action_type = ActionType.parse(action)
    if action_type is None:
        return None
    return SETTINGS_SECTIONS.get(action_type)
