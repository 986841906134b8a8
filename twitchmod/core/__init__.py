"""Core modules for twitchmod"""

from .settings import (
    ACTION_SETTING_DEFAULTS,
    GLOBAL_SETTING_KEYS,
    ActionSettings,
    GlobalSettings,
    coerce_int,
    normalize_channel,
)
from .utils import (
    RateLimiter,
    format_number,
    format_time,
    parse_duration,
    retry_with_backoff,
)
from .validation import (
    parse_twitch_user_id,
    validate_global_settings,
    validate_numeric_id,
    validate_oauth_token,
    validate_twitch_username,
)

# config は integrations に依存するため、ここではインポートしない
# （from twitchmod.core.config import ... で直接使う）

__all__ = [
    "ACTION_SETTING_DEFAULTS",
    "GLOBAL_SETTING_KEYS",
    "ActionSettings",
    "GlobalSettings",
    "coerce_int",
    "normalize_channel",
    "RateLimiter",
    "format_number",
    "format_time",
    "parse_duration",
    "retry_with_backoff",
    "parse_twitch_user_id",
    "validate_global_settings",
    "validate_numeric_id",
    "validate_oauth_token",
    "validate_twitch_username",
]
