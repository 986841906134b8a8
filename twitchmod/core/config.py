"""Config Loader - twitchmod.yaml 統合設定読み込み"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger

from ..integrations.chat import ChatConfig
from ..integrations.helix import HelixConfig
from .utils import parse_duration

DEFAULT_CONFIG_PATH = Path("config/twitchmod.yaml")

# Property Inspector のデフォルト値
DEFAULT_TEST_TIMEOUT = 10.0  # 接続テストのタイムアウト（秒）
DEFAULT_SAVE_CONFIRMATION = 2.0  # "Saved!" 表示時間（秒）


@dataclass
class LoggingConfig:
    """ログ設定"""
    level: str = "INFO"
    file: Optional[Path] = None  # Stream Deck はプラグインの標準出力を捨てるのでファイル推奨
    rotation: str = "1 MB"
    retention: int = 3


@dataclass
class InspectorConfig:
    """Property Inspector 設定"""
    test_timeout: float = DEFAULT_TEST_TIMEOUT
    save_confirmation: float = DEFAULT_SAVE_CONFIRMATION


def load_config(path: Optional[Path] = None) -> dict:
    """YAML設定ファイルを読み込み

    Args:
        path: 設定ファイルパス（省略時は config/twitchmod.yaml）

    Returns:
        設定辞書
    """
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        logger.warning(f"Config not found: {config_path}, using defaults")
        return {}

    with config_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    logger.info(f"Loaded config: {config_path}")
    return data


def _seconds(value: Union[int, float, str, None], default: float) -> float:
    """数値または "10s" 形式の文字列を秒数に変換"""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    seconds = parse_duration(str(value))
    if not seconds:
        logger.warning(f"Invalid duration: {value!r}, using {default}s")
        return default
    return float(seconds)


def build_logging_config(data: dict) -> LoggingConfig:
    """設定辞書からLoggingConfigを生成"""
    lg = data.get("logging", {})
    file = lg.get("file")
    return LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        file=Path(file) if file else None,
        rotation=lg.get("rotation", "1 MB"),
        retention=lg.get("retention", 3),
    )


def build_helix_config(data: dict) -> HelixConfig:
    """設定辞書からHelixConfigを生成"""
    h = data.get("helix", {})
    defaults = HelixConfig()
    return HelixConfig(
        base_url=h.get("base_url", defaults.base_url),
        auth_url=h.get("auth_url", defaults.auth_url),
        timeout=_seconds(h.get("timeout"), defaults.timeout),
        requests_per_minute=h.get("requests_per_minute", defaults.requests_per_minute),
    )


def build_chat_config(data: dict) -> ChatConfig:
    """設定辞書からChatConfigを生成"""
    c = data.get("chat", {})
    defaults = ChatConfig()
    return ChatConfig(
        irc_host=c.get("irc_host", defaults.irc_host),
        irc_port=c.get("irc_port", defaults.irc_port),
        irc_ssl_port=c.get("irc_ssl_port", defaults.irc_ssl_port),
        use_ssl=c.get("use_ssl", defaults.use_ssl),
        ping_interval=_seconds(c.get("ping_interval"), defaults.ping_interval),
        shoutout_template=c.get("shoutout_template", defaults.shoutout_template),
    )


def build_inspector_config(data: dict) -> InspectorConfig:
    """設定辞書からInspectorConfigを生成"""
    pi = data.get("inspector", {})
    return InspectorConfig(
        test_timeout=_seconds(pi.get("test_timeout"), DEFAULT_TEST_TIMEOUT),
        save_confirmation=_seconds(pi.get("save_confirmation"), DEFAULT_SAVE_CONFIRMATION),
    )


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """loguru のシンクを設定（stderr + 任意のログファイル）"""
    config = config or LoggingConfig()
    logger.remove()
    logger.add(sys.stderr, level=config.level)
    if config.file:
        logger.add(
            config.file,
            level=config.level,
            rotation=config.rotation,
            retention=config.retention,
            encoding="utf-8",
        )
        logger.debug(f"Logging to file: {config.file}")
