"""Twitch Chat Integration

Twitch IRC に接続し、レイド通知の受信とシャウトアウトメッセージの送信を行う。
（スコープ: chat:read / chat:edit）

参考:
- IRC: https://dev.twitch.tv/docs/irc
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from ..core.settings import parse_int


@dataclass
class ChatConfig:
    """Twitch Chat 設定"""

    # IRC サーバー
    irc_host: str = "irc.chat.twitch.tv"
    irc_port: int = 6667
    irc_ssl_port: int = 6697
    use_ssl: bool = True

    # ヘルスチェック
    ping_interval: float = 60.0  # PING 間隔（秒）

    # シャウトアウト文面（{login} / {display_name} を置換）
    shoutout_template: str = "Go check out @{display_name} at https://twitch.tv/{login} !"


@dataclass
class RaidEvent:
    """レイド通知"""
    login: str
    display_name: str
    user_id: str = ""
    viewer_count: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_tags(cls, tags: dict) -> "RaidEvent":
        login = tags.get("msg-param-login") or tags.get("login", "")
        return cls(
            login=login,
            display_name=tags.get("msg-param-displayName") or tags.get("display-name") or login,
            user_id=tags.get("user-id", ""),
            viewer_count=parse_int(tags.get("msg-param-viewerCount")) or 0,
        )


def parse_tags(tag_str: str) -> dict:
    """IRCv3 タグをパース"""
    tags = {}
    for tag in tag_str.split(";"):
        if "=" in tag:
            key, value = tag.split("=", 1)
            # エスケープ解除
            value = value.replace("\\s", " ").replace("\\n", "\n")
            value = value.replace("\\r", "\r").replace("\\:", ";")
            value = value.replace("\\\\", "\\")
            tags[key] = value
        else:
            tags[tag] = ""
    return tags


class TwitchChat:
    """Twitch IRC クライアント（レイド検知・メッセージ送信）

    使用例:
    ```python
    chat = TwitchChat(channel="streamer_name", nick="mod_name", oauth_token="oauth:xxx")
    chat.set_raid_callback(lambda raid: tracker.set(raid))
    if await chat.connect():
        await chat.listen()
    ```
    """

    def __init__(
        self,
        channel: str,
        nick: str,
        oauth_token: str,
        config: Optional[ChatConfig] = None,
    ):
        self.channel = channel.lower().lstrip("#")
        self.nick = nick.lower()
        self.oauth_token = oauth_token
        self.config = config or ChatConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._connected = False
        self._running = False

        self._on_raid: Optional[Callable[[RaidEvent], None]] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_raid_callback(self, callback: Callable[[RaidEvent], None]):
        """レイドコールバック"""
        self._on_raid = callback

    async def connect(self) -> bool:
        """IRC サーバーに接続してチャンネルに参加"""
        host = self.config.irc_host
        port = self.config.irc_ssl_port if self.config.use_ssl else self.config.irc_port

        try:
            logger.info(f"Connecting to Twitch IRC: {host}:{port}")
            self._reader, self._writer = await asyncio.open_connection(
                host, port, ssl=True if self.config.use_ssl else None
            )

            oauth = self.oauth_token
            if oauth and not oauth.startswith("oauth:"):
                oauth = f"oauth:{oauth}"

            await self._send(f"PASS {oauth}")
            await self._send(f"NICK {self.nick}")
            await self._send("CAP REQ :twitch.tv/tags twitch.tv/commands")
            await self._send(f"JOIN #{self.channel}")

            # 接続確認
            while True:
                line = await self._recv()
                if line is None:
                    logger.error("Twitch IRC closed or timed out during login")
                    return False

                if "Login authentication failed" in line or "Improperly formatted auth" in line:
                    logger.error("Twitch IRC authentication failed")
                    return False

                if line.startswith("PING"):
                    await self._send(f"PONG {line[5:]}")

                if f"JOIN #{self.channel}" in line:
                    self._connected = True
                    logger.info(f"Joined channel: #{self.channel}")
                    return True

        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to Twitch IRC: {e}")
            return False

    async def _send(self, message: str):
        """メッセージ送信"""
        if self._writer:
            self._writer.write(f"{message}\r\n".encode())
            await self._writer.drain()
            if not message.startswith("PASS"):
                logger.debug(f"IRC sent: {message}")

    async def _recv(self) -> Optional[str]:
        """1行受信（切断・タイムアウト時は None）"""
        if not self._reader:
            return None
        try:
            data = await asyncio.wait_for(
                self._reader.readline(),
                timeout=self.config.ping_interval + 5
            )
        except asyncio.TimeoutError:
            logger.warning("Twitch IRC receive timed out")
            return None
        if not data:
            return None
        return data.decode("utf-8", errors="replace").strip()

    async def process_line(self, line: str) -> Optional[RaidEvent]:
        """IRC 行を処理（レイド通知なら RaidEvent を返す）"""
        if not line:
            return None

        if line.startswith("PING"):
            await self._send(f"PONG {line[5:]}")
            return None

        tags = {}
        if line.startswith("@"):
            tag_str, _, line = line[1:].partition(" ")
            tags = parse_tags(tag_str)

        if re.search(r"\bUSERNOTICE #\w+", line) and tags.get("msg-id") == "raid":
            raid = RaidEvent.from_tags(tags)
            logger.info(f"Raid from {raid.display_name} ({raid.viewer_count} viewers)")
            if self._on_raid:
                self._on_raid(raid)
            return raid

        return None

    async def listen(self):
        """受信ループ（切断または stop() まで）"""
        self._running = True
        ping_task = asyncio.create_task(self._ping_loop())

        try:
            while self._running and self._connected:
                line = await self._recv()
                if line is None:
                    logger.warning("Twitch IRC connection lost")
                    self._connected = False
                    break
                await self.process_line(line)
        finally:
            ping_task.cancel()
            try:
                await ping_task
            except asyncio.CancelledError:
                pass

    async def _ping_loop(self):
        """定期 PING 送信"""
        while self._running:
            await asyncio.sleep(self.config.ping_interval)
            if self._connected:
                await self._send("PING :tmi.twitch.tv")

    async def send_message(self, text: str):
        """チャットにメッセージ送信"""
        if not self._connected:
            raise RuntimeError("Not connected to Twitch chat")
        await self._send(f"PRIVMSG #{self.channel} :{text}")

    async def send_shoutout(self, raid: RaidEvent):
        """シャウトアウトメッセージを送信"""
        text = self.config.shoutout_template.format(
            login=raid.login, display_name=raid.display_name
        )
        await self.send_message(text)
        logger.info(f"Shoutout sent for {raid.login}")

    def stop(self):
        self._running = False

    async def close(self):
        """リソース解放"""
        self.stop()
        self._connected = False
        if self._writer:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                pass
            self._writer = None
