"""Twitch Moderator Tools - Stream Deck プラグイン"""

__version__ = "0.1.0"
