"""Utilities - 汎用ヘルパー"""

import asyncio
import re
import time
from collections import deque
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")

_DURATION_PATTERN = re.compile(r"([0-9]+)([smh])")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay: float = 1.0,
) -> T:
    """指数バックオフ付きリトライ

    Args:
        func: リトライ対象の async callable
        max_retries: 最大試行回数
        delay: 初回待機秒（試行ごとに 2 倍）

    Raises:
        最後の試行でも失敗した場合、元の例外を再送出
    """
    for attempt in range(max_retries):
        try:
            return await func()
        except Exception as e:
            if attempt >= max_retries - 1:
                raise
            wait = delay * (2 ** attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{max_retries} failed ({e}), retrying in {wait:.1f}s"
            )
            await asyncio.sleep(wait)
    raise ValueError("max_retries must be at least 1")


class RateLimiter:
    """スライディングウィンドウ方式のレートリミッター"""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock or time.monotonic
        self._requests: deque[float] = deque()

    def try_acquire(self) -> bool:
        """リクエスト可能なら枠を消費して True"""
        now = self._clock()
        cutoff = now - self.window

        # ウィンドウ外の記録を削除
        while self._requests and self._requests[0] < cutoff:
            self._requests.popleft()

        if len(self._requests) < self.max_requests:
            self._requests.append(now)
            return True
        return False

    @property
    def remaining(self) -> int:
        return max(0, self.max_requests - len(self._requests))


def format_time(seconds: int) -> str:
    """秒数を "1h 2m 3s" 形式に整形"""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_number(num: float) -> str:
    """大きな数値を省略表記（1.5K, 2.0M）"""
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(num)


def parse_duration(duration: str) -> int:
    """ "30s" / "5m" / "1h" を秒数に変換（不正な形式は 0）"""
    match = _DURATION_PATTERN.fullmatch(duration.strip())
    if not match:
        return 0
    value, unit = match.groups()
    return int(value) * _DURATION_UNITS[unit]
