"""输出与通知接收器。

- CollectingOutputSink: 按到达顺序收集进程输出，reset() 清空上一次运行的内容
- RecordingNotificationSink: 记录用户可见的错误事件并写入日志

两者都只在事件循环线程中被调用，不需要加锁。
"""

from __future__ import annotations

import logging

from .runtime.types import Notification

__all__ = ["CollectingOutputSink", "RecordingNotificationSink"]

logger = logging.getLogger(__name__)


class CollectingOutputSink:
    """按顺序收集输出块。

    Attributes:
        max_chars: 保留的最大字符数（0 = 不限制），超出部分从头部丢弃
    """

    def __init__(self, max_chars: int = 0) -> None:
        self.max_chars = max_chars
        self._chunks: list[str] = []
        self._size = 0
        self._truncated = False

    def reset(self) -> None:
        self._chunks.clear()
        self._size = 0
        self._truncated = False

    def write(self, chunk: str) -> None:
        self._chunks.append(chunk)
        self._size += len(chunk)
        if self.max_chars and self._size > self.max_chars:
            self._trim()

    def _trim(self) -> None:
        text = "".join(self._chunks)[-self.max_chars:]
        self._chunks = [text]
        self._size = len(text)
        self._truncated = True

    @property
    def chunks(self) -> list[str]:
        return list(self._chunks)

    @property
    def truncated(self) -> bool:
        """是否因 max_chars 丢弃过输出。"""
        return self._truncated

    @property
    def text(self) -> str:
        return "".join(self._chunks)


class RecordingNotificationSink:
    """记录通知事件（同时写日志）。"""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        logger.warning(f"[{notification.kind.value}] {notification.message}")

    @property
    def last(self) -> Notification | None:
        return self.notifications[-1] if self.notifications else None
