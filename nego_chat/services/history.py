"""
nego_chat.services.history
~~~~~~~~~~~~~~~~~~~~~~~~~~

房间消息历史：容量固定的先进先出缓冲区。

超出容量时丢弃最旧的消息，不做压缩也不报错；顺序严格按到达顺序，
不按时间戳重排。
"""
from __future__ import annotations

from collections import deque

from nego_chat.schemas.chat import Message

DEFAULT_CAPACITY = 100


class HistoryBuffer:
    """单个房间的有界消息历史。

    Attributes:
        capacity: 最多保留的消息条数。
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity 必须为正整数")
        self.capacity = capacity
        self._messages: deque[Message] = deque(maxlen=capacity)

    def append(self, message: Message) -> None:
        """追加一条消息，满了则挤掉最旧的一条。"""
        self._messages.append(message)

    def snapshot(self) -> list[Message]:
        """按到达顺序返回全部消息的副本。"""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
