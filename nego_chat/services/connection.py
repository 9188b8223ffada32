"""
nego_chat.services.connection
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 连接管理器：维护连接 ID → WebSocket 的映射，提供单发与广播能力。

所有出站帧统一编码为 ``{"event": ..., "data": ...}`` JSON 文本。
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from typing import Any, Protocol

from fastapi import WebSocket

from nego_chat.core.logging import get_logger

logger = get_logger(__name__)


class EventSink(Protocol):
    """消息路由器依赖的最小出站接口，测试时可替换为内存实现。"""

    async def send(self, connection_id: str, event: str, data: Any) -> None: ...

    async def broadcast(self, connection_ids: Iterable[str], event: str, data: Any) -> None: ...


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, ensure_ascii=False, default=str)


class ConnectionManager:
    """WebSocket 连接管理器。

    Attributes:
        active_connections: 当前在线的连接，连接 ID → WebSocket。
    """

    def __init__(self) -> None:
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """接受新连接并加入在线列表。"""
        await websocket.accept()
        self.active_connections[connection_id] = websocket

    def disconnect(self, connection_id: str) -> None:
        """从在线列表移除断开的连接。"""
        self.active_connections.pop(connection_id, None)

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        """向单个连接发送事件。连接已不存在时静默忽略。"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_text(encode_event(event, data))
        except Exception as e:
            logger.warning("发送失败 | conn=%s | event=%s | %s", connection_id, event, e)

    async def broadcast(self, connection_ids: Iterable[str], event: str, data: Any) -> None:
        """向一组连接广播事件。单个连接发送失败不影响其他连接。"""
        frame = encode_event(event, data)
        targets = [
            (cid, self.active_connections[cid])
            for cid in connection_ids
            if cid in self.active_connections
        ]
        results = await asyncio.gather(
            *(ws.send_text(frame) for _, ws in targets),
            return_exceptions=True,
        )
        for (cid, _), result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("广播失败 | conn=%s | event=%s | %s", cid, event, result)

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return len(self.active_connections)
