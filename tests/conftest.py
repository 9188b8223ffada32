"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures：mock 掉所有外部依赖（Gemini、MongoDB），
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import os
from collections.abc import Iterable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ["ENVIRONMENT"] = "test"  # 激活 .env.test 配置
os.environ["GEMINI_API_KEY"] = ""  # 未配置凭证，AI 调用一律返回"服务不可用"
os.environ["MONGO_URI"] = ""  # 关闭持久化
os.environ["AUTH_TOKENS"] = '{"test-token": "Tester"}'

from nego_chat.llm.gateway import AdvisoryErrorKind, AdvisoryResult  # noqa: E402
from nego_chat.schemas.chat import User  # noqa: E402
from nego_chat.services.message_router import MessageRouter  # noqa: E402
from nego_chat.services.presence import PresenceTracker  # noqa: E402
from nego_chat.services.room_registry import RoomRegistry  # noqa: E402


class RecordingSink:
    """内存版出站通道，按发送顺序记录 ``(连接 ID, 事件, 数据)``。"""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        self.events.append((connection_id, event, data))

    async def broadcast(self, connection_ids: Iterable[str], event: str, data: Any) -> None:
        for connection_id in list(connection_ids):
            self.events.append((connection_id, event, data))

    def received(self, connection_id: str, event: str | None = None) -> list[Any]:
        """返回某个连接收到的事件数据（可按事件名过滤）。"""
        return [
            data for cid, name, data in self.events
            if cid == connection_id and (event is None or name == event)
        ]

    def messages(self, connection_id: str) -> list[dict[str, Any]]:
        return self.received(connection_id, "new_message")


def make_user(name: str) -> User:
    return User(user_id=name.lower(), username=name, is_guest=False)


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def mock_gateway() -> MagicMock:
    """返回一个 mock 的 ``AdvisoryGateway``，默认两类调用都成功。"""
    gateway = MagicMock()
    gateway.available = True
    gateway.generate = AsyncMock(return_value=AdvisoryResult.success("رد الغرفة"))
    gateway.negotiation_advice = AsyncMock(return_value=AdvisoryResult.success("نصيحة تفاوضية"))
    return gateway


@pytest.fixture()
def unavailable_gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.available = False
    failure = AdvisoryResult.failure(AdvisoryErrorKind.UNAVAILABLE)
    gateway.generate = AsyncMock(return_value=failure)
    gateway.negotiation_advice = AsyncMock(return_value=failure)
    return gateway


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry(history_limit=100)


@pytest.fixture()
def presence(registry: RoomRegistry) -> PresenceTracker:
    return PresenceTracker(registry)


@pytest.fixture()
def router(
    registry: RoomRegistry,
    presence: PresenceTracker,
    sink: RecordingSink,
    mock_gateway: MagicMock,
) -> MessageRouter:
    return MessageRouter(registry=registry, presence=presence, sink=sink, gateway=mock_gateway)
