"""
nego_chat.services.chat_system
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

聊天系统装配：创建并持有房间注册表、在线状态、连接管理器、AI 网关与
消息路由器。

在 FastAPI lifespan 中初始化并挂载于 ``app.state.chat_system``，不使用
模块级单例，测试时可以为每个用例构造独立实例。
"""
from __future__ import annotations

from nego_chat.core.config import settings
from nego_chat.core.logging import get_logger
from nego_chat.core.rate_limit import WebSocketRateLimiter
from nego_chat.core.room_presets import RoomPreset
from nego_chat.db.chat_repository import ChatRepository
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.services.commands import CommandDispatcher
from nego_chat.services.connection import ConnectionManager
from nego_chat.services.message_router import MessageRouter
from nego_chat.services.presence import PresenceTracker
from nego_chat.services.room_registry import RoomRegistry

logger = get_logger(__name__)


class ChatSystem:
    """聊天系统的组合根。

    Attributes:
        registry: 房间注册表。
        presence: 连接身份表。
        connections: WebSocket 连接管理器。
        gateway: AI 谈判顾问网关（REST 分析接口也复用它）。
        router: 消息路由器。
        ws_limiter: WebSocket 发消息限流器。
    """

    def __init__(
        self,
        gateway: AdvisoryGateway | None = None,
        presets: list[RoomPreset] | None = None,
        repo: ChatRepository | None = None,
    ) -> None:
        self.registry = RoomRegistry(history_limit=settings.HISTORY_LIMIT)
        self.registry.seed(presets or [])
        self.presence = PresenceTracker(self.registry)
        self.connections = ConnectionManager()
        self.gateway = gateway or AdvisoryGateway()
        self.router = MessageRouter(
            registry=self.registry,
            presence=self.presence,
            sink=self.connections,
            gateway=self.gateway,
            dispatcher=CommandDispatcher(),
            repo=repo,
        )
        self.ws_limiter = WebSocketRateLimiter(interval_seconds=settings.WS_RATE_LIMIT_INTERVAL)
        logger.info(
            "聊天系统已就绪 | 预置房间: %d | AI: %s | 持久化: %s",
            len(presets or []),
            "on" if self.gateway.available else "off",
            "on" if repo is not None else "off",
        )

    @property
    def repo(self) -> ChatRepository | None:
        return self.router.repo

    async def shutdown(self) -> None:
        """等待进行中的 AI 任务收尾。"""
        await self.router.wait_idle()
