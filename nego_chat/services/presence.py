"""
nego_chat.services.presence
~~~~~~~~~~~~~~~~~~~~~~~~~~~

在线状态跟踪：维护连接 ID → 用户的映射。

本组件不单独记录每个连接所在的房间；断开连接时通过扫描
``RoomRegistry`` 找回并清理。
"""
from __future__ import annotations

from nego_chat.core.exceptions import UnauthenticatedConnectionError
from nego_chat.core.logging import get_logger
from nego_chat.schemas.chat import User
from nego_chat.services.room_registry import Room, RoomRegistry

logger = get_logger(__name__)


class PresenceTracker:
    """连接身份表。

    Attributes:
        registry: 断开连接时需要同步清理成员关系的房间注册表。
    """

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry
        self._users: dict[str, User] = {}

    def register(self, connection_id: str, user: User) -> None:
        """登记（或覆盖）连接对应的用户。"""
        self._users[connection_id] = user
        logger.info("用户上线 | conn=%s | user=%s", connection_id, user.username)

    def lookup(self, connection_id: str) -> User | None:
        return self._users.get(connection_id)

    def require(self, connection_id: str) -> User:
        """解析连接对应的用户，找不到时抛出 ``UnauthenticatedConnectionError``。"""
        user = self._users.get(connection_id)
        if user is None:
            raise UnauthenticatedConnectionError(connection_id)
        return user

    def unregister(self, connection_id: str) -> tuple[User | None, list[Room]]:
        """注销连接并把它移出所有房间。

        Returns:
            ``(被注销的用户, 该连接离开的房间列表)``；重复调用返回 ``(None, [])``。
        """
        user = self._users.pop(connection_id, None)
        left = self.registry.remove_connection(connection_id)
        if user is not None:
            logger.info(
                "用户下线 | conn=%s | user=%s | 离开 %d 个房间",
                connection_id, user.username, len(left),
            )
        return user, left

    @property
    def online_count(self) -> int:
        return len(self._users)
