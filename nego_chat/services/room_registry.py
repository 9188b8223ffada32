"""
nego_chat.services.room_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间注册表：维护 room_id → ``Room`` 的映射。

房间在首次加入时懒创建，进程存活期间不会被销毁。房间成员与消息历史
只能经由本注册表修改；所有方法都是同步的，在事件循环的单个步骤内
原子完成，无需加锁。
"""
from __future__ import annotations

from collections.abc import Iterable

from nego_chat.core.logging import get_logger
from nego_chat.core.room_presets import RoomPreset
from nego_chat.schemas.chat import Message, RoomInfoData, User
from nego_chat.services.history import DEFAULT_CAPACITY, HistoryBuffer

logger = get_logger(__name__)

DEFAULT_AI_PERSONALITY = "general real-estate negotiation assistant"


class Room:
    """一个聊天室实体。

    Attributes:
        room_id: 房间唯一标识。
        name: 显示名称，同时用于拼出 ``<name> AI`` 的 AI 发送者名称。
        ai_personality: AI 人设描述。
        members: 当前在线成员，连接 ID → 用户。
        history: 有界消息历史。
    """

    def __init__(
        self,
        room_id: str,
        name: str | None = None,
        ai_personality: str = DEFAULT_AI_PERSONALITY,
        history_limit: int = DEFAULT_CAPACITY,
    ) -> None:
        self.room_id = room_id
        self.name = name or room_id
        self.ai_personality = ai_personality
        self.members: dict[str, User] = {}
        self.history = HistoryBuffer(history_limit)

    @property
    def ai_sender_name(self) -> str:
        return f"{self.name} AI"

    @property
    def member_ids(self) -> list[str]:
        return list(self.members)

    @property
    def online_count(self) -> int:
        """当前成员数。"""
        return len(self.members)

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            name=self.name,
            ai_personality=self.ai_personality,
            online_count=self.online_count,
            message_count=len(self.history),
        )


class RoomRegistry:
    """房间注册表，独占所有 ``Room`` 与其历史。"""

    def __init__(self, history_limit: int = DEFAULT_CAPACITY) -> None:
        self.history_limit = history_limit
        self._rooms: dict[str, Room] = {}

    def seed(self, presets: Iterable[RoomPreset]) -> None:
        """注册预置房间。已存在的房间保持不变。"""
        for preset in presets:
            if preset.id in self._rooms:
                continue
            self._rooms[preset.id] = Room(
                room_id=preset.id,
                name=preset.name,
                ai_personality=preset.ai_personality,
                history_limit=self.history_limit,
            )

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        """获取房间，不存在则以默认人设创建。"""
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id, history_limit=self.history_limit)
            self._rooms[room_id] = room
            logger.info("房间已创建 | room=%s", room_id)
        return room

    def add_member(self, room_id: str, connection_id: str, user: User) -> Room:
        """把连接加入房间。重复加入只会覆盖同一条记录。"""
        room = self.get_or_create(room_id)
        room.members[connection_id] = user
        return room

    def remove_member(self, room_id: str, connection_id: str) -> bool:
        """把连接移出房间，返回是否真的移除了成员。

        离开通知由调用方负责广播。
        """
        room = self._rooms.get(room_id)
        if room is None:
            return False
        return room.members.pop(connection_id, None) is not None

    def rooms_of(self, connection_id: str) -> list[Room]:
        """扫描所有房间，找出该连接所在的房间。"""
        return [room for room in self._rooms.values() if connection_id in room.members]

    def remove_connection(self, connection_id: str) -> list[Room]:
        """从所有房间移除该连接，返回受影响的房间。可重复调用。"""
        left = self.rooms_of(connection_id)
        for room in left:
            del room.members[connection_id]
        return left

    def append_message(self, room_id: str, message: Message) -> None:
        """追加消息到房间历史（超出上限时淘汰最旧的消息）。"""
        self.get_or_create(room_id).history.append(message)

    def history(self, room_id: str) -> list[Message]:
        room = self._rooms.get(room_id)
        return room.history.snapshot() if room else []

    def list_rooms(self) -> list[RoomInfoData]:
        """列出所有房间的摘要信息。"""
        return [room.info() for room in self._rooms.values()]
