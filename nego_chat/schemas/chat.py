"""
nego_chat.schemas.chat
~~~~~~~~~~~~~~~~~~~~~~

聊天领域模型与 WebSocket 事件负载。

线上协议沿用前端约定的驼峰字段（``roomId``、``userId``、``isAnonymous``），
模型内部统一使用下划线命名，通过 alias 做映射。
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageType = Literal["user", "ai", "system"]

DEFAULT_USERNAME = "زائر"
DEFAULT_USER_ID = "guest"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    """输出与前端一致的 ISO 8601 时间（毫秒精度，``Z`` 结尾）。"""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class User(BaseModel):
    """已声明身份的用户，仅存于内存，断开连接即销毁。"""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(default=DEFAULT_USER_ID, description="用户唯一标识")
    username: str = Field(default=DEFAULT_USERNAME, description="显示名称")
    is_guest: bool = Field(default=False, description="是否匿名用户")


class Message(BaseModel):
    """一条聊天消息，创建后不可变。"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="消息 ID")
    room_id: str = Field(..., description="所属房间")
    sender_id: str = Field(..., description="发送者 ID（用户连接 ID 或 AI 标识）")
    sender: str = Field(..., description="发送者显示名称")
    body: str = Field(..., description="消息正文")
    timestamp: datetime = Field(default_factory=utc_now, description="创建时间（UTC）")
    type: MessageType = Field(default="user", description="消息来源：user / ai / system")

    def to_payload(self) -> dict[str, Any]:
        """转换为 ``new_message`` 事件负载。"""
        return {
            "id": self.id,
            "message": self.body,
            "sender": self.sender,
            "userId": self.sender_id,
            "timestamp": isoformat(self.timestamp),
            "roomId": self.room_id,
            "type": self.type,
        }


class RoomInfoData(BaseModel):
    """房间摘要信息。"""

    room_id: str = Field(..., description="房间唯一标识")
    name: str = Field(..., description="房间显示名称")
    ai_personality: str = Field(..., description="房间 AI 人设")
    online_count: int = Field(..., description="当前成员数")
    message_count: int = Field(..., description="内存中保留的消息数")


# ── WebSocket 入站事件 ────────────────────────────────────────────────

class WsEnvelope(BaseModel):
    """所有 WebSocket 帧的外层结构：``{"event": ..., "data": ...}``。"""

    event: str = Field(..., min_length=1)
    data: Any = None


class UserJoinPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str | None = None
    uid: str | None = None
    is_anonymous: bool = Field(default=False, alias="isAnonymous")

    def to_user(self) -> User:
        return User(
            user_id=self.uid or DEFAULT_USER_ID,
            username=self.username or DEFAULT_USERNAME,
            is_guest=self.is_anonymous,
        )


class JoinRoomPayload(BaseModel):
    room: str = Field(..., min_length=1)
    user: UserJoinPayload | None = None


class LeaveRoomPayload(BaseModel):
    room: str = Field(..., min_length=1)


class SendMessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    room_id: str = Field(..., min_length=1, alias="roomId")


class AnalyzeNegotiationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    situation: str = ""
    room_id: str = Field(..., min_length=1, alias="roomId")
