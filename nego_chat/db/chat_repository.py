"""
nego_chat.db.chat_repository
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

聊天记录持久化仓库：封装 MongoDB ``chat_messages`` 集合的增查操作。

每条消息一个文档（扁平设计），集合在首次写入时自动建立索引。
写入属于尽力而为，调用方负责吞掉异常。
"""
from __future__ import annotations

from datetime import datetime
from typing import TypedDict

from motor.motor_asyncio import AsyncIOMotorDatabase

from nego_chat.core.logging import get_logger
from nego_chat.schemas.chat import Message, MessageType

logger = get_logger(__name__)

_COLLECTION_NAME = "chat_messages"


class ChatMessageDocument(TypedDict):
    """``chat_messages`` 集合中的单条记录。"""
    message_id: str
    room_id: str
    sender_id: str
    sender: str
    body: str
    type: MessageType
    created_at: datetime


class ChatRepository:
    """聊天消息持久化仓库。

    Attributes:
        db: MongoDB 数据库实例。
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db
        self._collection = db[_COLLECTION_NAME]
        self._indexes_created = False

    async def _ensure_indexes(self) -> None:
        """确保索引已创建（惰性，首次操作时执行一次）。"""
        if self._indexes_created:
            return
        await self._collection.create_index(
            [("room_id", 1), ("created_at", 1)],
            name="idx_room_time",
        )
        self._indexes_created = True
        logger.debug("chat_messages 索引已就绪")

    async def save_message(self, message: Message) -> None:
        """保存一条聊天消息。"""
        await self._ensure_indexes()
        doc: ChatMessageDocument = {
            "message_id": message.id,
            "room_id": message.room_id,
            "sender_id": message.sender_id,
            "sender": message.sender,
            "body": message.body,
            "type": message.type,
            "created_at": message.timestamp,
        }
        await self._collection.insert_one(doc)

    async def get_recent(self, room_id: str, limit: int = 50) -> list[ChatMessageDocument]:
        """获取指定房间最近 N 条消息（按时间正序）。"""
        await self._ensure_indexes()
        cursor = (
            self._collection
            .find({"room_id": room_id}, {"_id": 0})
            .sort("created_at", -1)
            .limit(limit)
        )
        messages = await cursor.to_list(length=limit)
        messages.reverse()
        return messages

    async def count_messages(self, room_id: str) -> int:
        """获取指定房间的消息总数。"""
        await self._ensure_indexes()
        return await self._collection.count_documents({"room_id": room_id})
