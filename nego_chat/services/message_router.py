"""
nego_chat.services.message_router
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

消息路由：聊天室所有入站事件的业务入口。

一条用户消息的处理流程:
  1. 通过 ``PresenceTracker`` 解析发送者，解析不到直接拒绝；
  2. 写入房间历史，并立即广播给房间全体成员（含发送者），
     此步骤不等待任何 AI 调用；
  3. 解析内联指令，命中时启动"谈判顾问"任务，结果以 ``Nego AI`` 身份广播；
  4. 无论是否命中指令，都启动"房间人设"任务，结果以 ``<房间名> AI`` 身份广播。

第 3、4 步是两个互相独立的 ``asyncio`` 任务，完成顺序不做保证。
指令任务失败时只私发一条系统消息给发送者；人设任务失败时只记日志。
"""
from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from nego_chat.core.logging import get_logger
from nego_chat.db.chat_repository import ChatRepository
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.llm.profiles import select_profile
from nego_chat.prompts.negotiation import build_personality_instruction
from nego_chat.schemas.chat import Message, User, isoformat, utc_now
from nego_chat.services.commands import EMPTY_QUERY_MESSAGE, CommandDispatcher
from nego_chat.services.connection import EventSink
from nego_chat.services.presence import PresenceTracker
from nego_chat.services.room_registry import Room, RoomRegistry

logger = get_logger(__name__)

NEGO_AI_SENDER = "Nego AI"
NEGO_AI_ID = "nego-ai"
AMBIENT_AI_ID = "ai"
SYSTEM_ID = "system"

WELCOME_TEMPLATE = "مرحباً بك {username} في Nego AI! يمكنك سؤالي عن العقارات والتفاوض باستخدام @nego"
COMMAND_FAILURE_MESSAGE = "حدث خطأ أثناء معالجة الرسالة. يرجى المحاولة مرة أخرى."
ANALYSIS_FAILURE_MESSAGE = "حدث خطأ أثناء تحليل موقف التفاوض. يرجى المحاولة مرة أخرى."
EMPTY_SITUATION_MESSAGE = "يرجى تقديم موقف للتحليل"


class MessageRouter:
    """聊天室消息路由器。

    所有状态都由构造时注入的对象持有，路由器本身只负责编排。

    Attributes:
        registry: 房间注册表。
        presence: 连接身份表。
        sink: 出站事件通道（生产环境为 ``ConnectionManager``）。
        gateway: AI 谈判顾问网关。
        dispatcher: 内联指令解析器。
        repo: 可选的消息持久化仓库（为 None 时不持久化）。
    """

    def __init__(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        sink: EventSink,
        gateway: AdvisoryGateway,
        dispatcher: CommandDispatcher | None = None,
        repo: ChatRepository | None = None,
    ) -> None:
        self.registry = registry
        self.presence = presence
        self.sink = sink
        self.gateway = gateway
        self.dispatcher = dispatcher or CommandDispatcher()
        self.repo = repo
        self._tasks: set[asyncio.Task[None]] = set()

    # ── 身份与房间 ────────────────────────────────────────────────────

    async def user_join(self, connection_id: str, user: User) -> None:
        """登记连接身份（可重复声明，后者覆盖前者）。"""
        self.presence.register(connection_id, user)
        await self.sink.send(connection_id, "connection_success", {"message": "Connected successfully"})

    async def join_room(self, connection_id: str, room_id: str, user: User | None = None) -> Room:
        """加入房间（不存在则创建），同时离开该连接所在的其他房间。

        尚未 ``user_join`` 的连接可以在本事件中携带用户信息，此时会顺带完成登记。
        每次调用都会给加入者发送一条欢迎消息。
        """
        if self.presence.lookup(connection_id) is None and user is not None:
            self.presence.register(connection_id, user)
        member = self.presence.require(connection_id)

        for room in self.registry.rooms_of(connection_id):
            if room.room_id != room_id:
                await self.leave_room(connection_id, room.room_id)

        room = self.registry.add_member(room_id, connection_id, member)
        logger.info(
            "加入房间 | room=%s | user=%s | 在线: %d",
            room_id, member.username, room.online_count,
        )

        now = isoformat(utc_now())
        others = [cid for cid in room.member_ids if cid != connection_id]
        await self.sink.broadcast(others, "user_joined", {
            "username": member.username,
            "userId": connection_id,
            "roomId": room_id,
            "timestamp": now,
        })
        await self.sink.send(connection_id, "room_joined", {"room": room_id, "timestamp": now})

        welcome = Message(
            room_id=room_id,
            sender_id=NEGO_AI_ID,
            sender=NEGO_AI_SENDER,
            body=WELCOME_TEMPLATE.format(username=member.username),
            type="ai",
        )
        await self.sink.send(connection_id, "new_message", welcome.to_payload())
        return room

    async def leave_room(self, connection_id: str, room_id: str) -> bool:
        """离开房间并通知剩余成员。不在房间内时什么也不做。"""
        user = self.presence.lookup(connection_id)
        if not self.registry.remove_member(room_id, connection_id):
            return False
        room = self.registry.get_or_create(room_id)
        await self._notify_left(room, connection_id, user)
        return True

    async def disconnect(self, connection_id: str) -> None:
        """连接断开：注销身份并从所有房间移除，通知各房间剩余成员。"""
        user, left = self.presence.unregister(connection_id)
        for room in left:
            await self._notify_left(room, connection_id, user)

    async def _notify_left(self, room: Room, connection_id: str, user: User | None) -> None:
        await self.sink.broadcast(room.member_ids, "user_left_room", {
            "roomId": room.room_id,
            "userId": connection_id,
            "username": user.username if user else None,
        })

    # ── 消息 ──────────────────────────────────────────────────────────

    async def handle_incoming(self, connection_id: str, room_id: str, body: str) -> Message:
        """处理一条用户消息。

        Raises:
            UnauthenticatedConnectionError: 连接尚未声明身份，此时不会广播也不会调用 AI。
        """
        user = self.presence.require(connection_id)
        room = self.registry.get_or_create(room_id)

        message = Message(
            room_id=room_id,
            sender_id=connection_id,
            sender=user.username,
            body=body,
            type="user",
        )
        # 先入历史再广播，保证历史严格按到达顺序
        self.registry.append_message(room_id, message)
        targets = room.member_ids
        if connection_id not in room.members:
            targets.append(connection_id)
        await self.sink.broadcast(targets, "new_message", message.to_payload())
        logger.debug("消息已广播 | room=%s | user=%s", room_id, user.username)

        command = self.dispatcher.parse(body)
        if command is not None and command.is_empty:
            await self.send_system(connection_id, room_id, EMPTY_QUERY_MESSAGE)
            await self._persist(message)
            return message

        if command is not None:
            logger.info("识别到指令 | room=%s | prefix=%s", room_id, command.prefix)
            self._spawn(
                self._advisor_reply(connection_id, room, command.query, COMMAND_FAILURE_MESSAGE),
                name=f"command-{message.id}",
            )
        self._spawn(self._ambient_reply(room, message), name=f"ambient-{message.id}")

        await self._persist(message)
        return message

    async def analyze_negotiation(self, connection_id: str, room_id: str, situation: str) -> None:
        """直接调用谈判顾问分析用户描述的处境，不经过指令解析。"""
        self.presence.require(connection_id)
        if not situation.strip():
            await self.send_system(connection_id, room_id, EMPTY_SITUATION_MESSAGE)
            return
        room = self.registry.get_or_create(room_id)
        self._spawn(
            self._advisor_reply(connection_id, room, situation, ANALYSIS_FAILURE_MESSAGE),
            name=f"analysis-{connection_id}",
        )

    # ── AI 任务 ───────────────────────────────────────────────────────

    async def _advisor_reply(
        self,
        connection_id: str,
        room: Room,
        query: str,
        failure_message: str,
    ) -> None:
        """谈判顾问回复：成功广播给全房间，失败只私发给提问者。"""
        try:
            result = await self.gateway.negotiation_advice(query)
            if not result.ok:
                logger.warning(
                    "谈判顾问调用失败 | room=%s | kind=%s",
                    room.room_id, result.error.value if result.error else "-",
                )
                await self.send_system(connection_id, room.room_id, result.display_text)
                return

            reply = Message(
                room_id=room.room_id,
                sender_id=NEGO_AI_ID,
                sender=NEGO_AI_SENDER,
                body=result.display_text,
                type="ai",
            )
            self.registry.append_message(room.room_id, reply)
            await self.sink.broadcast(room.member_ids, "new_message", reply.to_payload())
            await self._persist(reply)
        except Exception as e:
            logger.error("谈判顾问任务异常 | room=%s | %s", room.room_id, e, exc_info=True)
            await self.send_system(connection_id, room.room_id, failure_message)

    async def _ambient_reply(self, room: Room, message: Message) -> None:
        """房间人设回复：失败时只记录日志，避免在房间里刷错误提示。"""
        try:
            profile = select_profile(room.ai_personality)
            result = await self.gateway.generate(
                profile,
                message.body,
                system_instruction=build_personality_instruction(room.ai_personality),
            )
            if not result.ok:
                logger.warning(
                    "房间 AI 回复失败，已丢弃 | room=%s | kind=%s",
                    room.room_id, result.error.value if result.error else "-",
                )
                return

            reply = Message(
                room_id=room.room_id,
                sender_id=AMBIENT_AI_ID,
                sender=room.ai_sender_name,
                body=result.display_text,
                type="ai",
            )
            self.registry.append_message(room.room_id, reply)
            await self.sink.broadcast(room.member_ids, "new_message", reply.to_payload())
            await self._persist(reply)
        except Exception as e:
            logger.error("房间 AI 任务异常 | room=%s | %s", room.room_id, e, exc_info=True)

    # ── 工具方法 ──────────────────────────────────────────────────────

    async def send_system(self, connection_id: str, room_id: str, text: str) -> None:
        notice = Message(
            room_id=room_id,
            sender_id=SYSTEM_ID,
            sender=NEGO_AI_SENDER,
            body=text,
            type="system",
        )
        await self.sink.send(connection_id, "new_message", notice.to_payload())

    async def _persist(self, message: Message) -> None:
        """尽力持久化一条消息，失败不影响聊天。"""
        if self.repo is None:
            return
        try:
            await self.repo.save_message(message)
        except Exception as e:
            logger.warning("消息持久化失败: %s", e, exc_info=True)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """等待所有进行中的 AI 任务完成（用于关闭与测试）。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
