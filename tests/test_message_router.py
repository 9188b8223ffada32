"""
tests.test_message_router
~~~~~~~~~~~~~~~~~~~~~~~~~

MessageRouter 业务编排测试：加入/离开房间、消息广播顺序、
内联指令、两个 AI 任务的独立性以及失败降级。

AI 任务在后台 ``asyncio`` 任务中执行，断言前统一 ``await router.wait_idle()``。
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import RecordingSink, make_user
from nego_chat.core.exceptions import UnauthenticatedConnectionError
from nego_chat.llm.gateway import FALLBACK_MESSAGES, AdvisoryErrorKind, AdvisoryResult
from nego_chat.services.commands import EMPTY_QUERY_MESSAGE
from nego_chat.services.message_router import (
    COMMAND_FAILURE_MESSAGE,
    EMPTY_SITUATION_MESSAGE,
    NEGO_AI_SENDER,
    MessageRouter,
)
from nego_chat.services.presence import PresenceTracker
from nego_chat.services.room_registry import RoomRegistry


async def _two_users_in_general(router: MessageRouter) -> None:
    await router.user_join("a", make_user("Alice"))
    await router.user_join("b", make_user("Bob"))
    await router.join_room("a", "general")
    await router.join_room("b", "general")


# ── 身份与房间 ────────────────────────────────────────────────────────

class TestJoinAndLeave:

    @pytest.mark.asyncio
    async def test_user_join_sends_connection_success(self, router: MessageRouter, sink: RecordingSink) -> None:
        await router.user_join("a", make_user("Alice"))
        assert sink.received("a", "connection_success") == [{"message": "Connected successfully"}]
        assert router.presence.lookup("a").username == "Alice"

    @pytest.mark.asyncio
    async def test_join_sends_room_joined_and_welcome(self, router: MessageRouter, sink: RecordingSink) -> None:
        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")

        joined = sink.received("a", "room_joined")
        assert len(joined) == 1
        assert joined[0]["room"] == "general"

        welcome = sink.messages("a")
        assert len(welcome) == 1
        assert welcome[0]["sender"] == NEGO_AI_SENDER
        assert welcome[0]["type"] == "ai"
        assert "Alice" in welcome[0]["message"]
        # 欢迎消息不进入历史
        assert router.registry.history("general") == []

    @pytest.mark.asyncio
    async def test_join_is_idempotent_but_welcomes_each_time(
        self, router: MessageRouter, sink: RecordingSink,
    ) -> None:
        """重复加入同一房间：成员只有一条，但每次都有欢迎消息。"""
        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")
        await router.join_room("a", "general")

        room = router.registry.get("general")
        assert room.member_ids == ["a"]
        assert len(sink.messages("a")) == 2

    @pytest.mark.asyncio
    async def test_join_with_inline_user_registers_presence(
        self, router: MessageRouter, sink: RecordingSink,
    ) -> None:
        await router.join_room("a", "general", make_user("Alice"))
        assert router.presence.lookup("a").username == "Alice"
        assert router.registry.get("general").member_ids == ["a"]

    @pytest.mark.asyncio
    async def test_join_without_identity_is_rejected(self, router: MessageRouter, sink: RecordingSink) -> None:
        with pytest.raises(UnauthenticatedConnectionError):
            await router.join_room("ghost", "general")
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_other_members_are_notified_of_join(self, router: MessageRouter, sink: RecordingSink) -> None:
        await _two_users_in_general(router)

        notices = sink.received("a", "user_joined")
        assert len(notices) == 1
        assert notices[0]["username"] == "Bob"
        assert notices[0]["userId"] == "b"
        # 加入者自己不会收到 user_joined
        assert sink.received("b", "user_joined") == []

    @pytest.mark.asyncio
    async def test_joining_another_room_leaves_the_previous_one(
        self, router: MessageRouter, sink: RecordingSink,
    ) -> None:
        await _two_users_in_general(router)
        await router.join_room("a", "tech")

        assert router.registry.get("general").member_ids == ["b"]
        assert router.registry.get("tech").member_ids == ["a"]
        left = sink.received("b", "user_left_room")
        assert left == [{"roomId": "general", "userId": "a", "username": "Alice"}]

    @pytest.mark.asyncio
    async def test_leave_room_notifies_remaining_members(
        self, router: MessageRouter, sink: RecordingSink,
    ) -> None:
        await _two_users_in_general(router)
        assert await router.leave_room("a", "general") is True
        assert await router.leave_room("a", "general") is False

        assert len(sink.received("b", "user_left_room")) == 1

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up_everywhere(self, router: MessageRouter, sink: RecordingSink) -> None:
        await _two_users_in_general(router)
        await router.disconnect("a")

        assert router.presence.lookup("a") is None
        assert router.registry.get("general").member_ids == ["b"]
        assert len(sink.received("b", "user_left_room")) == 1

        # 重复断开不产生任何事件
        before = len(sink.events)
        await router.disconnect("a")
        assert len(sink.events) == before


# ── 消息广播与 AI 任务 ────────────────────────────────────────────────

class TestIncomingMessages:

    @pytest.mark.asyncio
    async def test_plain_message_broadcast_and_one_ambient_reply(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        """普通消息：双方都收到原文，以及恰好一条房间 AI 回复。"""
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "hello")
        await router.wait_idle()

        for cid in ("a", "b"):
            messages = [m for m in sink.messages(cid) if m["type"] != "ai" or m["sender"] != NEGO_AI_SENDER]
            human = [m for m in messages if m["type"] == "user"]
            ambient = [m for m in messages if m["type"] == "ai"]
            assert [m["message"] for m in human] == ["hello"]
            assert human[0]["sender"] == "Alice"
            assert human[0]["userId"] == "a"
            assert len(ambient) == 1
            assert ambient[0]["sender"] == "general AI"

        mock_gateway.generate.assert_awaited_once()
        mock_gateway.negotiation_advice.assert_not_called()

    @pytest.mark.asyncio
    async def test_command_triggers_advisor_and_ambient(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "@nego how to lower price")
        await router.wait_idle()

        mock_gateway.negotiation_advice.assert_awaited_once_with("how to lower price")
        mock_gateway.generate.assert_awaited_once()

        # 跳过加入时的欢迎消息
        senders = [m["sender"] for m in sink.messages("b")[1:]]
        assert senders.count(NEGO_AI_SENDER) == 1
        assert senders.count("general AI") == 1

    @pytest.mark.asyncio
    async def test_human_message_precedes_ai_replies(
        self, router: MessageRouter, sink: RecordingSink,
    ) -> None:
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "@gemini ما هو السعر العادل؟")
        await router.wait_idle()

        # 跳过加入时的欢迎消息
        kinds = [m["type"] for m in sink.messages("b")[1:]]
        assert kinds == ["user", "ai", "ai"]

        history = router.registry.history("general")
        assert history[0].type == "user"
        assert len(history) == 3

    @pytest.mark.asyncio
    async def test_empty_command_sends_guidance_only_to_sender(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "@nego ")
        await router.wait_idle()

        system = [m for m in sink.messages("a") if m["type"] == "system"]
        assert [m["message"] for m in system] == [EMPTY_QUERY_MESSAGE]
        assert all(m["type"] != "system" for m in sink.messages("b"))

        mock_gateway.generate.assert_not_called()
        mock_gateway.negotiation_advice.assert_not_called()
        # 原消息仍然广播并进入历史
        assert [m.body for m in router.registry.history("general")] == ["@nego "]

    @pytest.mark.asyncio
    async def test_unauthenticated_message_is_rejected(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        with pytest.raises(UnauthenticatedConnectionError):
            await router.handle_incoming("ghost", "general", "hello")

        assert sink.events == []
        assert router.registry.history("general") == []
        mock_gateway.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_advisor_failure_goes_only_to_sender(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        mock_gateway.negotiation_advice.return_value = AdvisoryResult.failure(AdvisoryErrorKind.RATE_LIMITED)
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "@negotiate discount?")
        await router.wait_idle()

        system = [m for m in sink.messages("a") if m["type"] == "system"]
        assert [m["message"] for m in system] == [FALLBACK_MESSAGES[AdvisoryErrorKind.RATE_LIMITED]]
        assert all(m["type"] != "system" for m in sink.messages("b"))
        assert all(m.sender != NEGO_AI_SENDER for m in router.registry.history("general"))

    @pytest.mark.asyncio
    async def test_advisor_exception_sends_generic_failure(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        mock_gateway.negotiation_advice.side_effect = RuntimeError("boom")
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "@nego help")
        await router.wait_idle()

        system = [m["message"] for m in sink.messages("a") if m["type"] == "system"]
        assert system == [COMMAND_FAILURE_MESSAGE]

    @pytest.mark.asyncio
    async def test_ambient_failure_is_silent(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        mock_gateway.generate.return_value = AdvisoryResult.failure(AdvisoryErrorKind.UNKNOWN)
        await _two_users_in_general(router)
        await router.handle_incoming("a", "general", "hello")
        await router.wait_idle()

        assert [m["type"] for m in sink.messages("b")[1:]] == ["user"]
        assert len(router.registry.history("general")) == 1

    @pytest.mark.asyncio
    async def test_missing_credential_yields_unavailable_text(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        sink: RecordingSink,
        unavailable_gateway: MagicMock,
    ) -> None:
        router = MessageRouter(registry=registry, presence=presence, sink=sink, gateway=unavailable_gateway)
        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")
        await router.handle_incoming("a", "general", "@nego help")
        await router.wait_idle()

        system = [m["message"] for m in sink.messages("a") if m["type"] == "system"]
        assert system == [FALLBACK_MESSAGES[AdvisoryErrorKind.UNAVAILABLE]]

    @pytest.mark.asyncio
    async def test_history_keeps_latest_hundred(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        sink: RecordingSink,
        unavailable_gateway: MagicMock,
    ) -> None:
        router = MessageRouter(registry=registry, presence=presence, sink=sink, gateway=unavailable_gateway)
        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")
        for i in range(1, 102):
            await router.handle_incoming("a", "general", f"msg {i}")
        await router.wait_idle()

        history = registry.history("general")
        assert len(history) == 100
        assert history[0].body == "msg 2"
        assert history[-1].body == "msg 101"


# ── 谈判分析事件 ──────────────────────────────────────────────────────

class TestAnalyzeNegotiation:

    @pytest.mark.asyncio
    async def test_empty_situation_gets_prompt(self, router: MessageRouter, sink: RecordingSink) -> None:
        await router.user_join("a", make_user("Alice"))
        await router.analyze_negotiation("a", "general", "   ")
        assert [m["message"] for m in sink.messages("a")] == [EMPTY_SITUATION_MESSAGE]
        assert router.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_situation_is_analysed_and_broadcast(
        self, router: MessageRouter, sink: RecordingSink, mock_gateway: MagicMock,
    ) -> None:
        await _two_users_in_general(router)
        await router.analyze_negotiation("a", "general", "البائع يرفض أي خصم")
        await router.wait_idle()

        mock_gateway.negotiation_advice.assert_awaited_once_with("البائع يرفض أي خصم")
        assert sink.messages("b")[-1]["sender"] == NEGO_AI_SENDER


# ── 持久化 ────────────────────────────────────────────────────────────

class TestPersistence:

    @pytest.mark.asyncio
    async def test_human_and_ai_messages_are_saved(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        sink: RecordingSink,
        mock_gateway: MagicMock,
    ) -> None:
        repo = MagicMock()
        repo.save_message = AsyncMock()
        router = MessageRouter(registry=registry, presence=presence, sink=sink, gateway=mock_gateway, repo=repo)

        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")
        await router.handle_incoming("a", "general", "@nego hi")
        await router.wait_idle()

        saved = [call.args[0].type for call in repo.save_message.await_args_list]
        assert sorted(saved) == ["ai", "ai", "user"]

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_break_chat(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        sink: RecordingSink,
        mock_gateway: MagicMock,
    ) -> None:
        repo = MagicMock()
        repo.save_message = AsyncMock(side_effect=ConnectionError("mongo down"))
        router = MessageRouter(registry=registry, presence=presence, sink=sink, gateway=mock_gateway, repo=repo)

        await router.user_join("a", make_user("Alice"))
        await router.join_room("a", "general")
        await router.handle_incoming("a", "general", "hello")
        await router.wait_idle()

        assert [m["type"] for m in sink.messages("a")] == ["ai", "user", "ai"]
