"""
nego_chat.api.ws
~~~~~~~~~~~~~~~~

WebSocket 聊天接口：事件驱动的多房间聊天。

每一帧都是 JSON ``{"event": <名称>, "data": <对象>}``。

入站事件:
  - ``user_join`` → 声明身份 ``{username?, uid?, isAnonymous?}``
  - ``join_room`` → 加入房间 ``{room, user?}`` 或纯字符串房间 ID
  - ``leave_room`` → 离开房间 ``{room}`` 或纯字符串房间 ID
  - ``send_message`` → 发言 ``{message, roomId}``（限流）
  - ``analyze_negotiation`` → 谈判处境分析 ``{situation, roomId}``

出站事件见 ``MessageRouter``；处理失败时只向本连接发送 ``error {message}``。
"""
from __future__ import annotations

import json
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from nego_chat.core.exceptions import InvalidEventError, NegoChatError
from nego_chat.core.logging import get_logger, request_id_ctx_var
from nego_chat.schemas.chat import (
    AnalyzeNegotiationPayload,
    JoinRoomPayload,
    LeaveRoomPayload,
    SendMessagePayload,
    UserJoinPayload,
    WsEnvelope,
)
from nego_chat.services.chat_system import ChatSystem

logger = get_logger(__name__)

router: APIRouter = APIRouter()

RATE_LIMITED_MESSAGE = "أنت ترسل الرسائل بسرعة كبيرة، يرجى الانتظار قليلاً"


def _room_payload(data: Any) -> dict[str, Any]:
    """``join_room`` / ``leave_room`` 允许直接传房间 ID 字符串。"""
    if isinstance(data, str):
        return {"room": data}
    if isinstance(data, dict):
        return data
    raise InvalidEventError("Invalid room payload")


async def dispatch_event(system: ChatSystem, connection_id: str, envelope: WsEnvelope) -> None:
    """把一个入站事件分发给 ``MessageRouter``。

    Raises:
        InvalidEventError: 未知事件。
        NegoChatError: 业务校验失败（如未声明身份）。
        ValidationError: 事件数据不符合结构。
    """
    chat = system.router
    data = envelope.data if envelope.data is not None else {}

    match envelope.event:
        case "user_join":
            payload = UserJoinPayload.model_validate(data)
            await chat.user_join(connection_id, payload.to_user())

        case "join_room":
            payload = JoinRoomPayload.model_validate(_room_payload(data))
            user = payload.user.to_user() if payload.user is not None else None
            await chat.join_room(connection_id, payload.room, user)

        case "leave_room":
            payload = LeaveRoomPayload.model_validate(_room_payload(data))
            await chat.leave_room(connection_id, payload.room)

        case "send_message":
            payload = SendMessagePayload.model_validate(data)
            if not system.ws_limiter.is_allowed(connection_id):
                await chat.send_system(connection_id, payload.room_id, RATE_LIMITED_MESSAGE)
                return
            await chat.handle_incoming(connection_id, payload.room_id, payload.message)

        case "analyze_negotiation":
            payload = AnalyzeNegotiationPayload.model_validate(data)
            await chat.analyze_negotiation(connection_id, payload.room_id, payload.situation)

        case _:
            raise InvalidEventError(f"Unknown event: {envelope.event}")


@router.websocket("/ws")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket 聊天端点。每个连接分配独立的连接 ID 作为日志 request-id。"""
    connection_id = f"ws-{uuid.uuid4().hex[:8]}"
    token = request_id_ctx_var.set(connection_id)
    system: ChatSystem = websocket.app.state.chat_system

    try:
        await system.connections.connect(connection_id, websocket)
        logger.info("新连接 | 在线: %d", system.connections.online_count)

        while True:
            raw = await websocket.receive_text()
            try:
                envelope = WsEnvelope.model_validate(json.loads(raw))
                await dispatch_event(system, connection_id, envelope)
            except json.JSONDecodeError:
                await system.connections.send(connection_id, "error", {"message": "Invalid JSON frame"})
            except ValidationError as e:
                logger.debug("事件数据校验失败: %s", e)
                await system.connections.send(connection_id, "error", {"message": "Invalid event payload"})
            except NegoChatError as e:
                logger.warning("事件处理失败: %s", e.message)
                await system.connections.send(connection_id, "error", {"message": e.message})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket 异常: %s", e, exc_info=True)
    finally:
        await system.router.disconnect(connection_id)
        system.connections.disconnect(connection_id)
        system.ws_limiter.remove_client(connection_id)
        logger.info("连接断开 | 在线: %d", system.connections.online_count)
        request_id_ctx_var.reset(token)
