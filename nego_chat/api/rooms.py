"""
nego_chat.api.rooms
~~~~~~~~~~~~~~~~~~~

房间 REST 接口：房间列表、内存历史回看、鉴权后的消息存储。

端点:
  - ``GET  /rooms``                  → 房间列表（含在线人数）
  - ``GET  /rooms/{room_id}/history`` → 房间内存历史（按时间正序）
  - ``POST /messages``               → 存储一条消息（需要 Bearer Token）
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from nego_chat.api.deps import AuthenticatedUser, get_chat_system, require_bearer_token
from nego_chat.core.logging import get_logger
from nego_chat.core.rate_limit import limiter
from nego_chat.schemas.analysis import StoreMessageRequest
from nego_chat.schemas.api_response import ApiResponse
from nego_chat.schemas.chat import Message, RoomInfoData
from nego_chat.services.chat_system import ChatSystem

logger = get_logger(__name__)

router: APIRouter = APIRouter()


class HistoryResponseData(BaseModel):
    room_id: str = Field(..., description="房间 ID")
    messages: list[dict[str, Any]] = Field(..., description="消息列表（与 new_message 事件同结构）")
    total: int = Field(..., description="本次返回条数")


class StoredMessageData(BaseModel):
    id: str
    room_id: str
    sender: str
    timestamp: str


@router.get("/rooms", summary="获取房间列表", response_model=ApiResponse[list[RoomInfoData]])
@limiter.limit("10/second")
async def list_rooms(request: Request, system: ChatSystem = Depends(get_chat_system)):
    return ApiResponse.ok(data=system.registry.list_rooms())


@router.get(
    "/rooms/{room_id}/history",
    summary="获取房间历史",
    response_model=ApiResponse[HistoryResponseData],
)
@limiter.limit("10/second")
async def get_history(
    request: Request,
    room_id: str,
    limit: int = Query(100, ge=1, le=500, description="最多返回最近多少条"),
    system: ChatSystem = Depends(get_chat_system),
):
    """返回房间内存中的最近消息。房间不存在时返回空列表，不会创建房间。

    Args:
        request: FastAPI Request 对象（用于限流判断）。
        room_id: 房间 ID。
        limit: 最多返回条数。
    """
    messages = system.registry.history(room_id)[-limit:]
    return ApiResponse.ok(
        data=HistoryResponseData(
            room_id=room_id,
            messages=[m.to_payload() for m in messages],
            total=len(messages),
        ),
    )


@router.post(
    "/messages",
    summary="存储一条消息",
    response_model=ApiResponse[StoredMessageData],
)
@limiter.limit("5/second")
async def store_message(
    request: Request,
    body: StoreMessageRequest,
    user: AuthenticatedUser = Depends(require_bearer_token),
    system: ChatSystem = Depends(get_chat_system),
):
    """把一条消息写入持久化存储（不广播到聊天室）。

    Raises:
        HTTPException: 503，未配置持久化存储。
    """
    if system.repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Message store is not configured",
        )

    message = Message(
        room_id=body.room_id,
        sender_id=f"api:{user.username}",
        sender=user.username,
        body=body.message,
        type="user",
    )
    await system.repo.save_message(message)
    logger.info("HTTP 消息已存储 | room=%s | user=%s", message.room_id, user.username)

    return ApiResponse.ok(
        data=StoredMessageData(
            id=message.id,
            room_id=message.room_id,
            sender=message.sender,
            timestamp=message.to_payload()["timestamp"],
        ),
    )
