"""
nego_chat.api.deps
~~~~~~~~~~~~~~~~~~

路由层依赖注入：从 ``app.state`` 取聊天系统，以及 Bearer Token 鉴权。
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nego_chat.core.config import settings
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.services.chat_system import ChatSystem

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    token: str
    username: str


def get_chat_system(request: Request) -> ChatSystem:
    return request.app.state.chat_system


def get_gateway(system: ChatSystem = Depends(get_chat_system)) -> AdvisoryGateway:
    return system.gateway


async def require_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthenticatedUser:
    """校验 ``Authorization: Bearer <token>``，token 需在 ``AUTH_TOKENS`` 中登记。

    Raises:
        HTTPException: 401，缺少或无效的 token。
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    username = settings.AUTH_TOKENS.get(credentials.credentials)
    if username is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthenticatedUser(token=credentials.credentials, username=username)
