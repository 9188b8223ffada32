"""
nego_chat.core.exceptions
~~~~~~~~~~~~~~~~~~~~~~~~~

业务异常定义。

AI 网关的失败不走异常（见 ``nego_chat.llm.gateway.AdvisoryResult``），
这里只放需要在调用链上传播、由传输层统一转换为 ``error`` 事件的错误。
"""
from __future__ import annotations


class NegoChatError(Exception):
    """所有业务异常的基类。

    Attributes:
        message: 可直接返回给客户端的错误描述。
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedConnectionError(NegoChatError):
    """连接尚未通过 ``user_join`` 声明身份，无法解析发送者。"""

    def __init__(self, connection_id: str) -> None:
        super().__init__("User not authenticated")
        self.connection_id = connection_id


class InvalidEventError(NegoChatError):
    """WebSocket 帧格式不合法或事件名未知。"""

    pass
