"""
nego_chat.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

REST 接口的统一应答信封。

WebSocket 不使用此结构（走 ``{"event", "data"}`` 帧）。AI 网关降级时接口
仍返回 ``code=200``，降级文本放在 ``data`` 里；鉴权失败、存储未配置等
``HTTPException`` 保持 FastAPI 默认的 ``{"detail": ...}``。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "服务器内部错误"


class ApiResponse(BaseModel, Generic[T]):
    """``{"code": 200, "data": {...}, "msg": "success"}``"""

    code: int = Field(default=200, description="业务状态码，200 表示成功")
    data: T = Field(..., description="分析结果、房间列表或市场数据")
    msg: str = Field(default="success", description="状态消息")

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        return cls(code=200, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        return cls(code=code, data=data, msg=msg)

    @classmethod
    def from_exception(cls, exc: Exception, expose_detail: bool = True) -> ApiResponse[Any]:
        """未处理异常转 500 应答；``expose_detail=False`` 时隐藏异常文本。"""
        detail = str(exc) if expose_detail and str(exc) else INTERNAL_ERROR_MESSAGE
        return cls.fail(msg=detail, code=500)
