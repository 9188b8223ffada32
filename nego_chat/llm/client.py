"""
nego_chat.llm.client
~~~~~~~~~~~~~~~~~~~~

Gemini API 客户端工厂：全局共享的客户端创建入口。
"""
from __future__ import annotations

from google import genai

from nego_chat.core.config import settings


def create_gemini_client(api_key: str | None = None) -> genai.Client:
    """创建 Gemini API 客户端实例。

    Args:
        api_key: 可选的 API Key，默认读取 ``settings.GEMINI_API_KEY``。

    Returns:
        已认证的 ``genai.Client``。
    """
    return genai.Client(api_key=api_key or settings.GEMINI_API_KEY)
