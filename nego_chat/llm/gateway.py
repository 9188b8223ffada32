"""
nego_chat.llm.gateway
~~~~~~~~~~~~~~~~~~~~~

AI 谈判顾问网关：对 Gemini 单次生成调用的封装。

``generate()`` 从不抛出异常：成功时返回生成文本，失败时返回带分类的
``AdvisoryResult``，由调用方决定如何展示（广播、私发或丢弃）。
失败分类：限流、输入过长、安全过滤、其他未知错误；另外未配置 API Key
时在发起任何网络请求之前直接返回"服务不可用"。
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

from google import genai
from google.genai import errors, types

from nego_chat.core.config import settings
from nego_chat.core.logging import get_logger
from nego_chat.llm.client import create_gemini_client
from nego_chat.llm.profiles import NEGOTIATION, GenerationProfile
from nego_chat.prompts.negotiation import build_negotiation_prompt

logger = get_logger(__name__)


class AdvisoryErrorKind(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"
    TOO_LONG = "too_long"
    SAFETY_BLOCKED = "safety_blocked"
    UNKNOWN = "unknown"


FALLBACK_MESSAGES: dict[AdvisoryErrorKind, str] = {
    AdvisoryErrorKind.UNAVAILABLE: "عذرًا، حدث خطأ في الاتصال بالذكاء الاصطناعي. الرجاء المحاولة مرة أخرى.",
    AdvisoryErrorKind.RATE_LIMITED: "عذرًا، تجاوزنا الحد الأقصى لعدد الطلبات. الرجاء المحاولة مرة أخرى بعد قليل.",
    AdvisoryErrorKind.TOO_LONG: "عذرًا، المحتوى طويل جدًا للمعالجة. يرجى تقصير الرسالة وإعادة المحاولة.",
    AdvisoryErrorKind.SAFETY_BLOCKED: "عذرًا، لا يمكنني تقديم استجابة لهذا المحتوى بسبب إعدادات السلامة.",
    AdvisoryErrorKind.UNKNOWN: "عذرًا، حدث خطأ في معالجة طلبك. الرجاء المحاولة مرة أخرى.",
}

_SAFETY_FINISH_REASONS = frozenset({
    types.FinishReason.SAFETY,
    types.FinishReason.BLOCKLIST,
    types.FinishReason.PROHIBITED_CONTENT,
})

_TOO_LONG_HINTS = ("token limit", "too long", "maximum number of tokens", "token count")
_RATE_LIMIT_HINTS = ("rate limit", "quota", "resource_exhausted", "resource exhausted")


@dataclass(frozen=True)
class AdvisoryResult:
    """一次生成调用的结果：要么是文本，要么是分类后的错误。"""

    text: str | None = None
    error: AdvisoryErrorKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def display_text(self) -> str:
        """面向用户的文本：成功时为生成内容，失败时为对应的阿拉伯语提示。"""
        if self.error is None:
            return self.text or ""
        return FALLBACK_MESSAGES[self.error]

    @classmethod
    def success(cls, text: str) -> AdvisoryResult:
        return cls(text=text)

    @classmethod
    def failure(cls, kind: AdvisoryErrorKind, detail: str = "") -> AdvisoryResult:
        return cls(error=kind, detail=detail)


def classify_error(error: Exception) -> AdvisoryErrorKind:
    """把 Gemini 调用抛出的异常归入四类之一。"""
    message = str(error).lower()

    if isinstance(error, errors.APIError):
        if error.code == 429 or (error.status or "").upper() == "RESOURCE_EXHAUSTED":
            return AdvisoryErrorKind.RATE_LIMITED
        if error.code == 413:
            return AdvisoryErrorKind.TOO_LONG

    if any(hint in message for hint in _RATE_LIMIT_HINTS):
        return AdvisoryErrorKind.RATE_LIMITED
    if any(hint in message for hint in _TOO_LONG_HINTS):
        return AdvisoryErrorKind.TOO_LONG
    if "safety" in message:
        return AdvisoryErrorKind.SAFETY_BLOCKED
    return AdvisoryErrorKind.UNKNOWN


def _is_safety_blocked(response: types.GenerateContentResponse) -> bool:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return True
    for candidate in getattr(response, "candidates", None) or []:
        if getattr(candidate, "finish_reason", None) in _SAFETY_FINISH_REASONS:
            return True
    return False


class AdvisoryGateway:
    """Gemini 生成调用网关。

    Attributes:
        model_name: 使用的 Gemini 模型名称。
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """初始化网关。

        Args:
            api_key: Gemini API Key，默认读取 ``settings.GEMINI_API_KEY``。
            model_name: 模型名称，默认读取 ``settings.GEMINI_MODEL``。
            client: 可选的 ``genai.Client`` 实例（用于测试注入 mock）。
        """
        self._api_key: str = (settings.GEMINI_API_KEY if api_key is None else api_key).strip()
        self.model_name: str = model_name or settings.GEMINI_MODEL
        self._client: genai.Client | None = client
        if not self.available:
            logger.warning("未配置 GEMINI_API_KEY，AI 回复将返回服务不可用提示")

    @property
    def available(self) -> bool:
        """是否配置了凭证（或注入了客户端）。"""
        return bool(self._api_key) or self._client is not None

    def _get_client(self) -> genai.Client:
        """懒创建 Gemini 客户端。"""
        if self._client is None:
            self._client = create_gemini_client(self._api_key)
            logger.info("Gemini 客户端已初始化 | model=%s", self.model_name)
        return self._client

    async def generate(
        self,
        profile: GenerationProfile,
        prompt: str,
        system_instruction: str | None = None,
    ) -> AdvisoryResult:
        """按指定档位生成文本。

        Args:
            profile: 生成参数档位。
            prompt: 发送给模型的完整 Prompt。
            system_instruction: 可选的系统指令（房间人设）。

        Returns:
            ``AdvisoryResult``；本方法不会抛出异常。
        """
        if not self.available:
            return AdvisoryResult.failure(AdvisoryErrorKind.UNAVAILABLE, "missing GEMINI_API_KEY")

        logger.debug("Gemini 请求 | profile=%s | prompt=%s", profile.name, prompt[:100])
        try:
            client = self._get_client()
            response = await client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=profile.to_config(system_instruction),
            )
        except Exception as e:
            kind = classify_error(e)
            logger.error("Gemini 调用异常 | profile=%s | kind=%s | %s", profile.name, kind.value, e, exc_info=True)
            return AdvisoryResult.failure(kind, str(e))

        if _is_safety_blocked(response):
            logger.warning("Gemini 回复被安全策略拦截 | profile=%s", profile.name)
            return AdvisoryResult.failure(AdvisoryErrorKind.SAFETY_BLOCKED, "blocked by safety settings")

        text = response.text
        if not text or not text.strip():
            logger.warning("Gemini 返回空内容 | profile=%s", profile.name)
            return AdvisoryResult.failure(AdvisoryErrorKind.UNKNOWN, "empty response")
        return AdvisoryResult.success(text)

    async def negotiation_advice(self, situation: str) -> AdvisoryResult:
        """用谈判专家模板与 ``negotiation`` 档位生成建议。"""
        return await self.generate(NEGOTIATION, build_negotiation_prompt(situation))
