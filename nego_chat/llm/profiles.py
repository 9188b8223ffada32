"""
nego_chat.llm.profiles
~~~~~~~~~~~~~~~~~~~~~~

生成参数档位：每个档位固定 temperature / top_p / top_k / 最大输出长度，
并共享同一组安全阈值（四个类别均为 BLOCK_MEDIUM_AND_ABOVE）。

房间的 AI 人设描述中若含有档位关键词（英文或阿拉伯语），就选用对应档位，
否则使用 ``balanced``。
"""
from __future__ import annotations

from dataclasses import dataclass

from google.genai import types

SAFETY_SETTINGS: list[types.SafetySetting] = [
    types.SafetySetting(
        category=category,
        threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    )
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


@dataclass(frozen=True)
class GenerationProfile:
    """一组固定的采样参数。"""

    name: str
    temperature: float
    top_p: float
    top_k: int
    max_output_tokens: int

    def to_config(self, system_instruction: str | None = None) -> types.GenerateContentConfig:
        """转换为 Gemini 的 ``GenerateContentConfig``。"""
        return types.GenerateContentConfig(
            temperature=self.temperature,
            top_p=self.top_p,
            top_k=self.top_k,
            max_output_tokens=self.max_output_tokens,
            safety_settings=SAFETY_SETTINGS,
            system_instruction=system_instruction,
        )


CREATIVE = GenerationProfile("creative", temperature=0.8, top_p=0.9, top_k=40, max_output_tokens=1024)
BALANCED = GenerationProfile("balanced", temperature=0.4, top_p=0.8, top_k=30, max_output_tokens=1024)
PRECISE = GenerationProfile("precise", temperature=0.1, top_p=0.7, top_k=20, max_output_tokens=1024)
# 谈判建议篇幅较长，放宽输出上限
NEGOTIATION = GenerationProfile("negotiation", temperature=0.35, top_p=0.85, top_k=30, max_output_tokens=2048)

PROFILES: dict[str, GenerationProfile] = {
    profile.name: profile for profile in (CREATIVE, BALANCED, PRECISE, NEGOTIATION)
}

# 按顺序匹配，第一个命中的档位生效
_PERSONALITY_HINTS: tuple[tuple[tuple[str, ...], GenerationProfile], ...] = (
    (("creative", "مبدع"), CREATIVE),
    (("precise", "دقيق"), PRECISE),
    (("negotiation", "تفاوض"), NEGOTIATION),
)


def get_profile(name: str) -> GenerationProfile:
    """按名称获取档位，未知名称回退到 ``balanced``。"""
    return PROFILES.get(name, BALANCED)


def select_profile(personality: str) -> GenerationProfile:
    """根据房间人设描述中的关键词选择档位。"""
    for keywords, profile in _PERSONALITY_HINTS:
        if any(keyword in personality for keyword in keywords):
            return profile
    return BALANCED
