"""
nego_chat.analysis.nlp
~~~~~~~~~~~~~~~~~~~~~~

阿拉伯语房产文本分析。

情感分析、市场洞察、谈判战术三项走 AI 网关；文本欺诈检测和实体抽取
是纯规则实现，不依赖外部服务。
"""
from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from nego_chat.core.logging import get_logger
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.llm.profiles import BALANCED, PRECISE
from nego_chat.prompts.negotiation import (
    build_market_insights_prompt,
    build_sentiment_prompt,
    build_tactics_prompt,
)
from nego_chat.schemas.analysis import (
    EntityExtraction,
    SentimentResult,
    TextFraudAnalysis,
    TextFraudIndicator,
)

logger = get_logger(__name__)

SENTIMENT_PARSE_FAILURE = "تعذر تحليل المشاعر"
SENTIMENT_FAILURE = "حدث خطأ في التحليل"
MARKET_INSIGHTS_FAILURE = "فشل في توليد تحليل السوق"
TACTICS_FAILURE = "حدث خطأ في تحليل تكتيكات المفاوضة"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# (类型, 置信度, 描述, 关键词)
TEXT_FRAUD_RULES: tuple[tuple[str, float, str, tuple[str, ...]], ...] = (
    (
        "price_manipulation", 0.7, "تلاعب محتمل في السعر - السعر منخفض بشكل غير طبيعي",
        ("أقل سعر", "سعر منخفض جدًا", "أرخص"),
    ),
    (
        "urgency_pressure", 0.65, "ضغط بالإلحاح - محاولة لإجبار المشتري على اتخاذ قرار سريع",
        ("فرصة لا تعوض", "عرض لفترة محدودة", "يجب البيع الآن", "فرصة نادرة"),
    ),
    (
        "payment_methods", 0.75, "طرق دفع غير تقليدية قد تشير إلى احتيال",
        ("تحويل مباشر", "دفع نقدي فقط", "تأمين مقدم", "دفعة تأمين"),
    ),
    (
        "documentation_issues", 0.85, "مشاكل في التوثيق أو ملكية العقار غير واضحة",
        ("بدون أوراق", "توثيق لاحقًا", "صك غير جاهز", "أوراق تحت الإجراء"),
    ),
)

_ARABIC = "؀-ۿ"
_LOCATION_RE = re.compile(rf"(?<![{_ARABIC}])في ([{_ARABIC}\s]+?)(?:\s|،|\.)")
_PRICE_RE = re.compile(r"\d[\d,.]*\s*(?:ريال|الف|ألف|مليون|دينار|جنيه|درهم)")
_AREA_RE = re.compile(r"\d[\d,.]*\s*(?:متر مربع|م2|م٢|متر²)")

PROPERTY_TYPES: tuple[str, ...] = (
    "شقة", "فيلا", "أرض", "عمارة", "محل", "مكتب", "استديو", "دور", "منزل", "قصر",
)


def parse_json_reply(text: str) -> Any | None:
    """解析模型返回的 JSON，自动去掉 ```json 围栏。解析失败返回 None。"""
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


async def analyze_sentiment(gateway: AdvisoryGateway, text: str) -> SentimentResult:
    result = await gateway.generate(PRECISE, build_sentiment_prompt(text))
    if not result.ok:
        logger.warning("情感分析失败 | kind=%s", result.error.value if result.error else "-")
        return SentimentResult(explanation=SENTIMENT_FAILURE)

    parsed = parse_json_reply(result.display_text)
    if not isinstance(parsed, dict):
        return SentimentResult(explanation=SENTIMENT_PARSE_FAILURE)
    try:
        return SentimentResult.model_validate(parsed)
    except ValidationError:
        logger.debug("情感分析结果不符合结构: %s", parsed)
        return SentimentResult(explanation=SENTIMENT_PARSE_FAILURE)


def detect_text_fraud(text: str) -> TextFraudAnalysis:
    """基于关键词的文本欺诈检测。

    总风险为各指标置信度的平均值，再乘以 ``min(n, 3) / 3``，
    指标越少风险打折越多。
    """
    indicators = [
        TextFraudIndicator(type=kind, confidence=confidence, description=description)
        for kind, confidence, description, keywords in TEXT_FRAUD_RULES
        if any(keyword in text for keyword in keywords)
    ]
    if not indicators:
        return TextFraudAnalysis()

    average = sum(i.confidence for i in indicators) / len(indicators)
    overall = average * min(len(indicators), 3) / 3

    if overall > 0.7:
        level = "عالي"
    elif overall > 0.4:
        level = "متوسط"
    else:
        level = "منخفض"
    return TextFraudAnalysis(indicators=indicators, overall_risk=round(overall, 4), risk_level=level)


def extract_entities(text: str) -> EntityExtraction:
    # 末尾补一个空格，方便匹配句末的地名
    padded = f"{text} "
    return EntityExtraction(
        locations=[m.strip() for m in _LOCATION_RE.findall(padded) if m.strip()],
        prices=_PRICE_RE.findall(text),
        areas=_AREA_RE.findall(text),
        property_types=[t for t in PROPERTY_TYPES if t in text],
    )


async def generate_market_insights(gateway: AdvisoryGateway, details: dict[str, Any]) -> dict[str, Any]:
    """让模型基于房源详情生成结构化的市场分析。"""
    result = await gateway.generate(BALANCED, build_market_insights_prompt(details))
    if not result.ok:
        logger.warning("市场分析失败 | kind=%s", result.error.value if result.error else "-")
        return {"error": MARKET_INSIGHTS_FAILURE}

    parsed = parse_json_reply(result.display_text)
    if isinstance(parsed, dict):
        return parsed
    return {"rawAnalysis": result.display_text}


async def analyze_negotiation_tactics(gateway: AdvisoryGateway, conversation: str) -> str:
    result = await gateway.generate(BALANCED, build_tactics_prompt(conversation))
    if not result.ok:
        logger.warning("谈判战术分析失败 | kind=%s", result.error.value if result.error else "-")
        return TACTICS_FAILURE
    return result.display_text
