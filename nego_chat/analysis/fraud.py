"""
nego_chat.analysis.fraud
~~~~~~~~~~~~~~~~~~~~~~~~

房源反欺诈规则引擎。

  - 关键词匹配：在房源描述中查找催促、证件、看房、付款类的可疑措辞；
  - 价格异常：与各城市、各房产类型的常见价格区间比较；
  - 欺诈类别：用六维布尔特征向量与已知欺诈模式做 3 近邻投票。

风险分数 > 50 时可调用 AI 网关生成详细报告。
"""
from __future__ import annotations

import math

from nego_chat.core.logging import get_logger
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.llm.profiles import PRECISE
from nego_chat.prompts.negotiation import build_fraud_report_prompt
from nego_chat.schemas.analysis import (
    FraudAnalysis,
    FraudIndicator,
    PriceAnalysis,
    PropertyListing,
    SellerAnalysis,
    SellerListing,
    SuspiciousPatterns,
)

logger = get_logger(__name__)

SEVERITY_HIGH = "عالي"
SEVERITY_MEDIUM = "متوسط"
REPORT_THRESHOLD = 50
REPORT_FAILURE_MESSAGE = "حدث خطأ في إنشاء تقرير الاحتيال"

# 特征顺序：低价、催促、无证件、拒绝看房、隐藏费用、异常付款
FRAUD_PATTERNS: tuple[tuple[str, tuple[int, ...]], ...] = (
    ("price_anomaly", (1, 1, 0, 0, 0, 0)),
    ("documentation_fraud", (0, 0, 1, 0, 0, 0)),
    ("inspection_fraud", (0, 1, 0, 1, 0, 0)),
    ("payment_fraud", (0, 1, 0, 0, 1, 1)),
    ("multiple_red_flags", (1, 1, 1, 1, 0, 0)),
)

_DEFAULT_RANGE = (300000, 3000000)

MARKET_PRICE_RANGES: dict[str, dict[str, tuple[int, int]]] = {
    "شقة": {
        "الرياض": (300000, 2000000),
        "جدة": (350000, 2500000),
        "الدمام": (250000, 1500000),
        "مكة": (400000, 3000000),
        "المدينة": (300000, 1800000),
        "الخُبر": (280000, 1700000),
        "الطائف": (200000, 1200000),
        "default": (250000, 1500000),
    },
    "فيلا": {
        "الرياض": (1000000, 5000000),
        "جدة": (1200000, 7000000),
        "الدمام": (900000, 4000000),
        "مكة": (1500000, 8000000),
        "المدينة": (1000000, 5000000),
        "الخُبر": (1200000, 6000000),
        "الطائف": (800000, 3500000),
        "default": (1000000, 5000000),
    },
    "أرض": {
        "الرياض": (400000, 10000000),
        "جدة": (500000, 15000000),
        "الدمام": (350000, 8000000),
        "مكة": (800000, 20000000),
        "المدينة": (500000, 10000000),
        "الخُبر": (400000, 9000000),
        "الطائف": (300000, 5000000),
        "default": (400000, 8000000),
    },
}

FRAUD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "urgency": ("فرصة لا تعوض", "عرض لفترة محدودة", "بيع سريع", "يجب البيع الآن", "فرصة نادرة"),
    "documentation": ("بدون أوراق", "توثيق لاحقًا", "صك غير جاهز", "أوراق تحت الإجراء"),
    "inspection": ("لا يمكن المعاينة", "معاينة محدودة", "معاينة بعد الدفع", "بدون معاينة"),
    "payment": ("دفع كاش فقط", "تحويل مباشر", "تأمين مقدم", "دفعة تأمين قبل المعاينة"),
}

# 关键词类别 → (指标类型, 描述, 严重程度)
_KEYWORD_INDICATORS: tuple[tuple[str, str, str, str], ...] = (
    ("urgency", "urgency_pressure", "يستخدم البائع لغة تحث على الإسراع في اتخاذ القرار", SEVERITY_MEDIUM),
    ("documentation", "documentation_issues", "توجد مشكلات محتملة في توثيق العقار أو ملكيته", SEVERITY_HIGH),
    ("inspection", "inspection_limitations", "البائع يمنع أو يحد من معاينة العقار بشكل طبيعي", SEVERITY_HIGH),
    ("payment", "payment_issues", "البائع يطلب طرق دفع غير تقليدية أو دفعات مقدمة مثيرة للشك", SEVERITY_HIGH),
)


def _market_range(property_type: str | None, location: str | None) -> tuple[int, int]:
    ranges = MARKET_PRICE_RANGES.get(property_type or "")
    if ranges is None:
        return _DEFAULT_RANGE
    return ranges.get(location or "", ranges["default"])


def _round_half_up(value: float) -> int:
    # .5 向上进位
    return math.floor(value + 0.5)


def detect_price_anomaly(property_type: str | None, location: str | None, price: float) -> PriceAnalysis:
    """把报价与该城市、该房产类型的常见区间比较。"""
    low, high = _market_range(property_type, location)

    if price < low * 0.7:
        return PriceAnalysis(
            is_anomaly=True,
            reason="السعر منخفض بشكل مثير للريبة عن متوسط أسعار السوق",
            severity=SEVERITY_HIGH,
            market_min=low,
            market_max=high,
            percentage_below_market=_round_half_up((low - price) / low * 100),
        )
    if price > high * 1.5:
        return PriceAnalysis(
            is_anomaly=True,
            reason="السعر أعلى بكثير من متوسط أسعار السوق",
            severity=SEVERITY_MEDIUM,
            market_min=low,
            market_max=high,
            percentage_above_market=_round_half_up((price - high) / high * 100),
        )
    return PriceAnalysis(
        is_anomaly=False,
        reason="السعر ضمن النطاق الطبيعي لهذا النوع من العقارات في هذه المنطقة",
        market_min=low,
        market_max=high,
    )


def predict_category(features: tuple[int, ...], k: int = 3) -> str:
    """k 近邻投票。距离相同时保持模式表顺序，票数相同时先出现者胜。"""
    distances = sorted(
        ((math.dist(point, features), label) for label, point in FRAUD_PATTERNS),
        key=lambda item: item[0],
    )
    counts: dict[str, int] = {}
    for _, label in distances[:k]:
        counts[label] = counts.get(label, 0) + 1
    return max(counts, key=lambda label: counts[label])


def _risk_level(score: int) -> str:
    if score > 75:
        return "عالي جداً"
    if score > 50:
        return "عالي"
    if score > 25:
        return "متوسط"
    return "منخفض"


def detect_fraud(listing: PropertyListing) -> FraudAnalysis:
    """对房源做规则化欺诈分析。"""
    description = listing.description
    indicators: list[FraudIndicator] = []

    price_too_low = False
    if listing.price is not None:
        price_analysis = detect_price_anomaly(listing.property_type, listing.location, listing.price)
        price_too_low = price_analysis.is_anomaly and price_analysis.percentage_below_market is not None
        if price_too_low:
            indicators.append(FraudIndicator(
                type="price_anomaly",
                description=price_analysis.reason,
                severity=price_analysis.severity or SEVERITY_HIGH,
                details=price_analysis,
            ))

    hits: dict[str, bool] = {}
    for category, indicator_type, text, severity in _KEYWORD_INDICATORS:
        hits[category] = any(keyword in description for keyword in FRAUD_KEYWORDS[category])
        if hits[category]:
            indicators.append(FraudIndicator(type=indicator_type, description=text, severity=severity))

    if not indicators:
        return FraudAnalysis()

    features = (
        int(price_too_low),
        int(hits["urgency"]),
        int(hits["documentation"]),
        int(hits["inspection"]),
        0,  # 隐藏费用：描述中无法可靠识别
        int(hits["payment"]),
    )

    score = 0
    for indicator in indicators:
        if indicator.severity == SEVERITY_HIGH:
            score += 30
        elif indicator.severity == SEVERITY_MEDIUM:
            score += 15
        else:
            score += 5
    score = min(score, 100)

    return FraudAnalysis(
        is_fraudulent=score > REPORT_THRESHOLD,
        fraud_category=predict_category(features),
        risk_score=score,
        risk_level=_risk_level(score),
        indicators=indicators,
    )


async def generate_fraud_report(
    gateway: AdvisoryGateway,
    listing: PropertyListing,
    analysis: FraudAnalysis,
) -> str:
    """调用 AI 网关生成详细的欺诈风险报告。"""
    prompt = build_fraud_report_prompt(
        listing.model_dump(by_alias=True, exclude_none=True),
        analysis.model_dump(exclude_none=True),
    )
    result = await gateway.generate(PRECISE, prompt)
    if not result.ok:
        logger.warning("欺诈报告生成失败 | kind=%s", result.error.value if result.error else "-")
        return REPORT_FAILURE_MESSAGE
    return result.display_text


def analyze_seller(history: list[SellerListing]) -> SellerAnalysis:
    """根据卖家历史房源评估卖家信誉。"""
    score = 0

    flagged = sum(
        1 for item in history
        if item.fraud_analysis is not None and item.fraud_analysis.is_fraudulent
    )
    if flagged > 3:
        score += 40
    elif flagged > 1:
        score += 20

    short_ownership = sum(
        1 for item in history
        if item.ownership_period is not None and item.ownership_period < 6
    )
    if short_ownership > 2:
        score += 30

    price_anomalies = sum(
        1 for item in history
        if item.fraud_analysis is not None
        and any(i.type == "price_anomaly" for i in item.fraud_analysis.indicators)
    )
    if price_anomalies > 2:
        score += 25

    if score > 70:
        level = "عالي جداً"
    elif score > 40:
        level = "عالي"
    elif score > 20:
        level = "متوسط"
    else:
        level = "منخفض"

    return SellerAnalysis(
        risk_score=min(score, 100),
        risk_level=level,
        suspicious_listings_count=flagged,
        suspicious_patterns=SuspiciousPatterns(
            short_ownership=short_ownership > 1,
            price_anomalies=price_anomalies > 1,
            multiple_listings=flagged > 3,
        ),
    )
