"""
nego_chat.analysis.market
~~~~~~~~~~~~~~~~~~~~~~~~~

示例市场数据。

这里的数字是固定的演示数据，不代表真实行情；接口形状与前端约定一致，
将来接入真实数据源时只需替换本模块。
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date
from typing import Any

AVERAGE_AREA_SQM = 120


@dataclass(frozen=True, slots=True)
class CityFigures:
    average_price: int
    yearly_change: float
    forecast: float
    estimated_value: int
    interval: tuple[int, int]
    comparables: tuple[int, int]


CITY_FIGURES: dict[str, CityFigures] = {
    "الرياض": CityFigures(1200000, 5.2, 3.1, 1250000, (1180000, 1320000), (1230000, 1280000)),
    "جدة": CityFigures(950000, 2.8, 1.5, 980000, (920000, 1040000), (960000, 995000)),
}
DEFAULT_FIGURES = CityFigures(850000, 3.5, 2.0, 870000, (820000, 920000), (860000, 885000))

PRICE_FACTORS: tuple[tuple[str, str], ...] = (
    ("الموقع", "+5%"),
    ("المساحة", "+3%"),
    ("عمر العقار", "-2%"),
)


def figures_for(location: str) -> CityFigures:
    return CITY_FIGURES.get(location, DEFAULT_FIGURES)


def market_data() -> dict[str, Any]:
    return {
        "locations": {
            "الرياض": {"averagePrice": 1200000, "yearlyChange": 5.2, "forecast": 3.1, "demand": "high"},
            "جدة": {"averagePrice": 950000, "yearlyChange": 2.8, "forecast": 1.5, "demand": "medium"},
            "الدمام": {"averagePrice": 850000, "yearlyChange": 3.5, "forecast": 2.0, "demand": "medium-high"},
        },
        "propertyTypes": {
            "شقة": {"averagePrice": 700000, "yearlyChange": 3.0, "forecast": 1.8, "demand": "high"},
            "فيلا": {"averagePrice": 1800000, "yearlyChange": 4.2, "forecast": 2.5, "demand": "medium-high"},
            "أرض": {"averagePrice": 1200000, "yearlyChange": 6.5, "forecast": 4.0, "demand": "high"},
        },
        "insights": [
            {
                "title": "ارتفاع الطلب على الشقق في الرياض",
                "summary": "شهدت شقق الرياض ارتفاعاً في الطلب بنسبة 12% خلال الربع الأخير",
            },
            {
                "title": "تباطؤ نمو أسعار الفلل في جدة",
                "summary": "انخفض معدل نمو أسعار الفلل في جدة إلى 1.8% مقارنة بـ 3.5% في العام السابق",
            },
        ],
    }


def market_insights(location: str, property_type: str) -> dict[str, Any]:
    figures = figures_for(location)
    return {
        "summary": (
            f"سوق العقارات في {location} للعقارات من نوع {property_type} يشهد نمواً مستقراً "
            "مع زيادة متوسطة في الطلب. الأسعار مستقرة مع توقعات بارتفاع طفيف في الأشهر القادمة."
        ),
        "averagePrice": figures.average_price,
        "yearlyChange": figures.yearly_change,
        "forecast": figures.forecast,
        "factors": [
            {"name": "البنية التحتية الجديدة", "impact": "+5%"},
            {"name": "المساحة", "impact": "+3%"},
            {"name": "عمر العقار", "impact": "-2%"},
        ],
        "negotiationTips": [
            f"قيمة العقارات في {location} تتأثر بشكل كبير بالقرب من المرافق الخدمية، استخدم ذلك في التفاوض",
            "متوسط مدة عرض العقار في السوق 45 يوماً، يمكن استخدام هذه المعلومة للضغط على البائعين المستعجلين",
            "عقارات مماثلة تباع بخصم 5-8% عن السعر المعلن، استخدم هذا كنقطة انطلاق للتفاوض",
            "معظم البائعين مستعدون للتنازل عن 3-5% من السعر المبدئي",
        ],
    }


def price_prediction(location: str, property_type: str) -> dict[str, Any]:
    figures = figures_for(location)
    low, high = figures.interval
    first, second = figures.comparables
    return {
        "estimatedValue": figures.estimated_value,
        "confidenceInterval": {"min": low, "max": high},
        "similarProperties": [
            {"price": first, "description": f"{property_type} في حي مشابه في {location}", "daysOnMarket": 32},
            {"price": second, "description": f"{property_type} بمواصفات مماثلة في {location}", "daysOnMarket": 18},
        ],
        "priceFactors": [{"factor": name, "impact": impact} for name, impact in PRICE_FACTORS],
    }


def _months_back(today: date, count: int) -> list[str]:
    """返回截至本月的最近 ``count`` 个月（YYYY-MM，正序）。"""
    labels = []
    for offset in range(count - 1, -1, -1):
        index = today.year * 12 + today.month - 1 - offset
        labels.append(f"{index // 12:04d}-{index % 12 + 1:02d}")
    return labels


def market_trends(
    location: str,
    property_type: str,
    rng: random.Random | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """12 个月价格走势：每月 0.3% 的基础涨幅叠加 ±2% 的随机波动。"""
    rng = rng or random.Random()
    base = figures_for(location).average_price
    points = [
        {"date": label, "price": round(base * (1 + 0.003 * i + rng.uniform(-0.02, 0.02)))}
        for i, label in enumerate(_months_back(today or date.today(), 12))
    ]
    first, last = points[0]["price"], points[-1]["price"]
    return {
        "propertyType": property_type,
        "trendPoints": points,
        "overallChange": {
            "percentage": round((last - first) / first * 100, 1),
            "absolute": last - first,
        },
        "volatility": "منخفضة",
        "pricePerSquareMeter": round(base / AVERAGE_AREA_SQM),
        "comparisonToMarket": "أعلى من متوسط السوق بنسبة 2.5%",
    }
