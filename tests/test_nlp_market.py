"""
tests.test_nlp_market
~~~~~~~~~~~~~~~~~~~~~

文本分析（情感、文本欺诈、实体抽取、市场洞察）与示例市场数据测试。
"""
from __future__ import annotations

import random
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from nego_chat.analysis import market, nlp
from nego_chat.llm.gateway import AdvisoryErrorKind, AdvisoryResult


def _gateway(result: AdvisoryResult) -> MagicMock:
    gateway = MagicMock()
    gateway.generate = AsyncMock(return_value=result)
    return gateway


# ── 情感分析 ──────────────────────────────────────────────────────────

class TestSentiment:

    @pytest.mark.asyncio
    async def test_fenced_json_is_parsed(self) -> None:
        reply = '```json\n{"sentiment": "positive", "score": 8, "explanation": "عرض جيد"}\n```'
        result = await nlp.analyze_sentiment(_gateway(AdvisoryResult.success(reply)), "السعر ممتاز")
        assert result.sentiment == "positive"
        assert result.score == 8
        assert result.explanation == "عرض جيد"

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back_to_neutral(self) -> None:
        result = await nlp.analyze_sentiment(_gateway(AdvisoryResult.success("لا أعرف")), "نص")
        assert result.sentiment == "neutral"
        assert result.score == 5
        assert result.explanation == nlp.SENTIMENT_PARSE_FAILURE

    @pytest.mark.asyncio
    async def test_gateway_failure_falls_back_to_neutral(self) -> None:
        gateway = _gateway(AdvisoryResult.failure(AdvisoryErrorKind.UNAVAILABLE))
        result = await nlp.analyze_sentiment(gateway, "نص")
        assert result.sentiment == "neutral"
        assert result.explanation == nlp.SENTIMENT_FAILURE


def test_parse_json_reply() -> None:
    assert nlp.parse_json_reply('{"a": 1}') == {"a": 1}
    assert nlp.parse_json_reply("```\n[1, 2]\n```") == [1, 2]
    assert nlp.parse_json_reply("not json") is None


# ── 文本欺诈 ──────────────────────────────────────────────────────────

class TestTextFraud:

    def test_no_indicators(self) -> None:
        result = nlp.detect_text_fraud("شقة واسعة بإطلالة جميلة")
        assert result.indicators == []
        assert result.overall_risk == 0
        assert result.risk_level == "منخفض"

    def test_two_indicators_are_discounted(self) -> None:
        result = nlp.detect_text_fraud("شقة أرخص من السوق، دفع نقدي فقط")
        assert [i.type for i in result.indicators] == ["price_manipulation", "payment_methods"]
        assert result.overall_risk == pytest.approx(0.725 * 2 / 3, abs=1e-4)
        assert result.risk_level == "متوسط"

    def test_single_indicator_is_low_risk(self) -> None:
        result = nlp.detect_text_fraud("المالك يقبل دفعة تأمين فقط")
        assert [(i.type, i.confidence) for i in result.indicators] == [("payment_methods", 0.75)]
        assert result.overall_risk == pytest.approx(0.25)
        assert result.risk_level == "منخفض"

    def test_all_indicators_is_high_risk(self) -> None:
        result = nlp.detect_text_fraud("أرخص فيلا، فرصة نادرة، تحويل مباشر، صك غير جاهز")
        assert [i.type for i in result.indicators] == [
            "price_manipulation", "urgency_pressure", "payment_methods", "documentation_issues",
        ]
        assert result.overall_risk == pytest.approx(0.7375, abs=1e-4)
        assert result.risk_level == "عالي"


# ── 实体抽取 ──────────────────────────────────────────────────────────

def test_extract_entities() -> None:
    text = "أبحث عن شقة في الرياض بسعر 500000 ريال ومساحة 150 متر مربع"
    entities = nlp.extract_entities(text)
    assert entities.locations == ["الرياض"]
    assert entities.prices == ["500000 ريال"]
    assert entities.areas == ["150 متر مربع"]
    assert entities.property_types == ["شقة"]


def test_extract_entities_property_types_follow_table_order() -> None:
    assert nlp.extract_entities("منزل و استديو للبيع").property_types == ["استديو", "منزل"]


def test_extract_entities_location_at_end_of_text() -> None:
    assert nlp.extract_entities("فيلا للبيع في جدة").locations == ["جدة"]


# ── 市场洞察 / 战术 ───────────────────────────────────────────────────

class TestGeneratedInsights:

    @pytest.mark.asyncio
    async def test_market_insights_json(self) -> None:
        gateway = _gateway(AdvisoryResult.success('{"marketValue": "مناسب"}'))
        assert await nlp.generate_market_insights(gateway, {"city": "الرياض"}) == {"marketValue": "مناسب"}

    @pytest.mark.asyncio
    async def test_market_insights_raw_text(self) -> None:
        gateway = _gateway(AdvisoryResult.success("تحليل نصي"))
        assert await nlp.generate_market_insights(gateway, {"city": "الرياض"}) == {"rawAnalysis": "تحليل نصي"}

    @pytest.mark.asyncio
    async def test_market_insights_failure(self) -> None:
        gateway = _gateway(AdvisoryResult.failure(AdvisoryErrorKind.RATE_LIMITED))
        assert await nlp.generate_market_insights(gateway, {"city": "الرياض"}) == {
            "error": nlp.MARKET_INSIGHTS_FAILURE,
        }

    @pytest.mark.asyncio
    async def test_tactics_failure_text(self) -> None:
        gateway = _gateway(AdvisoryResult.failure(AdvisoryErrorKind.UNKNOWN))
        assert await nlp.analyze_negotiation_tactics(gateway, "حوار") == nlp.TACTICS_FAILURE


# ── 示例市场数据 ──────────────────────────────────────────────────────

class TestMarketData:

    def test_insights_per_city(self) -> None:
        assert market.market_insights("الرياض", "شقة")["averagePrice"] == 1200000
        assert market.market_insights("جدة", "شقة")["yearlyChange"] == 2.8
        assert market.market_insights("أبها", "شقة")["averagePrice"] == 850000

    def test_price_prediction(self) -> None:
        prediction = market.price_prediction("الرياض", "فيلا")
        assert prediction["estimatedValue"] == 1250000
        assert prediction["confidenceInterval"] == {"min": 1180000, "max": 1320000}
        assert "فيلا" in prediction["similarProperties"][0]["description"]

    def test_trends_cover_twelve_months(self) -> None:
        trends = market.market_trends("الرياض", "شقة", rng=random.Random(1), today=date(2024, 3, 15))
        points = trends["trendPoints"]

        assert len(points) == 12
        assert points[0]["date"] == "2023-04"
        assert points[-1]["date"] == "2024-03"
        for i, point in enumerate(points):
            base = 1200000 * (1 + 0.003 * i)
            assert abs(point["price"] - base) <= 1200000 * 0.02 + 1
        assert trends["overallChange"]["absolute"] == points[-1]["price"] - points[0]["price"]
        assert trends["pricePerSquareMeter"] == 10000
