"""
nego_chat.schemas.analysis
~~~~~~~~~~~~~~~~~~~~~~~~~~

REST 分析接口（谈判、情感、反欺诈、实体抽取、市场数据）的请求/响应模型。
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Sentiment = Literal["positive", "negative", "neutral"]


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


# ── 请求体 ────────────────────────────────────────────────────────────

class NegotiationRequest(_Request):
    situation: str = Field(..., min_length=1, max_length=4000, description="需要分析的谈判处境")


class TextRequest(_Request):
    text: str = Field(..., min_length=1, max_length=4000, description="待分析文本")


class ConversationRequest(_Request):
    conversation: str = Field(..., min_length=1, max_length=8000, description="买卖双方的对话记录")


class PropertyListing(_Request):
    """房源信息。"""

    description: str = Field(default="", description="房源描述")
    price: float | None = Field(default=None, ge=0, description="报价")
    property_type: str | None = Field(default=None, alias="propertyType", description="房产类型，如 شقة")
    location: str | None = Field(default=None, description="城市")
    seller_info: dict[str, Any] | None = Field(default=None, alias="sellerInfo")


class FraudRequest(_Request):
    listing: PropertyListing


class MarketQuery(_Request):
    location: str = Field(default="الرياض", description="城市")
    property_type: str = Field(default="شقة", alias="propertyType", description="房产类型")
    timeframe: str | None = Field(default=None, description="时间范围（保留字段）")


class PropertyDetailsRequest(_Request):
    property_details: dict[str, Any] = Field(..., alias="propertyDetails", min_length=1)


class StoreMessageRequest(_Request):
    message: str = Field(..., min_length=1, max_length=2000)
    room_id: str = Field(default="general", alias="roomId")


# ── 反欺诈 ────────────────────────────────────────────────────────────

class PriceAnalysis(BaseModel):
    is_anomaly: bool
    reason: str
    severity: str | None = None
    market_min: float
    market_max: float
    percentage_below_market: int | None = None
    percentage_above_market: int | None = None


class FraudIndicator(BaseModel):
    type: str
    description: str
    severity: str
    details: PriceAnalysis | None = None


class FraudAnalysis(BaseModel):
    is_fraudulent: bool = False
    fraud_category: str | None = None
    risk_score: int = 0
    risk_level: str = "منخفض"
    indicators: list[FraudIndicator] = Field(default_factory=list)


class FraudResponseData(BaseModel):
    fraud_analysis: FraudAnalysis
    detailed_report: str | None = None


class TextFraudIndicator(BaseModel):
    type: str
    confidence: float
    description: str


class TextFraudAnalysis(BaseModel):
    indicators: list[TextFraudIndicator] = Field(default_factory=list)
    overall_risk: float = 0.0
    risk_level: str = "منخفض"


class SellerListing(_Request):
    fraud_analysis: FraudAnalysis | None = Field(default=None, alias="fraudAnalysis")
    ownership_period: float | None = Field(default=None, alias="ownershipPeriod", description="持有月数")


class SellerHistoryRequest(_Request):
    history: list[SellerListing] = Field(default_factory=list)


class SuspiciousPatterns(BaseModel):
    short_ownership: bool
    price_anomalies: bool
    multiple_listings: bool


class SellerAnalysis(BaseModel):
    risk_score: int
    risk_level: str
    suspicious_listings_count: int
    suspicious_patterns: SuspiciousPatterns


# ── NLP ───────────────────────────────────────────────────────────────

class SentimentResult(BaseModel):
    sentiment: Sentiment = "neutral"
    score: int = Field(default=5, ge=1, le=10)
    explanation: str = ""


class EntityExtraction(BaseModel):
    locations: list[str] = Field(default_factory=list)
    prices: list[str] = Field(default_factory=list)
    areas: list[str] = Field(default_factory=list)
    property_types: list[str] = Field(default_factory=list)


class AdviceData(BaseModel):
    advice: str


class TacticsData(BaseModel):
    analysis: str
