"""
nego_chat.api.analysis
~~~~~~~~~~~~~~~~~~~~~~

分析类 REST 接口：谈判建议、情感分析、反欺诈、实体抽取、谈判战术。

走 AI 网关的接口在网关不可用时照样返回 200，``data`` 中携带降级文本；
纯规则接口不依赖外部服务。
"""
from fastapi import APIRouter, Depends, Request

from nego_chat.analysis import fraud, nlp
from nego_chat.api.deps import get_gateway
from nego_chat.core.rate_limit import limiter
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.schemas.analysis import (
    AdviceData,
    ConversationRequest,
    EntityExtraction,
    FraudRequest,
    FraudResponseData,
    NegotiationRequest,
    SellerAnalysis,
    SellerHistoryRequest,
    SentimentResult,
    TacticsData,
    TextFraudAnalysis,
    TextRequest,
)
from nego_chat.schemas.api_response import ApiResponse

router: APIRouter = APIRouter()


# ── AI 网关 ───────────────────────────────────────────────────────────

@router.post("/negotiation", summary="获取谈判建议", response_model=ApiResponse[AdviceData])
@limiter.limit("5/second")
async def negotiation_advice(
    request: Request,
    body: NegotiationRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    result = await gateway.negotiation_advice(body.situation)
    return ApiResponse.ok(data=AdviceData(advice=result.display_text))


@router.post("/analyze-sentiment", summary="情感分析", response_model=ApiResponse[SentimentResult])
@limiter.limit("5/second")
async def analyze_sentiment(
    request: Request,
    body: TextRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    return ApiResponse.ok(data=await nlp.analyze_sentiment(gateway, body.text))


@router.post("/analyze-negotiation", summary="分析谈判对话", response_model=ApiResponse[TacticsData])
@limiter.limit("5/second")
async def analyze_negotiation(
    request: Request,
    body: ConversationRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    analysis = await nlp.analyze_negotiation_tactics(gateway, body.conversation)
    return ApiResponse.ok(data=TacticsData(analysis=analysis))


@router.post("/negotiation-tactics", summary="识别谈判战术", response_model=ApiResponse[TacticsData])
@limiter.limit("5/second")
async def negotiation_tactics(
    request: Request,
    body: TextRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    analysis = await nlp.analyze_negotiation_tactics(gateway, body.text)
    return ApiResponse.ok(data=TacticsData(analysis=analysis))


# ── 反欺诈 ────────────────────────────────────────────────────────────

@router.post("/detect-fraud", summary="房源欺诈检测", response_model=ApiResponse[FraudResponseData])
@limiter.limit("5/second")
async def detect_fraud(
    request: Request,
    body: FraudRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    """规则引擎打分；风险分数超过阈值时再让 AI 生成详细报告。"""
    analysis = fraud.detect_fraud(body.listing)
    report = None
    if analysis.risk_score > fraud.REPORT_THRESHOLD:
        report = await fraud.generate_fraud_report(gateway, body.listing, analysis)
    return ApiResponse.ok(data=FraudResponseData(fraud_analysis=analysis, detailed_report=report))


@router.post("/detect-fraud-text", summary="文本欺诈检测", response_model=ApiResponse[TextFraudAnalysis])
@limiter.limit("10/second")
async def detect_fraud_text(request: Request, body: TextRequest):
    return ApiResponse.ok(data=nlp.detect_text_fraud(body.text))


@router.post("/analyze-seller", summary="卖家信誉分析", response_model=ApiResponse[SellerAnalysis])
@limiter.limit("10/second")
async def analyze_seller(request: Request, body: SellerHistoryRequest):
    return ApiResponse.ok(data=fraud.analyze_seller(body.history))


@router.post("/extract-entities", summary="实体抽取", response_model=ApiResponse[EntityExtraction])
@limiter.limit("10/second")
async def extract_entities(request: Request, body: TextRequest):
    return ApiResponse.ok(data=nlp.extract_entities(body.text))
