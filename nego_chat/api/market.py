"""
nego_chat.api.market
~~~~~~~~~~~~~~~~~~~~

市场数据 REST 接口。除 ``/market-insights/ai`` 外都返回固定的演示数据。
"""
from typing import Any

from fastapi import APIRouter, Depends, Request

from nego_chat.analysis import market, nlp
from nego_chat.api.deps import get_gateway
from nego_chat.core.rate_limit import limiter
from nego_chat.llm.gateway import AdvisoryGateway
from nego_chat.schemas.analysis import MarketQuery, PropertyDetailsRequest
from nego_chat.schemas.api_response import ApiResponse

router: APIRouter = APIRouter()


@router.get("/market-data", summary="市场概览", response_model=ApiResponse[dict[str, Any]])
@limiter.limit("10/second")
async def get_market_data(request: Request):
    return ApiResponse.ok(data=market.market_data())


@router.post("/market-insights", summary="市场洞察", response_model=ApiResponse[dict[str, Any]])
@limiter.limit("10/second")
async def get_market_insights(request: Request, body: MarketQuery):
    return ApiResponse.ok(data=market.market_insights(body.location, body.property_type))


@router.post("/market-insights/ai", summary="AI 市场洞察", response_model=ApiResponse[dict[str, Any]])
@limiter.limit("5/second")
async def get_ai_market_insights(
    request: Request,
    body: PropertyDetailsRequest,
    gateway: AdvisoryGateway = Depends(get_gateway),
):
    """根据房源详情让模型生成结构化市场分析。"""
    return ApiResponse.ok(data=await nlp.generate_market_insights(gateway, body.property_details))


@router.post("/price-prediction", summary="价格预测", response_model=ApiResponse[dict[str, Any]])
@limiter.limit("10/second")
async def get_price_prediction(request: Request, body: MarketQuery):
    return ApiResponse.ok(data=market.price_prediction(body.location, body.property_type))


@router.post("/market-trends", summary="价格走势", response_model=ApiResponse[dict[str, Any]])
@limiter.limit("10/second")
async def get_market_trends(request: Request, body: MarketQuery):
    return ApiResponse.ok(data=market.market_trends(body.location, body.property_type))
