# Insights router: budget insights and seasonal plans.
# Created: 2026-10-09

from __future__ import annotations

from fastapi import APIRouter, Depends

from fincoach.api.deps import get_services
from fincoach.api.v1.schemas.insights import (
    GeneralInsightsRequest,
    InsightsResponse,
    SeasonalPlanRequest,
)
from fincoach.services import Services

router = APIRouter(tags=["Insights"])


@router.post("/insights", response_model=InsightsResponse)
async def general_insights(body: GeneralInsightsRequest, services: Services = Depends(get_services)):
    insights = await services.advisor.generate_general_insights(
        body.total_budget, body.spent_amount, body.category_breakdown
    )
    return InsightsResponse(insights=insights)


@router.post("/insights/seasonal", response_model=InsightsResponse)
async def seasonal_plan(body: SeasonalPlanRequest, services: Services = Depends(get_services)):
    insights = await services.advisor.generate_seasonal_plan(
        body.occasion, body.previous_spending, body.current_budget
    )
    return InsightsResponse(insights=insights)
