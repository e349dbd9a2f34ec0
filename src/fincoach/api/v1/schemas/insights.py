# Insight schemas.
# Created: 2026-10-09

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class GeneralInsightsRequest(BaseModel):
    total_budget: Decimal
    spent_amount: Decimal
    category_breakdown: dict[str, Decimal] = {}


class SeasonalPlanRequest(BaseModel):
    occasion: str = Field(..., min_length=1, max_length=200)
    previous_spending: Decimal = Decimal("0")
    current_budget: Decimal


class InsightsResponse(BaseModel):
    insights: list[str]
