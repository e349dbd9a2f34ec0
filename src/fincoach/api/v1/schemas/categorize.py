# Categorization schemas.
# Created: 2026-10-09

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from fincoach.categorize.categories import Transaction


class CategorizeRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=1000)
    amount: Decimal = Decimal("0")
    categories: list[str] | None = None


class CategorizeResponse(BaseModel):
    category: str


class BatchCategorizeRequest(BaseModel):
    transactions: list[Transaction] = Field(..., max_length=200)


class BatchCategorizeResponse(BaseModel):
    categories: list[str]


class CategoryListResponse(BaseModel):
    categories: list[str]
