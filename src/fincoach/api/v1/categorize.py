# Categorization router.
# Created: 2026-10-09

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from fincoach.api.deps import get_services
from fincoach.api.v1.schemas.categorize import (
    BatchCategorizeRequest,
    BatchCategorizeResponse,
    CategorizeRequest,
    CategorizeResponse,
    CategoryListResponse,
)
from fincoach.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Categorize"])


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(services: Services = Depends(get_services)):
    return CategoryListResponse(categories=list(services.categorizer.categories))


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize(body: CategorizeRequest, services: Services = Depends(get_services)):
    """Categorize one transaction. Always answers with a category."""
    category = await services.categorizer.categorize(
        body.description, body.amount, body.categories or None
    )
    return CategorizeResponse(category=category)


@router.post("/categorize/batch", response_model=BatchCategorizeResponse)
async def categorize_batch(
    body: BatchCategorizeRequest, services: Services = Depends(get_services)
):
    """Categorize many transactions with one request."""
    categories = await services.batch_categorizer.categorize_all(body.transactions)
    return BatchCategorizeResponse(categories=categories)
