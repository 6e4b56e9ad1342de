"""Transaction router - FastAPI endpoints for transaction tooling"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ...auth import AuthUser, get_current_user
from .schemas import ClassifiedTaxTag, ClassifyTaxRequest, ClassifyTaxResponse
from .tax_tagger import classify_tax_tag

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("/classify-tax", response_model=ClassifyTaxResponse)
async def classify_tax(
    data: ClassifyTaxRequest,
    current_user: AuthUser = Depends(get_current_user),
):
    """Tag a batch of transactions with tax category and treatment (rules only)"""
    if not data.transactions:
        raise HTTPException(status_code=400, detail="transactions[] is required")

    results = []
    for tx in data.transactions:
        tag = classify_tax_tag(
            description=tx.description,
            merchant=tx.merchant,
            category=tx.category,
            amount=tx.amount,
        )
        results.append(ClassifiedTaxTag(**tag.model_dump(), tax_reason=tag.reasoning))

    logger.info(f"🧾 Classified {len(results)} transactions for user {current_user.id}")
    return ClassifyTaxResponse(results=results)
