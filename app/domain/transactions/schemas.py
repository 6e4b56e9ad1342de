"""Transaction domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

TaxCategory = Literal[
    "gross_receipts",
    "sales_tax_collected",
    "sales_tax_paid",
    "payroll_wages",
    "payroll_taxes",
    "loan_principal",
    "loan_interest",
    "capex",
    "owner_draw",
    "owner_estimated_tax",
    "transfer",
    "uncategorized",
]

TaxTreatment = Literal["deductible", "non_deductible", "partial_50", "capitalized", "review"]


class TaxTagInput(BaseModel):
    """One transaction to classify. Amount is signed (negative = expense)."""

    description: Optional[str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    amount: float = 0


class TaxTagResult(BaseModel):
    tax_category: TaxCategory
    tax_treatment: TaxTreatment
    confidence_score: float = Field(ge=0, le=1)
    reasoning: str


class ClassifyTaxRequest(BaseModel):
    transactions: list[TaxTagInput] = []


class ClassifiedTaxTag(TaxTagResult):
    tax_reason: str


class ClassifyTaxResponse(BaseModel):
    results: list[ClassifiedTaxTag]
