"""
Rule-based tax tagging for ledger transactions.

Rules are checked in order and the first match wins; the order is part of
the contract (e.g. "machinery" hits the transfer rule through "ach" before
the capex rule is reached), so results stay reproducible across runs.
"""

import math
from typing import Optional

from .schemas import TaxTagResult

SALES_TAX = ["sales tax", "salestax"]
ESTIMATED_TAX = ["estimated tax", "quarterly tax", "irs es", "form 1040-es", "1040-es"]
PAYROLL_TAX = [
    "payroll tax",
    "fica",
    "medicare",
    "futa",
    "suta",
    "941",
    "940",
    "withholding",
    "tax deposit",
]
PAYROLL_WAGES = ["payroll", "wages", "salary", "gusto", "adp", "paychex"]
TRANSFER = ["transfer", "bank transfer", "ach", "wire", "sweep", "internal transfer"]
OWNER_DRAW = ["owner draw", "owners draw", "owner withdrawal", "draw"]
CAPEX = ["equipment", "asset", "capex", "capital expense", "computer", "laptop", "machinery"]
NON_DEDUCTIBLE_SIGNALS = ["personal", "penalty", "fine"]
MEAL_SIGNALS = ["meal", "meals", "restaurant"]


def _norm(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _has_any(text: str, needles: list[str]) -> bool:
    return any(needle in text for needle in needles)


def _amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def _clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def _result(category: str, treatment: str, confidence: float, reasoning: str) -> TaxTagResult:
    return TaxTagResult(
        tax_category=category,
        tax_treatment=treatment,
        confidence_score=_clamp01(confidence),
        reasoning=reasoning,
    )


def classify_tax_tag(
    description: Optional[str] = None,
    merchant: Optional[str] = None,
    category: Optional[str] = None,
    amount=0,
) -> TaxTagResult:
    """Classify a transaction into a tax category and treatment. Pure and deterministic."""
    text = f"{_norm(description)} {_norm(merchant)} {_norm(category)}".strip()
    amt = _amount(amount)

    if not text:
        return _result("uncategorized", "review", 0.2, "Missing description/merchant/category.")

    # Sales tax: collected (income side) vs paid (liability payment)
    if _has_any(text, SALES_TAX):
        if amt >= 0:
            return _result("sales_tax_collected", "review", 0.92, "Looks like sales tax collected.")
        return _result("sales_tax_paid", "review", 0.92, "Looks like sales tax payment.")

    if _has_any(text, ESTIMATED_TAX):
        return _result("owner_estimated_tax", "review", 0.9, "Looks like an estimated tax payment.")

    if _has_any(text, PAYROLL_TAX):
        return _result(
            "payroll_taxes",
            "deductible",
            0.88,
            "Looks like payroll tax deposit/withholding payment.",
        )

    # Income that mentions payroll is not wages; fall through
    if _has_any(text, PAYROLL_WAGES) and amt < 0:
        return _result("payroll_wages", "deductible", 0.82, "Looks like payroll wages.")

    if "loan" in text and "principal" in text:
        return _result("loan_principal", "review", 0.85, "Loan principal repayment (not deductible).")
    if "loan" in text and "interest" in text:
        return _result("loan_interest", "deductible", 0.85, "Loan interest (often deductible).")

    if _has_any(text, TRANSFER):
        return _result("transfer", "review", 0.85, "Transfer (not income/expense).")

    if _has_any(text, OWNER_DRAW):
        return _result("owner_draw", "non_deductible", 0.9, "Owner draw (not deductible).")

    if _has_any(text, CAPEX):
        return _result("capex", "capitalized", 0.8, "Capital purchase (often capitalized).")

    # Generic defaults
    if amt >= 0:
        return _result(
            "gross_receipts", "review", 0.7, "Defaulted positive amount to gross receipts."
        )

    if _has_any(text, NON_DEDUCTIBLE_SIGNALS):
        return _result("uncategorized", "non_deductible", 0.6, "Possible non-deductible expense.")
    if _has_any(text, MEAL_SIGNALS):
        return _result("uncategorized", "partial_50", 0.6, "Possible meals (often partial).")

    return _result(
        "uncategorized",
        "deductible",
        0.55,
        "Defaulted negative amount to deductible expense but needs review.",
    )
