"""
Validation score: a 0-100 heuristic confidence in the extracted invoice.
"""

from __future__ import annotations

from typing import List

from .schema import InvoiceData, InvoiceValidationError, InvoiceValidationWarning

ERROR_PENALTY = 30
WARNING_PENALTIES = {"high": 10, "medium": 5, "low": 2}

# Any result with errors stays below this, however complete the record is.
ERROR_SCORE_CEILING = 45

COMPLETENESS_WEIGHT = 10
TRACKED_FIELDS = (
    "invoice_number",
    "total_amount",
    "due_date",
    "invoice_date",
    "supplier_name",
    "bill_to",
    "currency",
)


def calculate_validation_score(
    invoice: InvoiceData,
    errors: List[InvoiceValidationError],
    warnings: List[InvoiceValidationWarning],
) -> float:
    score = 100.0
    score -= ERROR_PENALTY * len(errors)
    score -= sum(WARNING_PENALTIES[w.impact] for w in warnings)

    missing = sum(
        1 for name in TRACKED_FIELDS if getattr(invoice, name) in (None, "")
    )
    score -= COMPLETENESS_WEIGHT * missing / len(TRACKED_FIELDS)

    if errors:
        score = min(score, ERROR_SCORE_CEILING)
    return round(max(0.0, min(100.0, score)), 2)
