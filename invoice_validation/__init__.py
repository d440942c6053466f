"""
Top-level package for the Invoice Validation Service.

This package exposes:
- Invoice data contracts (Pydantic models)
- Invoice validation, scoring and statistics
- CLI entrypoints
- HTTP API (FastAPI)
"""

from .config import ValidationConfig
from .errors import AppError, InvoiceProcessingError
from .rules import BusinessRule
from .schema import InvoiceData, RuleOutcome, ValidationResult, ValidationStatistics
from .validator import get_validation_statistics, validate_invoice, validate_invoices

__all__ = [
    "AppError",
    "BusinessRule",
    "InvoiceData",
    "InvoiceProcessingError",
    "RuleOutcome",
    "ValidationConfig",
    "ValidationResult",
    "ValidationStatistics",
    "get_validation_statistics",
    "validate_invoice",
    "validate_invoices",
]
