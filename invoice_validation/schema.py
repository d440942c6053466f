"""
Data models and schema definitions for invoices and validation output.

All external components (validator, API, CLI) should use these Pydantic
models to ensure a consistent contract. Field names are snake_case in Python
and camelCase on the wire (``invoiceNumber``, ``isValid``, ...); both
spellings are accepted on input.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializationInfo,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

Impact = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvoiceLineItem(CamelModel):
    """
    Represents a single line item in an invoice.
    """

    description: Optional[str] = Field(
        default=None, description="Human-readable description of the line item."
    )
    quantity: Optional[float] = Field(
        default=None, description="Quantity of the item or service."
    )
    unit_price: Optional[float] = Field(
        default=None, description="Unit price for the item or service."
    )
    total_price: Optional[float] = Field(
        default=None, description="Total for this line (quantity * unit_price)."
    )
    tax_rate: Optional[float] = Field(
        default=None, description="Tax rate applied to this line, if known."
    )


class InvoiceData(CamelModel):
    """
    Invoice fields as produced by the document-extraction step.

    Every field is optional because extraction may not populate everything.
    The validator is responsible for enforcing completeness and business
    rules; this model only describes the shape.
    """

    invoice_number: Optional[str] = Field(
        default=None, description="Invoice identifier as shown on the document."
    )
    invoice_date: Optional[Union[date, str]] = Field(
        default=None, description="Invoice issue date, ISO formatted (YYYY-MM-DD)."
    )
    due_date: Optional[Union[date, str]] = Field(
        default=None, description="Payment due date, ISO formatted (YYYY-MM-DD)."
    )
    total_amount: Optional[float] = Field(
        default=None, description="Total amount including tax."
    )
    tax_amount: Optional[float] = Field(
        default=None, description="Total tax amount."
    )
    supplier_name: Optional[str] = Field(
        default=None, description="Name of the supplier issuing the invoice."
    )
    bill_to: Optional[str] = Field(
        default=None, description="Name of the billed party."
    )
    supplier_address: Optional[str] = Field(default=None)
    receiver_address: Optional[str] = Field(default=None)
    currency: Optional[str] = Field(
        default=None, description="Currency code, e.g. 'USD', 'EUR'."
    )
    line_items: Optional[List[InvoiceLineItem]] = Field(
        default=None, description="List of line items on the invoice."
    )


class InvoiceValidationError(CamelModel):
    """
    A disqualifying defect in the invoice data.
    """

    field: str = Field(..., description="Field name the error refers to.")
    code: str = Field(..., description="Short machine-readable error code.")
    message: str = Field(..., description="Human-readable description of the error.")
    severity: Literal["error"] = "error"
    suggested_fix: Optional[str] = Field(
        default=None, description="Optional hint on how to fix the value."
    )


class InvoiceValidationWarning(CamelModel):
    """
    A non-disqualifying concern about the invoice data.
    """

    field: str
    code: str
    message: str
    impact: Impact = "low"


class ValidationMetadata(CamelModel):
    rules_applied: List[str] = Field(default_factory=list)
    business_logic_checks: List[str] = Field(default_factory=list)
    data_corrections: List[str] = Field(default_factory=list)


class ValidationResult(CamelModel):
    """
    Validation result for a single invoice.
    """

    is_valid: bool = Field(..., description="True if the invoice has no errors.")
    errors: List[InvoiceValidationError] = Field(default_factory=list)
    warnings: List[InvoiceValidationWarning] = Field(default_factory=list)
    validation_score: float = Field(
        ..., ge=0, le=100, description="Heuristic confidence score from 0 to 100."
    )
    correlation_id: str = Field(..., description="Identifier used in related logs.")
    corrected_data: Optional[InvoiceData] = Field(
        default=None,
        description="Suggested replacement values, when auto-correction is enabled.",
    )
    metadata: ValidationMetadata = Field(default_factory=ValidationMetadata)

    @field_serializer("corrected_data")
    def serialize_corrected_data(
        self, v: Optional[InvoiceData], info: SerializationInfo
    ) -> Optional[Dict[str, Any]]:
        # only the corrected fields, not the whole invoice shape
        if v is None:
            return None
        return v.model_dump(
            mode=info.mode, by_alias=bool(info.by_alias), exclude_unset=True
        )


class RuleOutcome(CamelModel):
    """
    Partial result returned by a business rule.
    """

    errors: List[InvoiceValidationError] = Field(default_factory=list)
    warnings: List[InvoiceValidationWarning] = Field(default_factory=list)
    corrected_data: Optional[Dict[str, Any]] = None

    @field_validator("corrected_data", mode="before")
    @classmethod
    def coerce_corrected_data(cls, v):
        if isinstance(v, BaseModel):
            return v.model_dump(exclude_none=True)
        return v

    def is_empty(self) -> bool:
        return not (self.errors or self.warnings or self.corrected_data)


class CodeCount(CamelModel):
    code: str
    count: int


class ValidationStatistics(CamelModel):
    """
    Aggregate statistics over a collection of validation results.
    """

    total_validated: int = Field(..., description="Number of results summarized.")
    valid_count: int = Field(..., description="Results without errors.")
    invalid_count: int = Field(..., description="Results with at least one error.")
    average_score: float = Field(
        ..., description="Mean validation score, 0 for an empty collection."
    )
    common_errors: List[CodeCount] = Field(
        default_factory=list,
        description="Error codes ranked by number of occurrences.",
    )
    common_warnings: List[CodeCount] = Field(
        default_factory=list,
        description="Warning codes ranked by number of occurrences.",
    )


class BulkValidationReport(CamelModel):
    """
    Structure used when returning a full validation report for many invoices.
    """

    results: List[ValidationResult] = Field(
        default_factory=list, description="Per-invoice validation results."
    )
    statistics: ValidationStatistics = Field(
        ..., description="High-level validation statistics."
    )


_FIELD_ALIASES = {to_camel(name): name for name in InvoiceData.model_fields}


def resolve_field_name(name: str) -> str:
    """
    Map a camelCase wire name to its InvoiceData field; snake_case passes through.
    """
    return _FIELD_ALIASES.get(name, name)
