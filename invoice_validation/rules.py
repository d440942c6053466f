"""
Field checks and business rules applied by the invoice validator.

Field checks run first, in a fixed order, and append their findings to the
``errors``/``warnings`` lists they are given. Business rules are
``BusinessRule`` objects: the built-in ones below and any supplied by the
caller go through the same evaluation loop.

All checks work on an ``InvoiceData`` snapshot built by ``snapshot_invoice``.
The snapshot keeps the raw values, so a wrongly typed field is still visible
here and gets reported instead of failing model validation.
"""

from __future__ import annotations

import inspect
import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from numbers import Real
from typing import TYPE_CHECKING, Any, Callable, List, Literal, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .schema import (
    InvoiceData,
    InvoiceValidationError,
    InvoiceValidationWarning,
    RuleOutcome,
)

if TYPE_CHECKING:
    from .config import ValidationConfig

INVOICE_NUMBER_MAX_LENGTH = 50
INVOICE_NUMBER_PATTERN = re.compile(r"[A-Z0-9\-_#]+", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r"[A-Z]{3}")
TEXT_FIELDS = ("supplier_name", "bill_to", "supplier_address", "receiver_address")
TEXT_FIELD_MAX_LENGTH = 500

MAX_PAYMENT_TERMS_DAYS = 90
MAX_TAX_RATE = 0.5
LINE_ITEMS_TOLERANCE = 0.01


# ---------------- Reading input ----------------


def read_value(source: Any, name: str) -> Any:
    """
    Read ``name`` from a mapping or an attribute-bearing object.

    The camelCase spelling is tried when the snake_case one is missing.
    Missing values come back as None. Errors raised by the source itself
    (a failing property, a broken mapping) propagate.
    """
    alias = to_camel(name)
    if isinstance(source, Mapping):
        value = source.get(name)
        if value is None and alias != name:
            value = source.get(alias)
        return value
    value = _read_attribute(source, name)
    if value is None and alias != name:
        value = _read_attribute(source, alias)
    return value


def _read_attribute(source: Any, name: str) -> Any:
    """
    Return the attribute, or None when ``source`` does not define it.

    An AttributeError raised by an accessor that does exist is not treated
    as a missing value.
    """
    try:
        inspect.getattr_static(source, name)
    except AttributeError:
        # dynamic attributes (__getattr__) signal absence with AttributeError
        return getattr(source, name, None)
    return getattr(source, name)


def snapshot_invoice(data: Any) -> InvoiceData:
    """
    Copy every invoice field out of ``data`` without validating it.
    """
    values = {name: read_value(data, name) for name in InvoiceData.model_fields}
    items = values["line_items"]
    if isinstance(items, (list, tuple)):
        values["line_items"] = list(items)
    return InvoiceData.model_construct(**values)


def is_present(value: Any) -> bool:
    """
    True unless the value is None or an empty string.
    """
    return value is not None and not (isinstance(value, str) and value == "")


def as_number(value: Any) -> Optional[float]:
    """
    Return ``value`` as a finite float, or None if it is not a usable number.
    """
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def parse_date(value: Any) -> Optional[date]:
    """
    Parse ISO dates (``YYYY-MM-DD``) and ISO timestamps.
    Already-parsed date objects are accepted as-is.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _label(field: str) -> str:
    """Human-readable name for a field, e.g. ``Due date``."""
    return field.replace("_", " ").capitalize()


# ---------------- Field checks ----------------


def check_required_fields(
    invoice: InvoiceData,
    config: ValidationConfig,
    errors: List[InvoiceValidationError],
    warnings: List[InvoiceValidationWarning],
) -> None:
    """
    Report every configured required field that is missing or empty.
    """
    for field in config.required_fields:
        if not is_present(getattr(invoice, field)):
            errors.append(
                InvoiceValidationError(
                    field=field,
                    code="REQUIRED_FIELD_MISSING",
                    message=f"Required field '{field}' is missing or empty.",
                    suggested_fix=f"Provide a valid value for {field}.",
                )
            )


def check_field_formats(
    invoice: InvoiceData,
    config: ValidationConfig,
    errors: List[InvoiceValidationError],
    warnings: List[InvoiceValidationWarning],
) -> None:
    """
    Check the invoice number, currency code and free-text field lengths.
    """
    number = invoice.invoice_number
    if number is not None:
        if not isinstance(number, str) or not number.strip():
            errors.append(
                InvoiceValidationError(
                    field="invoice_number",
                    code="INVALID_FORMAT",
                    message="Invoice number must be a non-empty string.",
                )
            )
        elif len(number) > INVOICE_NUMBER_MAX_LENGTH:
            errors.append(
                InvoiceValidationError(
                    field="invoice_number",
                    code="INVALID_LENGTH",
                    message=(
                        "Invoice number is too long "
                        f"(maximum {INVOICE_NUMBER_MAX_LENGTH} characters)."
                    ),
                )
            )
        elif not INVOICE_NUMBER_PATTERN.fullmatch(number.strip()):
            warnings.append(
                InvoiceValidationWarning(
                    field="invoice_number",
                    code="UNUSUAL_FORMAT",
                    message="Invoice number contains unusual characters.",
                    impact="low",
                )
            )

    currency = invoice.currency
    if is_present(currency) and not (
        isinstance(currency, str) and CURRENCY_PATTERN.fullmatch(currency)
    ):
        warnings.append(
            InvoiceValidationWarning(
                field="currency",
                code="INVALID_CURRENCY_FORMAT",
                message="Currency should be a 3-letter ISO code (e.g. USD, EUR).",
                impact="low",
            )
        )

    for field in TEXT_FIELDS:
        value = getattr(invoice, field)
        if isinstance(value, str) and len(value) > TEXT_FIELD_MAX_LENGTH:
            warnings.append(
                InvoiceValidationWarning(
                    field=field,
                    code="FIELD_TOO_LONG",
                    message=f"{field} is unusually long ({len(value)} characters).",
                    impact="low",
                )
            )


def _checked_date(
    invoice: InvoiceData, field: str, errors: List[InvoiceValidationError]
) -> Optional[date]:
    """
    Parse a date field, recording INVALID_DATE_FORMAT when it cannot be read.
    """
    value = getattr(invoice, field)
    if not is_present(value):
        return None
    parsed = parse_date(value)
    if parsed is None:
        errors.append(
            InvoiceValidationError(
                field=field,
                code="INVALID_DATE_FORMAT",
                message=f"{_label(field)} is not a valid date.",
                suggested_fix="Use a valid date format (YYYY-MM-DD).",
            )
        )
    return parsed


def check_dates(
    invoice: InvoiceData,
    config: ValidationConfig,
    errors: List[InvoiceValidationError],
    warnings: List[InvoiceValidationWarning],
) -> None:
    """
    Validate invoice and due dates against the reference date.

    Future invoice dates are errors when disallowed. Old invoices and distant
    due dates are warnings.
    """
    today = config.today()

    invoice_date = _checked_date(invoice, "invoice_date", errors)
    if invoice_date is not None:
        if not config.allow_future_invoice_dates and invoice_date > today:
            errors.append(
                InvoiceValidationError(
                    field="invoice_date",
                    code="FUTURE_INVOICE_DATE",
                    message="Invoice date cannot be in the future.",
                )
            )
        age = (today - invoice_date).days
        if config.max_invoice_age is not None and age > config.max_invoice_age:
            warnings.append(
                InvoiceValidationWarning(
                    field="invoice_date",
                    code="OLD_INVOICE_DATE",
                    message=(
                        f"Invoice date is older than {config.max_invoice_age} days."
                    ),
                    impact="medium",
                )
            )

    due_date = _checked_date(invoice, "due_date", errors)
    if due_date is not None and not config.allow_future_due_dates:
        if (due_date - today).days > config.max_due_date_future:
            warnings.append(
                InvoiceValidationWarning(
                    field="due_date",
                    code="FAR_FUTURE_DUE_DATE",
                    message=(
                        "Due date is more than "
                        f"{config.max_due_date_future} days in the future."
                    ),
                    impact="medium",
                )
            )


def _invalid_amount(field: str) -> InvoiceValidationError:
    """INVALID_AMOUNT_FORMAT error for a field that is not a usable number."""
    return InvoiceValidationError(
        field=field,
        code="INVALID_AMOUNT_FORMAT",
        message=f"{_label(field)} must be a valid number.",
    )


def check_amounts(
    invoice: InvoiceData,
    config: ValidationConfig,
    errors: List[InvoiceValidationError],
    warnings: List[InvoiceValidationWarning],
) -> None:
    """
    Check that the total is a number within the configured range and that
    the tax amount is not negative.
    """
    if is_present(invoice.total_amount):
        total = as_number(invoice.total_amount)
        if total is None:
            errors.append(_invalid_amount("total_amount"))
        else:
            if total < 0:
                errors.append(
                    InvoiceValidationError(
                        field="total_amount",
                        code="NEGATIVE_AMOUNT",
                        message="Total amount cannot be negative.",
                    )
                )
            if total < config.min_amount:
                errors.append(
                    InvoiceValidationError(
                        field="total_amount",
                        code="AMOUNT_TOO_SMALL",
                        message=f"Total amount is below minimum ({config.min_amount}).",
                    )
                )
            if total > config.max_amount:
                warnings.append(
                    InvoiceValidationWarning(
                        field="total_amount",
                        code="AMOUNT_VERY_LARGE",
                        message=f"Total amount is unusually large ({total}).",
                        impact="medium",
                    )
                )

    if is_present(invoice.tax_amount):
        tax = as_number(invoice.tax_amount)
        if tax is None:
            errors.append(_invalid_amount("tax_amount"))
        elif tax < 0:
            errors.append(
                InvoiceValidationError(
                    field="tax_amount",
                    code="NEGATIVE_AMOUNT",
                    message="Tax amount cannot be negative.",
                )
            )


FIELD_CHECKS = [
    ("required_fields", check_required_fields),
    ("field_formats", check_field_formats),
    ("date_validation", check_dates),
    ("amount_validation", check_amounts),
]


# ---------------- Business rules ----------------


class BusinessRule(BaseModel):
    """
    A named cross-field check.

    ``check`` receives the invoice snapshot and returns a ``RuleOutcome``, an
    equivalent mapping or object (such as a ``ValidationResult``), or None
    when the rule has nothing to report.
    """

    name: str
    description: str = ""
    check: Callable[[InvoiceData], Any]
    severity: Literal["error", "warning"] = "warning"
    auto_correct: bool = False

    def evaluate(self, invoice: InvoiceData) -> Optional[RuleOutcome]:
        outcome = self.check(invoice)
        if outcome is None:
            return None
        if not isinstance(outcome, RuleOutcome):
            outcome = RuleOutcome.model_validate(
                outcome, from_attributes=not isinstance(outcome, Mapping)
            )
        if outcome.is_empty():
            return None
        return self._tag_severity(outcome)

    def _tag_severity(self, outcome: RuleOutcome) -> RuleOutcome:
        if self.severity == "error":
            promoted = [
                InvoiceValidationError(field=w.field, code=w.code, message=w.message)
                for w in outcome.warnings
            ]
            return outcome.model_copy(
                update={"errors": outcome.errors + promoted, "warnings": []}
            )
        demoted = [
            InvoiceValidationWarning(
                field=e.field, code=e.code, message=e.message, impact="high"
            )
            for e in outcome.errors
        ]
        return outcome.model_copy(
            update={"errors": [], "warnings": outcome.warnings + demoted}
        )


def due_date_not_before_invoice_date(invoice: InvoiceData) -> Optional[RuleOutcome]:
    """
    Warn when the due date falls before the invoice date.
    """
    invoice_date = parse_date(invoice.invoice_date)
    due_date = parse_date(invoice.due_date)
    if invoice_date is None or due_date is None or due_date >= invoice_date:
        return None
    return RuleOutcome(
        warnings=[
            InvoiceValidationWarning(
                field="due_date",
                code="DUE_DATE_BEFORE_INVOICE_DATE",
                message="Due date is before invoice date.",
                impact="medium",
            )
        ]
    )


def reasonable_payment_terms(invoice: InvoiceData) -> Optional[RuleOutcome]:
    """
    Warn when payment terms exceed MAX_PAYMENT_TERMS_DAYS.
    """
    invoice_date = parse_date(invoice.invoice_date)
    due_date = parse_date(invoice.due_date)
    if invoice_date is None or due_date is None:
        return None
    days = (due_date - invoice_date).days
    if days <= MAX_PAYMENT_TERMS_DAYS:
        return None
    return RuleOutcome(
        warnings=[
            InvoiceValidationWarning(
                field="due_date",
                code="UNUSUAL_PAYMENT_TERMS",
                message=f"Payment terms are unusually long ({days} days).",
                impact="low",
            )
        ]
    )


def reasonable_tax_amount(invoice: InvoiceData) -> Optional[RuleOutcome]:
    """
    Warn when tax is more than MAX_TAX_RATE of the total amount.
    """
    total = as_number(invoice.total_amount)
    tax = as_number(invoice.tax_amount)
    if total is None or tax is None or total <= 0:
        return None
    rate = tax / total
    if rate <= MAX_TAX_RATE:
        return None
    return RuleOutcome(
        warnings=[
            InvoiceValidationWarning(
                field="tax_amount",
                code="UNUSUAL_TAX_RATE",
                message=f"Tax rate appears unusually high ({rate * 100:.1f}%).",
                impact="medium",
            )
        ]
    )


def _line_total(item: Any) -> Optional[float]:
    """
    Use the item's total_price, or quantity * unit_price when it is missing.
    """
    total = read_value(item, "total_price")
    if total is not None:
        return as_number(total)
    quantity = as_number(read_value(item, "quantity"))
    price = as_number(read_value(item, "unit_price"))
    if quantity is None or price is None:
        return None
    return quantity * price


def line_items_match_total(invoice: InvoiceData) -> Optional[RuleOutcome]:
    """
    Compare the sum of line totals with the invoice total.

    A mismatch beyond LINE_ITEMS_TOLERANCE is an error and carries the summed
    total as a correction. Lines without a usable total are reported instead
    of reconciled.
    """
    items = invoice.line_items
    total = as_number(invoice.total_amount)
    if not isinstance(items, list) or not items or total is None:
        return None

    line_totals = []
    errors = []
    for index, item in enumerate(items):
        line_total = _line_total(item)
        if line_total is None:
            errors.append(_invalid_amount(f"line_items[{index}].total_price"))
        line_totals.append(line_total)
    if errors:
        return RuleOutcome(errors=errors)

    calculated = round(math.fsum(line_totals), 2)
    if abs(calculated - total) <= LINE_ITEMS_TOLERANCE:
        return None
    return RuleOutcome(
        errors=[
            InvoiceValidationError(
                field="total_amount",
                code="LINE_ITEMS_TOTAL_MISMATCH",
                message=(
                    f"Line items total ({calculated}) does not match "
                    f"invoice total ({total})."
                ),
                suggested_fix=f"Adjust total amount to {calculated}.",
            )
        ],
        corrected_data={"total_amount": calculated},
    )


BUILT_IN_RULES = [
    BusinessRule(
        name="invoice_date_before_due_date",
        description="Invoice date must be on or before the due date.",
        check=due_date_not_before_invoice_date,
        severity="warning",
    ),
    BusinessRule(
        name="reasonable_payment_terms",
        description=f"Payment terms should be at most {MAX_PAYMENT_TERMS_DAYS} days.",
        check=reasonable_payment_terms,
        severity="warning",
    ),
    BusinessRule(
        name="tax_amount_calculation",
        description="Tax amount should be reasonable compared to the total.",
        check=reasonable_tax_amount,
        severity="warning",
    ),
    BusinessRule(
        name="line_items_total",
        description="Line items total should match the invoice total.",
        check=line_items_match_total,
        severity="error",
        auto_correct=True,
    ),
]
