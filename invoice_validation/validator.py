"""
Invoice validation logic.

This module implements:
- Required-field, format, date and amount checks
- Business rules (built-in and caller-supplied), with optional auto-correction
- The validation score and batch statistics

The main entrypoints are:
- `validate_invoice` for a single invoice
- `validate_invoices` for a batch, one result per input
- `get_validation_statistics` for a summary of prior results
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .config import ValidationConfig
from .errors import ErrorType, InvoiceProcessingError
from .rules import BUILT_IN_RULES, FIELD_CHECKS, snapshot_invoice
from .schema import (
    CodeCount,
    InvoiceData,
    InvoiceValidationError,
    InvoiceValidationWarning,
    ValidationMetadata,
    ValidationResult,
    ValidationStatistics,
)
from .scoring import calculate_validation_score

logger = logging.getLogger(__name__)


def validate_invoice(
    data: Any,
    config: Optional[ValidationConfig] = None,
    correlation_id: Optional[str] = None,
) -> ValidationResult:
    """
    Validate a single invoice against field, date, amount and business rules.

    Parameters
    ----------
    data:
        ``InvoiceData`` instance, mapping (snake_case or camelCase keys) or any
        object exposing the invoice fields as attributes. It is read once and
        never modified.
    config:
        Validation options; defaults to ``ValidationConfig()``.
    correlation_id:
        Identifier attached to the result and to log records. A new UUID is
        generated when omitted.

    Returns
    -------
    ValidationResult
        ``is_valid`` is True when no errors were found. Warnings never affect it.

    Raises
    ------
    InvoiceProcessingError
        If the invoice could not be read, e.g. a property accessor raised.
    """
    config = config or ValidationConfig()
    correlation_id = correlation_id or str(uuid.uuid4())
    log_extra = {"correlation_id": correlation_id}

    try:
        invoice = snapshot_invoice(data)
        logger.debug(
            "Starting invoice validation for %s (strict_mode=%s)",
            invoice.invoice_number,
            config.strict_mode,
            extra=log_extra,
        )
        result = _run_checks(invoice, config, correlation_id)
    except Exception as exc:
        logger.exception("Error during invoice validation", extra=log_extra)
        raise InvoiceProcessingError(
            "Invoice validation failed due to internal error",
            {"original_error": str(exc)},
            correlation_id,
        ) from exc

    _log_outcome(invoice, result, config)
    return result


def _run_checks(
    invoice: InvoiceData, config: ValidationConfig, correlation_id: str
) -> ValidationResult:
    errors: List[InvoiceValidationError] = []
    warnings: List[InvoiceValidationWarning] = []
    metadata = ValidationMetadata()
    corrections: Dict[str, Any] = {}
    corrected: Optional[InvoiceData] = None

    for name, check in FIELD_CHECKS:
        check(invoice, config, errors, warnings)
        metadata.rules_applied.append(name)

    for rule in [*BUILT_IN_RULES, *config.business_rules]:
        try:
            outcome = rule.evaluate(invoice)
        except Exception as exc:
            logger.warning(
                "Business rule '%s' failed to execute: %s",
                rule.name,
                exc,
                extra={"correlation_id": correlation_id},
            )
            continue
        if outcome is None:
            continue

        metadata.business_logic_checks.append(rule.name)
        errors.extend(outcome.errors)
        warnings.extend(outcome.warnings)

        if (
            config.enable_auto_correction
            and rule.auto_correct
            and outcome.corrected_data
        ):
            merged = {**corrections, **outcome.corrected_data}
            try:
                corrected = InvoiceData.model_validate(merged)
            except ValidationError as exc:
                logger.warning(
                    "Business rule '%s' returned an invalid correction: %s",
                    rule.name,
                    exc,
                    extra={"correlation_id": correlation_id},
                )
                continue
            corrections = merged
            metadata.data_corrections.append(rule.name)

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        validation_score=calculate_validation_score(invoice, errors, warnings),
        correlation_id=correlation_id,
        corrected_data=corrected,
        metadata=metadata,
    )


def _log_outcome(
    invoice: InvoiceData, result: ValidationResult, config: ValidationConfig
) -> None:
    log_extra = {"correlation_id": result.correlation_id}
    logger.debug(
        "Invoice validation completed: valid=%s errors=%d warnings=%d score=%s",
        result.is_valid,
        len(result.errors),
        len(result.warnings),
        result.validation_score,
        extra=log_extra,
    )
    if not result.is_valid:
        logger.warning(
            "Invoice %s failed validation: %s",
            invoice.invoice_number,
            "; ".join(f"{e.field}: {e.message}" for e in result.errors),
            extra=log_extra,
        )
    if result.warnings:
        # strict mode surfaces warnings; it never changes is_valid
        level = logging.WARNING if config.strict_mode else logging.DEBUG
        logger.log(
            level,
            "Invoice %s has warnings: %s",
            invoice.invoice_number,
            ", ".join(w.code for w in result.warnings),
            extra=log_extra,
        )


def _failed_result(error: InvoiceProcessingError) -> ValidationResult:
    reason = error.details.get("original_error", error.message)
    return ValidationResult(
        is_valid=False,
        errors=[
            InvoiceValidationError(
                field="general",
                code=ErrorType.VALIDATION_ERROR.value,
                message=f"Validation failed: {reason}",
            )
        ],
        validation_score=0,
        correlation_id=error.correlation_id or str(uuid.uuid4()),
    )


def validate_invoices(
    invoices: Iterable[Any], config: Optional[ValidationConfig] = None
) -> List[ValidationResult]:
    """
    Validate each invoice independently, returning results in input order.

    An invoice that cannot be read yields an invalid result with a single
    ``VALIDATION_ERROR`` instead of aborting the batch.
    """
    config = config or ValidationConfig()
    results: List[ValidationResult] = []
    for invoice in invoices:
        try:
            results.append(validate_invoice(invoice, config))
        except InvoiceProcessingError as exc:
            results.append(_failed_result(exc))
    return results


def _rank_codes(counter: Counter, limit: Optional[int]) -> List[CodeCount]:
    # most_common keeps first-seen order for equal counts
    return [
        CodeCount(code=code, count=count) for code, count in counter.most_common(limit)
    ]


def get_validation_statistics(
    results: Iterable[ValidationResult], limit: Optional[int] = None
) -> ValidationStatistics:
    """
    Summarize validation results for monitoring.

    ``limit`` caps the number of error and warning codes returned; all codes
    are returned by default.
    """
    results = list(results)
    total_validated = len(results)
    valid_count = sum(1 for r in results if r.is_valid)
    average_score = (
        sum(r.validation_score for r in results) / total_validated
        if total_validated
        else 0.0
    )

    error_counter: Counter = Counter()
    warning_counter: Counter = Counter()
    for r in results:
        for e in r.errors:
            error_counter[e.code] += 1
        for w in r.warnings:
            warning_counter[w.code] += 1

    return ValidationStatistics(
        total_validated=total_validated,
        valid_count=valid_count,
        invalid_count=total_validated - valid_count,
        average_score=average_score,
        common_errors=_rank_codes(error_counter, limit),
        common_warnings=_rank_codes(warning_counter, limit),
    )
