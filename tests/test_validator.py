import copy
import logging
from datetime import date

import pytest

from invoice_validation import (
    BusinessRule,
    InvoiceData,
    InvoiceProcessingError,
    RuleOutcome,
    ValidationConfig,
    ValidationResult,
    validate_invoice,
    validate_invoices,
)
from invoice_validation.errors import ErrorType


def _codes(items, field=None):
    return [i.code for i in items if field is None or i.field == field]


def test_valid_invoice_passes(valid_invoice):
    result = validate_invoice(valid_invoice)

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert result.validation_score > 80
    assert result.correlation_id
    assert result.corrected_data is None
    assert result.metadata.rules_applied == [
        "required_fields",
        "field_formats",
        "date_validation",
        "amount_validation",
    ]


def test_accepts_model_and_camel_case_mapping(valid_invoice):
    from_model = validate_invoice(InvoiceData(**valid_invoice))
    camel = {
        "invoiceNumber": "INV-001",
        "invoiceDate": "2024-01-01",
        "dueDate": "2024-01-31",
        "totalAmount": 1000.00,
        "taxAmount": 100.00,
        "supplierName": "ACME Corp",
        "billTo": "Customer Inc",
        "currency": "USD",
    }
    from_camel = validate_invoice(camel)

    assert from_model.is_valid and from_camel.is_valid
    assert from_model.validation_score == from_camel.validation_score


def test_missing_required_fields():
    result = validate_invoice(
        {"supplier_name": "ACME Corp"},
        ValidationConfig(required_fields=["invoiceNumber", "totalAmount", "dueDate"]),
    )

    assert not result.is_valid
    assert len(result.errors) == 3
    assert {(e.field, e.code) for e in result.errors} == {
        ("invoice_number", "REQUIRED_FIELD_MISSING"),
        ("total_amount", "REQUIRED_FIELD_MISSING"),
        ("due_date", "REQUIRED_FIELD_MISSING"),
    }


def test_custom_required_fields_count():
    config = ValidationConfig(required_fields=["supplier_name", "bill_to"])
    result = validate_invoice({"invoice_number": "INV-1", "bill_to": ""}, config)

    assert _codes(result.errors).count("REQUIRED_FIELD_MISSING") == 2


@pytest.mark.parametrize(
    "invoice_number, error_code, warning_code",
    [
        ("", "INVALID_FORMAT", None),
        ("A" * 51, "INVALID_LENGTH", None),
        ("INV@001", None, "UNUSUAL_FORMAT"),
        ("INV-001", None, None),
        (12345, "INVALID_FORMAT", None),
    ],
)
def test_invoice_number_format(minimal_invoice, invoice_number, error_code, warning_code):
    minimal_invoice["invoice_number"] = invoice_number
    result = validate_invoice(minimal_invoice)

    errors = [e for e in _codes(result.errors, "invoice_number") if e != "REQUIRED_FIELD_MISSING"]
    warnings = _codes(result.warnings, "invoice_number")
    assert errors == ([error_code] if error_code else [])
    assert warnings == ([warning_code] if warning_code else [])


def test_currency_format(minimal_invoice):
    minimal_invoice["currency"] = "INVALID"
    result = validate_invoice(minimal_invoice)

    assert result.is_valid
    assert _codes(result.warnings, "currency") == ["INVALID_CURRENCY_FORMAT"]
    assert result.warnings[0].impact == "low"


def test_long_text_field(minimal_invoice):
    minimal_invoice["supplier_name"] = "x" * 501
    result = validate_invoice(minimal_invoice)

    assert _codes(result.warnings, "supplier_name") == ["FIELD_TOO_LONG"]


def test_invalid_date_format(minimal_invoice):
    minimal_invoice["invoice_date"] = "invalid-date"
    result = validate_invoice(minimal_invoice)

    assert _codes(result.errors, "invoice_date") == ["INVALID_DATE_FORMAT"]
    assert not result.is_valid


def test_future_invoice_date():
    invoice = {
        "invoice_number": "INV-001",
        "invoice_date": "2024-06-11",
        "due_date": "2024-07-01",
        "total_amount": 100,
    }
    allowed = validate_invoice(invoice, ValidationConfig(reference_date=date(2024, 6, 1)))
    rejected = validate_invoice(
        invoice,
        ValidationConfig(reference_date=date(2024, 6, 1), allow_future_invoice_dates=False),
    )

    assert allowed.is_valid
    assert _codes(rejected.errors, "invoice_date") == ["FUTURE_INVOICE_DATE"]


def test_old_invoice_date_only_when_age_is_bounded(minimal_invoice):
    minimal_invoice["invoice_date"] = "2024-01-01"
    unbounded = validate_invoice(
        minimal_invoice, ValidationConfig(reference_date=date(2026, 1, 1))
    )
    bounded = validate_invoice(
        minimal_invoice,
        ValidationConfig(reference_date=date(2026, 1, 1), max_invoice_age=365),
    )

    assert "OLD_INVOICE_DATE" not in _codes(unbounded.warnings)
    assert _codes(bounded.warnings, "invoice_date") == ["OLD_INVOICE_DATE"]
    assert bounded.is_valid


def test_far_future_due_date(minimal_invoice):
    minimal_invoice["due_date"] = "2026-01-31"
    config = ValidationConfig(
        reference_date=date(2024, 1, 1),
        allow_future_due_dates=False,
        max_due_date_future=365,
    )
    result = validate_invoice(minimal_invoice, config)

    assert _codes(result.warnings, "due_date") == ["FAR_FUTURE_DUE_DATE"]


@pytest.mark.parametrize(
    "amount, error_codes, warning_code",
    [
        (-100, ["NEGATIVE_AMOUNT", "AMOUNT_TOO_SMALL"], None),
        (0.005, ["AMOUNT_TOO_SMALL"], None),
        (2_000_000, [], "AMOUNT_VERY_LARGE"),
        (100, [], None),
        ("abc", ["INVALID_AMOUNT_FORMAT"], None),
    ],
)
def test_amount_ranges(minimal_invoice, amount, error_codes, warning_code):
    minimal_invoice["total_amount"] = amount
    result = validate_invoice(
        minimal_invoice, ValidationConfig(min_amount=0.01, max_amount=1_000_000)
    )

    assert _codes(result.errors, "total_amount") == error_codes
    assert _codes(result.warnings, "total_amount") == ([warning_code] if warning_code else [])
    assert result.is_valid == (not error_codes)


def test_negative_tax_amount(minimal_invoice):
    minimal_invoice["tax_amount"] = -5
    result = validate_invoice(minimal_invoice)

    assert _codes(result.errors, "tax_amount") == ["NEGATIVE_AMOUNT"]


def test_due_date_before_invoice_date(minimal_invoice):
    minimal_invoice.update(invoice_date="2024-02-01", due_date="2024-01-15")
    result = validate_invoice(minimal_invoice)

    assert _codes(result.warnings, "due_date") == ["DUE_DATE_BEFORE_INVOICE_DATE"]
    assert result.is_valid
    assert result.metadata.business_logic_checks == ["invoice_date_before_due_date"]


def test_unusual_payment_terms(minimal_invoice):
    minimal_invoice.update(invoice_date="2024-01-01", due_date="2024-06-01")
    result = validate_invoice(minimal_invoice)

    assert _codes(result.warnings, "due_date") == ["UNUSUAL_PAYMENT_TERMS"]


def test_unusual_tax_rate(minimal_invoice):
    minimal_invoice["tax_amount"] = 60
    result = validate_invoice(minimal_invoice)

    assert _codes(result.warnings, "tax_amount") == ["UNUSUAL_TAX_RATE"]


def test_line_items_mismatch_with_auto_correction(minimal_invoice):
    minimal_invoice["line_items"] = [
        {"description": "Item 1", "quantity": 2, "unit_price": 25, "total_price": 50},
        {"description": "Item 2", "quantity": 1, "unit_price": 30, "total_price": 30},
    ]
    result = validate_invoice(minimal_invoice, ValidationConfig(enable_auto_correction=True))

    assert _codes(result.errors, "total_amount") == ["LINE_ITEMS_TOTAL_MISMATCH"]
    assert not result.is_valid
    assert result.corrected_data.total_amount == 80
    assert result.metadata.data_corrections == ["line_items_total"]


def test_corrected_data_only_carries_corrected_fields(minimal_invoice):
    minimal_invoice["line_items"] = [{"description": "Item", "total_price": 80}]
    result = validate_invoice(minimal_invoice, ValidationConfig(enable_auto_correction=True))

    dumped = result.model_dump(mode="json", by_alias=True)

    assert dumped["correctedData"] == {"totalAmount": 80.0}
    assert result.model_dump()["corrected_data"] == {"total_amount": 80.0}


def test_line_items_mismatch_without_auto_correction(minimal_invoice):
    minimal_invoice["line_items"] = [{"description": "Item", "total_price": 80}]
    result = validate_invoice(minimal_invoice)

    assert _codes(result.errors) == ["LINE_ITEMS_TOTAL_MISMATCH"]
    assert result.corrected_data is None
    assert result.metadata.data_corrections == []


def test_line_items_matching_total(minimal_invoice):
    minimal_invoice["line_items"] = [
        {"description": "A", "quantity": 2, "unit_price": 25},
        {"description": "B", "totalPrice": 50.004},
    ]
    result = validate_invoice(minimal_invoice)

    assert result.is_valid


def test_line_item_without_usable_total(minimal_invoice):
    minimal_invoice["line_items"] = [{"description": "A", "total_price": "fifty"}]
    result = validate_invoice(minimal_invoice)

    assert _codes(result.errors) == ["INVALID_AMOUNT_FORMAT"]
    assert result.errors[0].field == "line_items[0].total_price"


def test_input_is_not_modified(minimal_invoice):
    minimal_invoice["line_items"] = [{"description": "Item", "total_price": 80}]
    before = copy.deepcopy(minimal_invoice)

    validate_invoice(minimal_invoice, ValidationConfig(enable_auto_correction=True))

    assert minimal_invoice == before


def test_validation_is_repeatable(minimal_invoice):
    minimal_invoice.update(currency="usd", tax_amount=70)
    first = validate_invoice(minimal_invoice)
    second = validate_invoice(minimal_invoice)

    assert first.correlation_id != second.correlation_id
    assert first.model_dump(exclude={"correlation_id"}) == second.model_dump(
        exclude={"correlation_id"}
    )


def test_caller_correlation_id_is_kept(minimal_invoice):
    result = validate_invoice(minimal_invoice, correlation_id="req-123")

    assert result.correlation_id == "req-123"


def test_score_ordering(valid_invoice):
    low_quality = {"invoice_number": "", "total_amount": -100, "due_date": "invalid-date"}

    high = validate_invoice(valid_invoice)
    low = validate_invoice(low_quality)

    assert high.validation_score > low.validation_score
    assert high.validation_score > 80
    assert low.validation_score < 50


@pytest.mark.parametrize(
    "overrides",
    [
        {"invoice_date": "not-a-date"},
        {"invoice_date": "not-a-date", "total_amount": -1},
        {"invoice_date": "not-a-date", "total_amount": -1, "due_date": "nope"},
    ],
)
def test_records_with_errors_score_below_half(valid_invoice, overrides):
    valid_invoice.update(overrides)
    result = validate_invoice(valid_invoice)

    assert 1 <= len(result.errors) <= 3
    assert result.validation_score < 50


def test_warnings_lower_score_without_invalidating(valid_invoice):
    clean = validate_invoice(valid_invoice)
    valid_invoice["currency"] = "dollars"
    flagged = validate_invoice(valid_invoice)

    assert flagged.is_valid
    assert flagged.validation_score < clean.validation_score


def _warning_rule(**kwargs):
    return BusinessRule(
        name="test_rule",
        description="Test rule",
        check=lambda invoice: {
            "warnings": [
                {"field": "test", "code": "TEST_WARNING", "message": "Test warning"}
            ]
        },
        **kwargs,
    )


def test_strict_mode_does_not_change_is_valid(minimal_invoice):
    # warnings never make a record invalid, in strict mode or not
    strict = validate_invoice(
        minimal_invoice, ValidationConfig(strict_mode=True, business_rules=[_warning_rule()])
    )
    lenient = validate_invoice(
        minimal_invoice, ValidationConfig(strict_mode=False, business_rules=[_warning_rule()])
    )

    assert strict.is_valid and lenient.is_valid
    assert _codes(strict.warnings) == ["TEST_WARNING"]
    assert strict.metadata.business_logic_checks == ["test_rule"]


def test_strict_mode_logs_warnings(minimal_invoice, caplog):
    with caplog.at_level(logging.WARNING, logger="invoice_validation.validator"):
        validate_invoice(
            minimal_invoice,
            ValidationConfig(strict_mode=True, business_rules=[_warning_rule()]),
        )

    assert any("TEST_WARNING" in r.getMessage() for r in caplog.records)


def test_error_rule_reports_errors(minimal_invoice):
    rule = BusinessRule(
        name="po_required",
        check=lambda invoice: RuleOutcome(
            warnings=[{"field": "po", "code": "PO_MISSING", "message": "No PO"}]
        ),
        severity="error",
    )
    result = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[rule]))

    assert _codes(result.errors) == ["PO_MISSING"]
    assert result.warnings == []
    assert not result.is_valid


def test_warning_rule_demotes_errors(minimal_invoice):
    rule = BusinessRule(
        name="soft_check",
        check=lambda invoice: {"errors": [{"field": "x", "code": "SOFT", "message": "m"}]},
    )
    result = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[rule]))

    assert result.is_valid
    assert [(w.code, w.impact) for w in result.warnings] == [("SOFT", "high")]


def test_rule_may_return_validation_result(minimal_invoice):
    partial = ValidationResult(
        is_valid=False,
        warnings=[{"field": "x", "code": "FROM_RESULT", "message": "m", "impact": "medium"}],
        validation_score=0,
        correlation_id="",
    )
    rule = BusinessRule(name="legacy", check=lambda invoice: partial)
    result = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[rule]))

    assert _codes(result.warnings) == ["FROM_RESULT"]


def test_caller_rules_run_after_built_ins_in_order(minimal_invoice):
    minimal_invoice["tax_amount"] = 60
    first = BusinessRule(name="first", check=lambda i: {"warnings": [{"field": "a", "code": "A", "message": "a"}]})
    second = BusinessRule(name="second", check=lambda i: {"warnings": [{"field": "b", "code": "B", "message": "b"}]})
    result = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[first, second]))

    assert _codes(result.warnings) == ["UNUSUAL_TAX_RATE", "A", "B"]
    assert result.metadata.business_logic_checks == ["tax_amount_calculation", "first", "second"]


def test_caller_rule_receives_invoice_fields(minimal_invoice):
    seen = {}

    def check(invoice):
        seen["number"] = invoice.invoice_number
        return None

    validate_invoice(minimal_invoice, ValidationConfig(business_rules=[BusinessRule(name="spy", check=check)]))

    assert seen == {"number": "INV-001"}


def test_caller_rule_correction_requires_auto_correct_flag(minimal_invoice):
    def check(invoice):
        return RuleOutcome(
            warnings=[{"field": "currency", "code": "NO_CURRENCY", "message": "m"}],
            corrected_data={"currency": "USD"},
        )

    without_flag = BusinessRule(name="currency_default", check=check)
    with_flag = BusinessRule(name="currency_default", check=check, auto_correct=True)
    config = dict(enable_auto_correction=True)

    skipped = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[without_flag], **config))
    applied = validate_invoice(minimal_invoice, ValidationConfig(business_rules=[with_flag], **config))

    assert skipped.corrected_data is None
    assert applied.corrected_data.currency == "USD"
    assert applied.metadata.data_corrections == ["currency_default"]


def test_invalid_caller_correction_is_skipped(minimal_invoice, caplog):
    def check(invoice):
        return RuleOutcome(
            warnings=[{"field": "total_amount", "code": "ROUNDED_TOTAL", "message": "m"}],
            corrected_data={"total_amount": "not-a-number"},
        )

    rule = BusinessRule(name="bad_correction", check=check, auto_correct=True)
    config = ValidationConfig(business_rules=[rule], enable_auto_correction=True)

    with caplog.at_level(logging.WARNING, logger="invoice_validation.validator"):
        result = validate_invoice(minimal_invoice, config, correlation_id="req-7")

    assert result.is_valid
    assert _codes(result.warnings) == ["ROUNDED_TOTAL"]
    assert result.corrected_data is None
    assert result.metadata.data_corrections == []
    record = next(r for r in caplog.records if "invalid correction" in r.getMessage())
    assert record.correlation_id == "req-7"


def test_invalid_caller_correction_keeps_earlier_corrections(minimal_invoice):
    minimal_invoice["line_items"] = [{"description": "Item", "total_price": 80}]
    rule = BusinessRule(
        name="bad_correction",
        check=lambda invoice: {"corrected_data": {"total_amount": "lots"}},
        auto_correct=True,
    )
    config = ValidationConfig(business_rules=[rule], enable_auto_correction=True)

    result = validate_invoice(minimal_invoice, config)

    assert result.corrected_data.total_amount == 80
    assert result.metadata.data_corrections == ["line_items_total"]


def test_failing_caller_rule_is_skipped(minimal_invoice, caplog):
    def broken(invoice):
        raise ValueError("rule bug")

    with caplog.at_level(logging.WARNING, logger="invoice_validation.validator"):
        result = validate_invoice(
            minimal_invoice,
            ValidationConfig(business_rules=[BusinessRule(name="broken", check=broken)]),
            correlation_id="req-9",
        )

    assert result.is_valid
    assert "broken" not in result.metadata.business_logic_checks
    record = next(r for r in caplog.records if "broken" in r.getMessage())
    assert record.correlation_id == "req-9"


def test_unreadable_invoice_raises_processing_error(exploding_invoice, caplog):
    with caplog.at_level(logging.ERROR, logger="invoice_validation.validator"):
        with pytest.raises(InvoiceProcessingError) as excinfo:
            validate_invoice(exploding_invoice, correlation_id="req-42")

    error = excinfo.value
    assert error.error_type == ErrorType.PROCESSING_ERROR
    assert error.status_code == 500
    assert error.correlation_id == "req-42"
    assert error.details["original_error"] == "Simulated error"
    assert any(r.levelno == logging.ERROR for r in caplog.records)


class _DetachedInvoice:
    due_date = "2024-01-31"
    totalAmount = 100

    @property
    def invoice_number(self):
        raise AttributeError("backing store gone")


def test_attribute_error_in_accessor_raises_processing_error():
    with pytest.raises(InvoiceProcessingError) as excinfo:
        validate_invoice(_DetachedInvoice())

    assert excinfo.value.details["original_error"] == "backing store gone"


def test_absent_attributes_read_as_missing():
    class PartialInvoice:
        invoiceNumber = "INV-9"
        due_date = "2024-01-31"

    result = validate_invoice(PartialInvoice())

    assert _codes(result.errors) == ["REQUIRED_FIELD_MISSING"]
    assert result.errors[0].field == "total_amount"


def test_batch_validation(minimal_invoice):
    second = dict(minimal_invoice, invoice_number="INV-002", total_amount=200, due_date="2024-02-28")
    results = validate_invoices([minimal_invoice, second])

    assert len(results) == 2
    assert all(r.is_valid for r in results)
    assert results[0].correlation_id != results[1].correlation_id


def test_batch_isolates_failures(minimal_invoice, exploding_invoice):
    results = validate_invoices([minimal_invoice, exploding_invoice, {"total_amount": -1}])

    assert len(results) == 3
    assert results[0].is_valid
    assert not results[1].is_valid
    assert [e.code for e in results[1].errors] == ["VALIDATION_ERROR"]
    assert results[1].validation_score == 0
    assert _codes(results[2].errors, "total_amount") == [
        "NEGATIVE_AMOUNT",
        "AMOUNT_TOO_SMALL",
    ]


def test_batch_matches_single_validation(valid_invoice, minimal_invoice):
    invoices = [valid_invoice, minimal_invoice, {"supplier_name": "ACME"}]
    config = ValidationConfig(enable_auto_correction=True)

    batch = validate_invoices(invoices, config)
    single = [validate_invoice(i, config) for i in invoices]

    for b, s in zip(batch, single):
        assert b.model_dump(exclude={"correlation_id"}) == s.model_dump(
            exclude={"correlation_id"}
        )
