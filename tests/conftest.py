import pytest


class ExplodingInvoice:
    """Invoice-like object whose invoice_number accessor raises."""

    @property
    def invoice_number(self):
        raise RuntimeError("Simulated error")


@pytest.fixture
def valid_invoice():
    return {
        "invoice_number": "INV-001",
        "invoice_date": "2024-01-01",
        "due_date": "2024-01-31",
        "total_amount": 1000.00,
        "tax_amount": 100.00,
        "supplier_name": "ACME Corp",
        "bill_to": "Customer Inc",
        "currency": "USD",
    }


@pytest.fixture
def minimal_invoice():
    return {
        "invoice_number": "INV-001",
        "total_amount": 100,
        "due_date": "2024-01-31",
    }


@pytest.fixture
def exploding_invoice():
    return ExplodingInvoice()
