"""
FastAPI application for the Invoice Validation Service.

Endpoints
---------
- GET /health
- POST /validate          (single invoice; 422 when the invoice is invalid)
- POST /validate-batch    (list of invoices, with statistics)
- POST /statistics        (summary of previously returned results)

Every response carries an ``X-Correlation-ID`` header. An inbound
``X-Correlation-ID`` (or ``Correlation-ID``) header is reused.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import settings
from ..errors import AppError
from ..logging_config import configure_logging
from ..schema import (
    BulkValidationReport,
    InvoiceData,
    ValidationResult,
    ValidationStatistics,
)
from ..validator import get_validation_statistics, validate_invoice, validate_invoices

CORRELATION_HEADER = "X-Correlation-ID"

logger = logging.getLogger(__name__)

configure_logging(settings.log_level)

app = FastAPI(title="Invoice Validation Service", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = (
        request.headers.get(CORRELATION_HEADER)
        or request.headers.get("Correlation-ID")
        or str(uuid.uuid4())
    )
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    correlation_id = exc.correlation_id or getattr(
        request.state, "correlation_id", None
    )
    logger.error(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"correlation_id": correlation_id},
    )
    error = exc.to_dict()
    error["correlationId"] = correlation_id
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers={CORRELATION_HEADER: correlation_id} if correlation_id else None,
    )


@app.get("/health")
async def health() -> dict:
    """
    Simple health-check endpoint.
    """
    return {"status": "ok"}


@app.post("/validate", response_model=ValidationResult)
async def validate(invoice: InvoiceData, request: Request):
    """
    Validate a single invoice.

    Returns the validation result with status 200 when the invoice is valid
    and 422 when it has errors.
    """
    result = validate_invoice(
        invoice,
        settings.validation_config(),
        correlation_id=request.state.correlation_id,
    )
    if not result.is_valid:
        return JSONResponse(
            status_code=422, content=result.model_dump(mode="json", by_alias=True)
        )
    return result


@app.post("/validate-batch", response_model=BulkValidationReport)
async def validate_batch(invoices: List[InvoiceData]) -> BulkValidationReport:
    """
    Validate a JSON array of invoices. Invalid invoices do not fail the request.
    """
    results = validate_invoices(invoices, settings.validation_config())
    return BulkValidationReport(
        results=results, statistics=get_validation_statistics(results)
    )


@app.post("/statistics", response_model=ValidationStatistics)
async def statistics(results: List[ValidationResult]) -> ValidationStatistics:
    """
    Summarize previously returned validation results.
    """
    return get_validation_statistics(results)


# For local development convenience:
#   uvicorn invoice_validation.api.main:app --reload
