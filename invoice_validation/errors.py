"""
Typed application errors.

Validation defects are reported in-band on ``ValidationResult`` and are never
raised. The exceptions here signal that the service itself could not do its
job, so callers can tell "the data is bad" apart from "the validator broke".
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class AppError(Exception):
    """
    Base class for errors surfaced to API and CLI callers.
    """

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        status_code: int,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
            "correlationId": self.correlation_id,
        }

    @classmethod
    def configuration_error(
        cls,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> "AppError":
        return cls(ErrorType.CONFIGURATION_ERROR, message, 500, details, correlation_id)


class InvoiceProcessingError(AppError):
    """
    Raised when the validator cannot read the invoice it was given.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            ErrorType.PROCESSING_ERROR, message, 500, details, correlation_id
        )
