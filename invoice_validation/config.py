"""
Validation options and service settings.

``ValidationConfig`` is what callers pass to the validator. ``Settings`` is
read from the environment (and a local ``.env`` file) by the API and CLI and
provides their default ``ValidationConfig``.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import AppError
from .rules import BusinessRule
from .schema import InvoiceData, resolve_field_name

load_dotenv(".env")

DEFAULT_REQUIRED_FIELDS = ["invoice_number", "total_amount", "due_date"]


class ValidationConfig(BaseModel):
    """
    Options controlling a single validation run. All fields are optional.
    """

    required_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_FIELDS),
        description="Fields that must be present and non-empty.",
    )
    min_amount: float = Field(default=0.01, description="Smallest acceptable total.")
    max_amount: float = Field(
        default=1_000_000, description="Totals above this are flagged for review."
    )
    allow_future_invoice_dates: bool = True
    max_invoice_age: Optional[int] = Field(
        default=None, description="Maximum invoice age in days; unbounded when unset."
    )
    allow_future_due_dates: bool = True
    max_due_date_future: int = Field(
        default=365,
        description="Due-date horizon in days when future due dates are disallowed.",
    )
    strict_mode: bool = Field(
        default=False,
        description=(
            "Surface warnings more prominently. Does not change is_valid: "
            "a result with warnings only is still valid."
        ),
    )
    enable_auto_correction: bool = False
    business_rules: List[BusinessRule] = Field(default_factory=list)
    reference_date: Optional[date] = Field(
        default=None,
        description="Date treated as 'today' by the date checks; defaults to today.",
    )

    @field_validator("required_fields")
    @classmethod
    def known_field_names(cls, v):
        names = []
        for name in v:
            field = resolve_field_name(name)
            if field not in InvoiceData.model_fields:
                raise ValueError(f"unknown invoice field: {name}")
            names.append(field)
        return names

    @field_validator("max_invoice_age", "max_due_date_future")
    @classmethod
    def non_negative_days(cls, v):
        if v is not None and v < 0:
            raise ValueError("day counts must not be negative")
        return v

    def today(self) -> date:
        return self.reference_date or date.today()


class Settings(BaseSettings):
    """
    Service settings, read from ``INVOICE_VALIDATION_*`` environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="INVOICE_VALIDATION_")

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    strict_mode: bool = False
    enable_auto_correction: bool = False
    allow_future_invoice_dates: bool = True
    max_invoice_age: Optional[int] = None
    min_amount: float = 0.01
    max_amount: float = 1_000_000

    def validation_config(self, **overrides) -> ValidationConfig:
        """
        Build the default ``ValidationConfig``, applying any non-None overrides.
        """
        values = {
            "strict_mode": self.strict_mode,
            "enable_auto_correction": self.enable_auto_correction,
            "allow_future_invoice_dates": self.allow_future_invoice_dates,
            "max_invoice_age": self.max_invoice_age,
            "min_amount": self.min_amount,
            "max_amount": self.max_amount,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ValidationConfig(**values)
        except ValidationError as exc:
            raise AppError.configuration_error(
                "Invalid validation settings",
                {"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc


settings = Settings()
