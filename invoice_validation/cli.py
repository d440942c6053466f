"""
Command-line interface for the Invoice Validation Service.

Usage examples:
    py -m invoice_validation.cli validate --input invoices.json --report output/validation_report.json
    py -m invoice_validation.cli validate --input invoices.json --strict --auto-correct
    py -m invoice_validation.cli stats --report output/validation_report.json
    py -m invoice_validation.cli serve --port 8000
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError

from .config import settings
from .errors import AppError
from .logging_config import configure_logging
from .schema import BulkValidationReport, ValidationStatistics
from .validator import get_validation_statistics, validate_invoices

app = typer.Typer(help="Invoice validation CLI.")


def _ensure_parent_directory(path: Path) -> None:
    """
    Ensure the parent directory for a file path exists.
    """
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _print_statistics(statistics: ValidationStatistics) -> None:
    typer.echo(f"Total invoices: {statistics.total_validated}")
    typer.echo(f"Valid invoices: {statistics.valid_count}")
    typer.echo(f"Invalid invoices: {statistics.invalid_count}")
    typer.echo(f"Average score: {statistics.average_score:.2f}")
    top_errors = ", ".join(f"{c.code} ({c.count})" for c in statistics.common_errors)
    typer.echo(f"Top errors: {top_errors or 'None'}")
    top_warnings = ", ".join(
        f"{c.code} ({c.count})" for c in statistics.common_warnings
    )
    typer.echo(f"Top warnings: {top_warnings or 'None'}")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level."
    ),
) -> None:
    configure_logging(log_level)


@app.command()
def validate(
    input: str = typer.Option(
        ...,
        "--input",
        help="JSON file containing an array of extracted invoices.",
    ),
    report: str = typer.Option(
        "output/validation_report.json",
        "--report",
        help="Path to write the validation report as JSON.",
    ),
    strict: bool = typer.Option(
        settings.strict_mode,
        "--strict/--no-strict",
        help="Treat warnings as failures for the exit code.",
    ),
    auto_correct: bool = typer.Option(
        settings.enable_auto_correction,
        "--auto-correct/--no-auto-correct",
        help="Include suggested corrections in the report.",
    ),
    allow_future_dates: bool = typer.Option(
        settings.allow_future_invoice_dates,
        "--allow-future-dates/--no-allow-future-dates",
        help="Accept invoice dates after today.",
    ),
    max_invoice_age: Optional[int] = typer.Option(
        None,
        "--max-invoice-age",
        help="Warn about invoices older than this many days.",
    ),
) -> None:
    """
    Validate invoice JSON according to field formats and business rules.
    """
    input_path = Path(input)
    if not input_path.exists():
        typer.echo(f"Input JSON not found: {input_path}", err=True)
        raise typer.Exit(code=1)

    try:
        invoices = json.loads(input_path.read_text(encoding="utf-8") or "[]")
    except json.JSONDecodeError as exc:
        typer.echo(f"Input JSON is malformed: {exc}", err=True)
        raise typer.Exit(code=1)
    if not isinstance(invoices, list):
        typer.echo("Input JSON must be an array of invoices.", err=True)
        raise typer.Exit(code=1)

    try:
        config = settings.validation_config(
            strict_mode=strict,
            enable_auto_correction=auto_correct,
            allow_future_invoice_dates=allow_future_dates,
            max_invoice_age=max_invoice_age,
        )
    except AppError as exc:
        typer.echo(f"{exc.message}: {exc.details}", err=True)
        raise typer.Exit(code=1)

    results = validate_invoices(invoices, config)
    report_obj = BulkValidationReport(
        results=results, statistics=get_validation_statistics(results)
    )

    report_path = Path(report)
    _ensure_parent_directory(report_path)
    report_path.write_text(
        report_obj.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )

    _print_statistics(report_obj.statistics)

    # Exit non-zero if there are invalid invoices (or warnings, in strict mode)
    has_warnings = any(r.warnings for r in results)
    if report_obj.statistics.invalid_count > 0 or (strict and has_warnings):
        raise typer.Exit(code=2)


@app.command()
def stats(
    report: str = typer.Option(
        "output/validation_report.json",
        "--report",
        help="Validation report written by the validate command.",
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", help="Show at most this many error and warning codes."
    ),
) -> None:
    """
    Print statistics for an existing validation report.
    """
    report_path = Path(report)
    if not report_path.exists():
        typer.echo(f"Report not found: {report_path}", err=True)
        raise typer.Exit(code=1)

    try:
        report_obj = BulkValidationReport.model_validate_json(
            report_path.read_text(encoding="utf-8")
        )
    except ValidationError as exc:
        typer.echo(f"Report is not a valid validation report: {exc}", err=True)
        raise typer.Exit(code=1)

    _print_statistics(get_validation_statistics(report_obj.results, limit=limit))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """
    Run the HTTP API with uvicorn.
    """
    uvicorn.run("invoice_validation.api.main:app", host=host, port=port, reload=reload)


def main() -> None:
    """
    Entrypoint used when executing as a module.
    """
    app()


if __name__ == "__main__":
    main()
