"""
Command-line interface for Blood Work Analyzer.

Provides commands for extracting lab reports, importing JSON lab data,
exporting the ledger, and reviewing analyte trends.
"""

from datetime import datetime
from pathlib import Path

import typer

from blood_work_analyzer.domain.blood_test import TestResult
from blood_work_analyzer.infrastructure.parsers.pdf_text import extract_text
from blood_work_analyzer.infrastructure.storage.ledger_store import LedgerStore
from blood_work_analyzer.services.catalog import ReferenceCatalog, default_catalog, load_catalog
from blood_work_analyzer.services.classifier import ResultClassifier
from blood_work_analyzer.services.extraction import ExtractionService
from blood_work_analyzer.services.importers import ImportService
from blood_work_analyzer.services.output import ExportService
from blood_work_analyzer.services.statistics import (
    chart_points,
    compute_stats,
    percent_change,
    trend_direction,
)
from blood_work_analyzer.utils.exceptions import BloodWorkAnalyzerError
from blood_work_analyzer.utils.logging_config import get_logger, setup_logging
from blood_work_analyzer.utils.parameters import DuplicatePolicy, ParameterLoader
from blood_work_analyzer.utils.timezone_utils import parse_datetime

app = typer.Typer(help="Blood Work Analyzer - Lab report parsing and blood test tracking")

logger = get_logger(__name__)


def init_config(config_path: str = "config/config.yaml") -> ParameterLoader:
    """
    Initialize configuration and logging.

    Args:
        config_path: Path to configuration file.

    Returns:
        Parameter loader instance.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config(), "blood_work_analyzer")
    return param_loader


def init_catalog(param_loader: ParameterLoader) -> ReferenceCatalog:
    """Load the configured catalog, or the packaged one."""
    catalog_path = param_loader.get_catalog_config().path
    return load_catalog(catalog_path) if catalog_path else default_catalog()


def _echo_result(result: TestResult) -> None:
    marker = "" if result.is_valid_value() else f"  [{result.status.value.upper()}]"
    range_text = f" (ref {result.reference_range})" if result.reference_range else ""
    typer.echo(f"  {result.name}: {result.value:g} {result.unit}{range_text}{marker}")


@app.command()
def extract(
    input_file: Path = typer.Argument(..., help="Lab report as PDF or plain text"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    date: str | None = typer.Option(None, help="Sample date; the test is stored when given"),
    test_type: str = typer.Option("Lab Report", help="Panel label for the stored test"),
    duplicate_policy: DuplicatePolicy | None = typer.Option(
        None, help="Override duplicate policy from config"
    ),
) -> None:
    """
    Extract test results from a lab report.

    Prints the recognized results and the lines that could not be parsed.
    With --date the results are stored in the ledger as one blood test.
    """
    try:
        param_loader = init_config(config_path)
        parsing_config = param_loader.get_parsing_config()
        processing_config = param_loader.get_processing_config()

        if duplicate_policy:
            parsing_config.duplicate_policy = duplicate_policy

        if not input_file.exists():
            raise BloodWorkAnalyzerError(f"Input file not found: {input_file}")

        if input_file.suffix.lower() == ".pdf":
            raw_text = extract_text(input_file)
        else:
            raw_text = input_file.read_text(encoding="utf-8")

        service = ExtractionService(init_catalog(param_loader), parsing_config, processing_config)

        if date:
            sample_date = parse_datetime(date, timezone_str=processing_config.timezone)
            blood_test, extraction = service.build_blood_test(raw_text, sample_date, test_type)
        else:
            extraction = service.extract(raw_text)

        typer.echo(f"Extracted {len(extraction.results)} results from {input_file.name}")
        for result in extraction.results:
            _echo_result(result)

        if extraction.duplicates:
            typer.echo(f"Repeated analytes: {', '.join(sorted(set(extraction.duplicates)))}")

        if extraction.diagnostics:
            typer.echo(f"\n{len(extraction.diagnostics)} lines not parsed:")
            for diagnostic in extraction.diagnostics:
                typer.echo(
                    f"  line {diagnostic.line_number} ({diagnostic.reason.value}): {diagnostic.text.strip()}"
                )

        summary = ResultClassifier().summarize(extraction.results)
        if summary.total:
            typer.echo(f"\n{summary.percent_normal:.0f}% of results within range")

        if date and extraction.results:
            store = LedgerStore(param_loader.get_storage_config().ledger_path)
            if store.add(blood_test):
                typer.echo(f"Stored blood test {blood_test.id[:12]}")
            else:
                typer.echo("Blood test already stored")

    except (BloodWorkAnalyzerError, OSError) as e:
        logger.error(f"Extraction failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command("import")
def import_data(
    input_file: Path = typer.Argument(..., help="JSON lab data file"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    dry_run: bool = typer.Option(False, help="Show what would be imported without storing"),
) -> None:
    """
    Import lab data from JSON.

    The document format (ledger export, enhanced panels, or simple panels)
    is detected automatically.
    """
    try:
        param_loader = init_config(config_path)

        service = ImportService(init_catalog(param_loader), param_loader.get_processing_config())
        result = service.import_file(input_file)

        typer.echo(f"Detected format: {result.format.value}")
        for test in result.tests:
            typer.echo(
                f"  {test.date.date().isoformat()} {test.test_type}: {len(test.results)} results"
            )
        for entry in result.skipped:
            label = f"{entry.panel} {entry.name}".strip()
            typer.echo(f"  skipped {label}: {entry.reason}")

        if dry_run:
            typer.echo("Dry run, nothing stored")
            return

        store = LedgerStore(param_loader.get_storage_config().ledger_path)
        added = store.add_many(result.tests)
        typer.echo(f"Stored {added} new blood tests")

    except BloodWorkAnalyzerError as e:
        logger.error(f"Import failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def export(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    output_format: str | None = typer.Option(
        None, help="Output format: json, csv, parquet, or all"
    ),
) -> None:
    """
    Export the ledger.

    Writes the JSON interchange file and flattened result tables to the
    configured output directory.
    """
    try:
        param_loader = init_config(config_path)
        output_config = param_loader.get_output_config()

        if output_format:
            if output_format == "all":
                output_config.formats = ["json", "csv", "parquet"]
            else:
                output_config.formats = [output_format]

        store = LedgerStore(param_loader.get_storage_config().ledger_path)
        tests = store.list_tests()

        written = ExportService(output_config).write(tests)
        typer.echo(f"Exported {len(tests)} blood tests")
        for path in written:
            typer.echo(f"  - {path}")

    except BloodWorkAnalyzerError as e:
        logger.error(f"Export failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def stats(
    analyte: str = typer.Argument(..., help="Analyte name, e.g. Glucose or LDL"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    since: str | None = typer.Option(None, help="Only use tests on or after this date"),
) -> None:
    """
    Show statistics and trend for one analyte.
    """
    try:
        param_loader = init_config(config_path)
        processing_config = param_loader.get_processing_config()

        definition = init_catalog(param_loader).lookup(analyte)
        name = definition.name if definition else analyte

        since_date: datetime | None = None
        if since:
            since_date = parse_datetime(since, timezone_str=processing_config.timezone)

        store = LedgerStore(param_loader.get_storage_config().ledger_path)
        points = chart_points(store.list_tests(), name, since_date)

        if not points:
            typer.echo(f"No results for {name}")
            return

        summary = compute_stats(points)
        unit = points[-1].unit

        typer.echo(f"{name} ({summary.count} results over {summary.data_span_days} days)")
        typer.echo(f"  Average: {summary.average:.2f} {unit}")
        typer.echo(f"  Min: {summary.minimum:g}  Max: {summary.maximum:g}  Median: {summary.median:g}")
        typer.echo(f"  Trend: {trend_direction(points).value}")

        change = percent_change(points)
        if change is not None:
            typer.echo(f"  Change: {change:+.1f}%")
        if summary.slope_per_year is not None:
            typer.echo(f"  Slope: {summary.slope_per_year:+.2f} {unit} per year")

        for point in points:
            typer.echo(f"    {point.date.date().isoformat()}  {point.value:g}  {point.status.value}")

    except BloodWorkAnalyzerError as e:
        logger.error(f"Stats failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def delete(
    test_id: str = typer.Argument(..., help="ID of the blood test to delete"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Delete a blood test from the ledger.
    """
    try:
        param_loader = init_config(config_path)

        store = LedgerStore(param_loader.get_storage_config().ledger_path)
        if not store.delete(test_id):
            raise BloodWorkAnalyzerError(f"No blood test with id {test_id}")

        typer.echo(f"Deleted blood test {test_id}")

    except BloodWorkAnalyzerError as e:
        logger.error(f"Delete failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def catalog(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    panel: str | None = typer.Option(None, help="Only show one panel"),
) -> None:
    """
    List the analytes in the reference catalog.
    """
    try:
        param_loader = init_config(config_path)

        for panel_name, definitions in init_catalog(param_loader).panels().items():
            if panel and panel_name.lower() != panel.lower():
                continue
            typer.echo(panel_name)
            for definition in definitions:
                range_text = definition.reference_range or "-"
                typer.echo(f"  {definition.name}: {range_text} {definition.unit}".rstrip())

    except BloodWorkAnalyzerError as e:
        logger.error(f"Catalog failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
