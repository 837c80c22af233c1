"""Unit tests for the extraction service."""

from datetime import datetime

import pytz

from blood_work_analyzer.domain.blood_test import TestResult
from blood_work_analyzer.domain.extraction import LineCandidate, LineParseResult, ParseIssue
from blood_work_analyzer.domain.reference_range import TestStatus
from blood_work_analyzer.services.catalog import default_catalog
from blood_work_analyzer.services.extraction import ExtractionService
from blood_work_analyzer.utils.parameters import (
    DuplicatePolicy,
    ParsingConfig,
    ProcessingConfig,
)

SAMPLE_REPORT = """\
LABCORP REPORT
Patient Name: John Doe
Date Collected: 03/01/2024

WBC 6.2 K/uL 4.5-11.0
Hemoglobin 14.1 g/dL (13.5-17.5)
Glucose 105 mg/dL H
LDL Cholesterol 130 mg/dL
Vitamin D 25 ng/mL
"""


def _service(policy: DuplicatePolicy = DuplicatePolicy.LAST_WINS) -> ExtractionService:
    return ExtractionService(
        default_catalog(),
        ParsingConfig(duplicate_policy=policy),
        ProcessingConfig(timezone="UTC"),
    )


def test_glucose_line_is_normal() -> None:
    """Test a glucose line with unit and range."""
    extraction = _service().extract("Glucose: 95 mg/dL (70-100)")

    if len(extraction.results) != 1:
        raise AssertionError(f"Expected 1 result, got {len(extraction.results)}")

    result = extraction.results[0]
    if result.name != "Glucose":
        raise AssertionError(f"Expected Glucose, got {result.name}")
    if result.value != 95.0:
        raise AssertionError(f"Expected 95.0, got {result.value}")
    if result.unit != "mg/dL":
        raise AssertionError(f"Expected mg/dL, got {result.unit}")
    if result.status != TestStatus.NORMAL:
        raise AssertionError(f"Expected NORMAL, got {result.status}")


def test_upper_bound_is_inclusive() -> None:
    """Test that HbA1c <5.7 reads as 5.7 and is normal."""
    extraction = _service().extract("HbA1c <5.7")

    result = extraction.results[0]
    if result.name != "HbA1c":
        raise AssertionError(f"Expected HbA1c, got {result.name}")
    if result.value != 5.7:
        raise AssertionError(f"Expected 5.7, got {result.value}")
    if result.status != TestStatus.NORMAL:
        raise AssertionError(f"Expected NORMAL, got {result.status}")
    if "[Reported as <5.7]" not in result.explanation:
        raise AssertionError(f"Expected qualifier in explanation: {result.explanation!r}")


def test_sodium_above_range_is_high() -> None:
    """Test a value above the catalog range."""
    extraction = _service().extract("Sodium 150 mEq/L")

    result = extraction.results[0]
    if result.status != TestStatus.HIGH:
        raise AssertionError(f"Expected HIGH, got {result.status}")
    if result.reference_range != "135-145":
        raise AssertionError(f"Expected range 135-145, got {result.reference_range}")


def test_line_without_digits_is_unparsed() -> None:
    """Test that a header line produces a diagnostic and no result."""
    line = "Patient Name: John Doe"
    extraction = _service().extract(line)

    if extraction.results:
        raise AssertionError(f"Expected no results, got {extraction.results}")
    if extraction.unparsed_lines != [line]:
        raise AssertionError(f"Unexpected unparsed lines: {extraction.unparsed_lines}")
    if extraction.diagnostics[0].reason != ParseIssue.NO_MATCH:
        raise AssertionError(f"Expected NO_MATCH, got {extraction.diagnostics[0].reason}")
    if extraction.diagnostics[0].line_number != 1:
        raise AssertionError(f"Expected line 1, got {extraction.diagnostics[0].line_number}")


def test_empty_input() -> None:
    """Test that empty and blank input yields an empty result."""
    for text in ["", "\n\n   \n"]:
        extraction = _service().extract(text)
        if extraction.results or extraction.diagnostics or extraction.unparsed_lines:
            raise AssertionError(f"Expected empty extraction for {text!r}")


def test_sample_report() -> None:
    """Test a multi-line report with noise."""
    extraction = _service().extract(SAMPLE_REPORT)

    names = [r.name for r in extraction.results]
    if names != ["WBC", "HGB", "Glucose", "LDL"]:
        raise AssertionError(f"Unexpected results: {names}")

    glucose = extraction.result_for("Glucose")
    if glucose is None or glucose.status != TestStatus.HIGH:
        raise AssertionError("Expected high glucose")
    if "[Flag: H]" not in glucose.explanation:
        raise AssertionError(f"Expected flag in explanation: {glucose.explanation!r}")

    ldl = extraction.result_for("LDL")
    if ldl is None or ldl.status != TestStatus.HIGH:
        raise AssertionError("Expected high LDL (<100 range)")

    reasons = {d.text: d.reason for d in extraction.diagnostics}
    if reasons.get("LABCORP REPORT") != ParseIssue.NO_MATCH:
        raise AssertionError(f"Unexpected reasons: {reasons}")
    if reasons.get("Vitamin D 25 ng/mL") != ParseIssue.UNKNOWN_ANALYTE:
        raise AssertionError(f"Unexpected reasons: {reasons}")
    if "" in extraction.unparsed_lines:
        raise AssertionError("Blank lines must not be reported")


def test_extraction_is_deterministic() -> None:
    """Test that extracting the same text twice gives equal results."""
    service = _service()

    first = service.extract(SAMPLE_REPORT)
    second = service.extract(SAMPLE_REPORT)

    if first != second:
        raise AssertionError("Expected identical extraction results")


def test_duplicate_last_wins_keeps_first_position() -> None:
    """Test the default duplicate policy."""
    extraction = _service().extract("Glucose 90\nSodium 140\nGlucose 110")

    names = [r.name for r in extraction.results]
    if names != ["Glucose", "Sodium"]:
        raise AssertionError(f"Unexpected order: {names}")
    if extraction.results[0].value != 110.0:
        raise AssertionError(f"Expected 110.0, got {extraction.results[0].value}")
    if extraction.duplicates != ["Glucose"]:
        raise AssertionError(f"Unexpected duplicates: {extraction.duplicates}")


def test_duplicate_first_wins() -> None:
    """Test the first-wins duplicate policy."""
    extraction = _service(DuplicatePolicy.FIRST_WINS).extract("Glucose 90\nGlucose 110")

    if extraction.results[0].value != 90.0:
        raise AssertionError(f"Expected 90.0, got {extraction.results[0].value}")
    if extraction.duplicates != ["Glucose"]:
        raise AssertionError(f"Unexpected duplicates: {extraction.duplicates}")


def test_blood_pressure_produces_two_results() -> None:
    """Test composite blood pressure extraction."""
    extraction = _service().extract("Blood Pressure: 130/85 mmHg")

    systolic = extraction.result_for("Systolic Blood Pressure")
    diastolic = extraction.result_for("Diastolic Blood Pressure")

    if systolic is None or diastolic is None:
        raise AssertionError(f"Expected both components, got {extraction.results}")
    if systolic.status != TestStatus.HIGH:
        raise AssertionError(f"Expected HIGH systolic, got {systolic.status}")
    if diastolic.status != TestStatus.HIGH:
        raise AssertionError(f"Expected HIGH diastolic, got {diastolic.status}")
    if systolic.reference_range != "90-120":
        raise AssertionError(f"Expected 90-120, got {systolic.reference_range}")


def test_unit_defaults_to_catalog_unit() -> None:
    """Test that a missing unit is filled from the catalog."""
    extraction = _service().extract("Glucose 95")

    if extraction.results[0].unit != "mg/dL":
        raise AssertionError(f"Expected mg/dL, got {extraction.results[0].unit}")


def test_reported_unit_is_kept() -> None:
    """Test that a unit different from the catalog unit is kept."""
    extraction = _service().extract("Glucose 5.3 mmol/L")

    if extraction.results[0].unit != "mmol/L":
        raise AssertionError(f"Expected mmol/L, got {extraction.results[0].unit}")


def test_result_round_trip() -> None:
    """Test that an extracted result survives JSON serialization."""
    extraction = _service().extract("Sodium 150 mEq/L")
    result = extraction.results[0]

    data = result.model_dump(mode="json")
    if data["status"] != "high":
        raise AssertionError(f"Expected serialized status 'high', got {data['status']}")

    restored = TestResult.model_validate(data)
    if restored != result:
        raise AssertionError(f"Round trip changed result: {restored} != {result}")


def test_build_blood_test() -> None:
    """Test wrapping extracted results into a blood test."""
    service = _service()
    date = datetime(2024, 3, 1, 8, 0)

    blood_test, extraction = service.build_blood_test(SAMPLE_REPORT, date, "Annual Physical")
    again, _ = service.build_blood_test(SAMPLE_REPORT, date, "Annual Physical")

    if blood_test.id != again.id:
        raise AssertionError("Expected deterministic blood test ID")
    if blood_test.date.tzinfo is None:
        raise AssertionError("Expected timezone-aware date")
    if blood_test.date != pytz.UTC.localize(date):
        raise AssertionError(f"Unexpected date: {blood_test.date}")
    if list(blood_test.results) != extraction.results:
        raise AssertionError("Expected the extracted results on the blood test")
    if blood_test.test_type != "Annual Physical":
        raise AssertionError(f"Unexpected test type: {blood_test.test_type}")


def test_related_analytes_do_not_overwrite_each_other() -> None:
    """Test that absolute counts and ratios leave percent and HDL results alone."""
    report = (
        "Lymphocytes 30 %\n"
        "Lymphocytes Absolute 2.0 K/uL\n"
        "HDL Cholesterol 55 mg/dL\n"
        "Cholesterol/HDL Ratio 3.5"
    )
    extraction = _service().extract(report)

    values = {r.name: (r.value, r.status) for r in extraction.results}
    expected = {
        "Lymphs %": (30.0, TestStatus.NORMAL),
        "HDL": (55.0, TestStatus.NORMAL),
    }
    if values != expected:
        raise AssertionError(f"Unexpected results: {values}")
    if extraction.duplicates:
        raise AssertionError(f"Expected no duplicates, got {extraction.duplicates}")

    reasons = [(d.line_number, d.reason, d.detail) for d in extraction.diagnostics]
    if reasons != [
        (2, ParseIssue.UNKNOWN_ANALYTE, "Lymphocytes Absolute"),
        (4, ParseIssue.UNKNOWN_ANALYTE, "Cholesterol/HDL Ratio"),
    ]:
        raise AssertionError(f"Unexpected diagnostics: {reasons}")


class _OutsideCatalogParser:
    """Line parser that reports a name the catalog does not know."""

    def parse(self, line: str) -> LineParseResult:
        return LineParseResult(candidates=[LineCandidate(name="Ferritin", value=80.0)])


def test_candidate_outside_catalog_is_reported() -> None:
    """Test that a candidate the catalog cannot resolve yields a diagnostic."""
    service = _service()
    service.line_parser = _OutsideCatalogParser()

    extraction = service.extract("Ferritin 80 ng/mL")

    if extraction.results:
        raise AssertionError(f"Expected no results, got {extraction.results}")
    if extraction.unparsed_lines != ["Ferritin 80 ng/mL"]:
        raise AssertionError(f"Unexpected unparsed lines: {extraction.unparsed_lines}")
    diagnostic = extraction.diagnostics[0]
    if (diagnostic.reason, diagnostic.detail) != (ParseIssue.UNKNOWN_ANALYTE, "Ferritin"):
        raise AssertionError(f"Unexpected diagnostic: {diagnostic}")
