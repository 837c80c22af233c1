"""
JSON import service.

Lab results arrive as JSON in a handful of shapes. The shape of a document is
detected once from its top level and the document is handed to exactly one
importer; there is no trial-and-error fallthrough between formats.

Supported formats:
    blood_tests: The interchange format, a list of BloodTest objects (also
        accepted wrapped as ``{"blood_tests": [...]}``).
    enhanced: ``patient_info`` plus panels with a ``test_date`` and a
        ``results`` map of ``{name, value, units, flag, note}`` objects.
    simple: Panels holding lists of records whose single non-standard key is
        the test name.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from blood_work_analyzer.domain.blood_test import BloodTest, TestResult
from blood_work_analyzer.services.catalog import ReferenceCatalog, default_catalog
from blood_work_analyzer.utils.exceptions import ImportFormatError, ValidationError
from blood_work_analyzer.utils.hashing import generate_record_id
from blood_work_analyzer.utils.parameters import ProcessingConfig
from blood_work_analyzer.utils.timezone_utils import parse_datetime

logger = logging.getLogger(__name__)

SIMPLE_PANELS = {
    "BC_Complete_Blood_Count": "Complete Blood Count",
    "CMP_Metabolism_Studies": "Comprehensive Metabolic Panel",
    "Cholesterol_Results": "Cholesterol Panel",
}

ENHANCED_PANELS = {
    "CBC_Complete_Blood_Count": "Complete Blood Count",
    "CMP_Metabolism_Studies": "Comprehensive Metabolic Panel",
    "Cholesterol_Results": "Cholesterol Panel",
}

SIMPLE_STANDARD_KEYS = {"date", "unit", "reference_range", "note", "time", "sample"}


class ImportFormat(str, Enum):
    """Recognized JSON document shapes."""

    BLOOD_TESTS = "blood_tests"
    ENHANCED = "enhanced"
    SIMPLE = "simple"


class SkippedEntry(BaseModel):
    """An entry of the document that did not become a result."""

    panel: str
    name: str = ""
    reason: str


class ImportResult(BaseModel):
    """Blood tests read from one document plus what was skipped."""

    format: ImportFormat
    tests: list[BloodTest] = Field(default_factory=list)
    skipped: list[SkippedEntry] = Field(default_factory=list)

    @property
    def result_count(self) -> int:
        return sum(len(test.results) for test in self.tests)


def detect_format(document: Any) -> ImportFormat:
    """
    Detect the shape of an imported JSON document.

    Args:
        document: Decoded JSON value.

    Returns:
        The detected format.

    Raises:
        ImportFormatError: If the document matches no known shape.
    """
    if isinstance(document, list):
        return ImportFormat.BLOOD_TESTS

    if isinstance(document, dict):
        if "patient_info" in document:
            return ImportFormat.ENHANCED
        if any(isinstance(document.get(key), list) for key in SIMPLE_PANELS):
            return ImportFormat.SIMPLE
        if isinstance(document.get("blood_tests"), list):
            return ImportFormat.BLOOD_TESTS

    raise ImportFormatError(
        "Unrecognized lab data format: expected a list of blood tests, "
        "an object with 'patient_info', or simple panel lists"
    )


def numeric_value(raw: Any) -> float | None:
    """
    Read a numeric value that may be printed as a string.

    Strings such as ">90" or "< 5" yield their numeric part.

    Args:
        raw: Decoded JSON value.

    Returns:
        Float value, or None for null and non-numeric values.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        return float(raw)

    if isinstance(raw, str):
        cleaned = raw.replace(">", "").replace("<", "").replace("=", "").replace(" ", "")
        try:
            return float(cleaned)
        except ValueError:
            return None

    return None


class ImportService:
    """Service for importing lab results from JSON documents."""

    def __init__(
        self,
        catalog: ReferenceCatalog | None = None,
        processing_config: ProcessingConfig | None = None,
    ) -> None:
        """
        Initialize import service.

        Args:
            catalog: Reference catalog used to normalize result names.
            processing_config: Processing configuration (timezone, record IDs).
        """
        self.catalog = catalog or default_catalog()
        self.processing_config = processing_config or ProcessingConfig()

    def _result(
        self,
        name: str,
        value: float,
        unit: str | None,
        reference_range: str | None,
        explanation: str = "",
    ) -> TestResult:
        """Build a result, filling gaps from the catalog when the name is known."""
        definition = self.catalog.lookup(name)
        if definition is None:
            return TestResult(
                name=name,
                value=value,
                unit=unit or "",
                reference_range=reference_range or "",
                explanation=explanation,
            )

        return TestResult(
            name=definition.name,
            value=value,
            unit=unit or definition.unit,
            reference_range=reference_range or definition.reference_range,
            explanation=explanation or definition.explanation,
        )

    def _blood_test(self, date_str: str, test_type: str, results: list[TestResult]) -> BloodTest:
        """
        Wrap results into a BloodTest.

        Raises:
            ValidationError: If the date is not recognizable.
        """
        date = parse_datetime(date_str, timezone_str=self.processing_config.timezone)
        return BloodTest(
            id=generate_record_id(date, test_type, results, self.processing_config.record_id),
            date=date,
            test_type=test_type,
            results=tuple(results),
        )

    def import_blood_tests(self, document: list[Any] | dict[str, Any]) -> ImportResult:
        """
        Import the interchange format.

        Stored ``status`` values are ignored and recomputed.

        Args:
            document: List of BloodTest objects, or an object wrapping one
                under ``blood_tests``.

        Returns:
            Import result.
        """
        entries = document["blood_tests"] if isinstance(document, dict) else document
        result = ImportResult(format=ImportFormat.BLOOD_TESTS)

        for index, entry in enumerate(entries):
            try:
                test = BloodTest.model_validate(entry)
            except PydanticValidationError as e:
                result.skipped.append(
                    SkippedEntry(panel="blood_tests", name=f"#{index}", reason=str(e))
                )
                continue

            result.tests.append(test)

        return result

    def import_enhanced(self, document: dict[str, Any]) -> ImportResult:
        """
        Import the enhanced panel format.

        Args:
            document: Object with ``patient_info`` and panel objects.

        Returns:
            Import result.
        """
        result = ImportResult(format=ImportFormat.ENHANCED)
        patient_date = (document.get("patient_info") or {}).get("test_date")

        for key, test_type in ENHANCED_PANELS.items():
            panel = document.get(key)
            if not isinstance(panel, dict):
                continue

            results: list[TestResult] = []
            for result_key, entry in (panel.get("results") or {}).items():
                if not isinstance(entry, dict):
                    result.skipped.append(SkippedEntry(panel=key, name=result_key, reason="not an object"))
                    continue

                name = entry.get("name") or result_key
                value = numeric_value(entry.get("value"))
                if value is None:
                    result.skipped.append(SkippedEntry(panel=key, name=name, reason="no numeric value"))
                    continue

                explanation = ""
                if entry.get("flag"):
                    explanation += f"[Flag: {entry['flag']}]"
                if entry.get("note"):
                    explanation = f"{explanation} {entry['note']}".strip()

                results.append(self._result(name, value, entry.get("units"), None, explanation))

            if not results:
                result.skipped.append(SkippedEntry(panel=key, reason="no results with values"))
                continue

            try:
                result.tests.append(
                    self._blood_test(panel.get("test_date") or patient_date or "", test_type, results)
                )
            except ValidationError as e:
                result.skipped.append(SkippedEntry(panel=key, reason=str(e)))

        return result

    def import_simple(self, document: dict[str, Any]) -> ImportResult:
        """
        Import the simple panel format.

        Args:
            document: Object mapping panel keys to record lists.

        Returns:
            Import result.
        """
        result = ImportResult(format=ImportFormat.SIMPLE)

        for key, test_type in SIMPLE_PANELS.items():
            records = document.get(key)
            if not isinstance(records, list):
                continue

            results: list[TestResult] = []
            panel_date = ""
            for record in records:
                if not isinstance(record, dict):
                    result.skipped.append(SkippedEntry(panel=key, reason="not an object"))
                    continue

                name = next((k for k in record if k not in SIMPLE_STANDARD_KEYS), None)
                if name is None:
                    result.skipped.append(SkippedEntry(panel=key, reason="no test name"))
                    continue

                value = numeric_value(record[name])
                if value is None:
                    result.skipped.append(SkippedEntry(panel=key, name=name, reason="no numeric value"))
                    continue

                panel_date = panel_date or record.get("date") or ""

                explanation = f"Imported from {test_type}"
                if record.get("note"):
                    explanation += f" - {record['note']}"
                if record.get("time"):
                    explanation += f" (Time: {record['time']})"
                if record.get("sample"):
                    explanation += f" (Sample: {record['sample']})"

                results.append(
                    self._result(
                        name, value, record.get("unit"), record.get("reference_range"), explanation
                    )
                )

            if not results:
                result.skipped.append(SkippedEntry(panel=key, reason="no results with values"))
                continue

            try:
                result.tests.append(self._blood_test(panel_date, test_type, results))
            except ValidationError as e:
                result.skipped.append(SkippedEntry(panel=key, reason=str(e)))

        return result

    def import_document(self, document: Any) -> ImportResult:
        """
        Detect the format of a decoded document and import it.

        Args:
            document: Decoded JSON value.

        Returns:
            Import result.

        Raises:
            ImportFormatError: If the format is not recognized.
        """
        fmt = detect_format(document)
        logger.info(f"Detected {fmt.value} format")

        if fmt == ImportFormat.ENHANCED:
            result = self.import_enhanced(document)
        elif fmt == ImportFormat.SIMPLE:
            result = self.import_simple(document)
        else:
            result = self.import_blood_tests(document)

        for entry in result.skipped:
            logger.debug(f"Skipped {entry.panel} {entry.name}: {entry.reason}")
        logger.info(
            f"Imported {len(result.tests)} blood tests ({result.result_count} results), "
            f"skipped {len(result.skipped)} entries"
        )
        return result

    def import_json(self, text: str) -> ImportResult:
        """
        Import a JSON string.

        Raises:
            ImportFormatError: If the text is not JSON or not a known format.
        """
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Invalid JSON: {e}") from e
        return self.import_document(document)

    def import_file(self, file_path: str | Path) -> ImportResult:
        """
        Import a JSON file.

        Raises:
            ImportFormatError: If the file cannot be read or is not a known format.
        """
        path = Path(file_path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ImportFormatError(f"Failed to read {path}: {e}") from e

        logger.info(f"Importing {path.name}")
        return self.import_json(text)
