"""
Extraction service for turning lab report text into test results.

Splits text into lines, parses each line against the reference catalog,
enriches candidates with catalog units, ranges and explanations, and
resolves repeated analytes according to the configured duplicate policy.
Content problems never raise; they are reported as diagnostics.
"""

import logging
from datetime import datetime

from blood_work_analyzer.domain.analyte import AnalyteDefinition
from blood_work_analyzer.domain.blood_test import BloodTest, TestResult
from blood_work_analyzer.domain.extraction import (
    ExtractionResult,
    LineCandidate,
    LineDiagnostic,
    ParseIssue,
)
from blood_work_analyzer.infrastructure.parsers.line_parser import LineParser
from blood_work_analyzer.services.catalog import ReferenceCatalog, default_catalog
from blood_work_analyzer.utils.hashing import generate_record_id
from blood_work_analyzer.utils.parameters import (
    DuplicatePolicy,
    ParsingConfig,
    ProcessingConfig,
)
from blood_work_analyzer.utils.timezone_utils import make_timezone_aware

logger = logging.getLogger(__name__)


class ExtractionService:
    """
    Service for extracting TestResults from free text.

    Stateless per call: the same text always yields the same result.
    """

    def __init__(
        self,
        catalog: ReferenceCatalog | None = None,
        parsing_config: ParsingConfig | None = None,
        processing_config: ProcessingConfig | None = None,
    ) -> None:
        """
        Initialize extraction service.

        Args:
            catalog: Reference catalog. The packaged catalog is used when omitted.
            parsing_config: Parsing configuration (duplicate policy, units).
            processing_config: Processing configuration (timezone, record IDs).
        """
        self.catalog = catalog or default_catalog()
        self.parsing_config = parsing_config or ParsingConfig()
        self.processing_config = processing_config or ProcessingConfig()
        self.line_parser = LineParser(self.catalog, self.parsing_config)

    def _build_result(self, candidate: LineCandidate, definition: AnalyteDefinition) -> TestResult:
        """
        Enrich a candidate with catalog data.

        Args:
            candidate: Parsed name/value pair.
            definition: Catalog definition for the candidate name.

        Returns:
            TestResult with unit, reference range and explanation.
        """
        unit = candidate.unit or definition.unit
        if candidate.unit and definition.unit and candidate.unit != definition.unit:
            logger.warning(
                f"{definition.name}: unit {candidate.unit!r} differs from "
                f"reference unit {definition.unit!r}"
            )

        explanation = definition.explanation
        if candidate.flag:
            explanation = f"{explanation} [Flag: {candidate.flag}]".strip()
        if candidate.qualifier:
            explanation = f"{explanation} [Reported as {candidate.qualifier}{candidate.value:g}]".strip()

        return TestResult(
            name=definition.name,
            value=candidate.value,
            unit=unit,
            reference_range=definition.reference_range,
            explanation=explanation,
        )

    def extract(self, raw_text: str) -> ExtractionResult:
        """
        Extract test results from report text.

        Args:
            raw_text: Plain text of a lab report.

        Returns:
            Extraction result with results in first-encounter order, unparsed
            lines and per-line diagnostics.
        """
        results: dict[str, TestResult] = {}
        extraction = ExtractionResult()

        for line_number, line in enumerate(raw_text.splitlines(), start=1):
            if not line.strip():
                if self.parsing_config.skip_blank_lines:
                    continue
                extraction.unparsed_lines.append(line)
                continue

            parsed = self.line_parser.parse(line)
            if not parsed.matched:
                extraction.unparsed_lines.append(line)
                extraction.diagnostics.append(
                    LineDiagnostic(
                        line_number=line_number,
                        text=line,
                        reason=parsed.issue,
                        detail=parsed.detail,
                    )
                )
                logger.debug(f"Line {line_number} not parsed ({parsed.issue.value}): {line!r}")
                continue

            definitions = [self.catalog.lookup(c.name) for c in parsed.candidates]
            unresolved = [c.name for c, d in zip(parsed.candidates, definitions) if d is None]
            if unresolved:
                extraction.unparsed_lines.append(line)
                extraction.diagnostics.append(
                    LineDiagnostic(
                        line_number=line_number,
                        text=line,
                        reason=ParseIssue.UNKNOWN_ANALYTE,
                        detail=", ".join(unresolved),
                    )
                )
                logger.warning(f"Line {line_number}: {unresolved} missing from the catalog")
                continue

            for candidate, definition in zip(parsed.candidates, definitions):
                result = self._build_result(candidate, definition)

                if result.name in results:
                    extraction.duplicates.append(result.name)
                    if self.parsing_config.duplicate_policy == DuplicatePolicy.FIRST_WINS:
                        logger.debug(f"Ignoring repeated {result.name} on line {line_number}")
                        continue
                    logger.debug(f"Overwriting {result.name} with line {line_number}")

                results[result.name] = result

        extraction.results = list(results.values())

        logger.info(
            f"Extracted {len(extraction.results)} results, "
            f"{len(extraction.diagnostics)} lines not parsed"
        )
        return extraction

    def build_blood_test(
        self,
        raw_text: str,
        date: datetime,
        test_type: str,
    ) -> tuple[BloodTest, ExtractionResult]:
        """
        Extract results and wrap them into a BloodTest.

        Args:
            raw_text: Plain text of a lab report.
            date: Date the sample was taken. Naive datetimes are localized to
                the configured timezone.
            test_type: Panel label.

        Returns:
            Tuple of (blood test, extraction result).
        """
        extraction = self.extract(raw_text)
        sample_date = make_timezone_aware(date, self.processing_config.timezone, assume_local=True)

        blood_test = BloodTest(
            id=generate_record_id(
                sample_date, test_type, extraction.results, self.processing_config.record_id
            ),
            date=sample_date,
            test_type=test_type,
            results=tuple(extraction.results),
        )
        return blood_test, extraction
