"""
Result classification service.

Classifies measured values against catalog reference ranges and summarizes
the status of a set of results.
"""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from blood_work_analyzer.domain.analyte import AnalyteDefinition
from blood_work_analyzer.domain.blood_test import TestResult
from blood_work_analyzer.domain.reference_range import TestStatus, classify_bounds


class StatusSummary(BaseModel):
    """Counts of results per status."""

    total: int = 0
    normal: int = 0
    high: int = 0
    low: int = 0
    abnormal_results: list[TestResult] = Field(default_factory=list)

    @property
    def percent_normal(self) -> float:
        """Share of normal results in percent; 0.0 when there are none."""
        if self.total == 0:
            return 0.0
        return self.normal / self.total * 100


class ResultClassifier:
    """Classifies values against reference ranges."""

    def classify(self, value: float, definition: AnalyteDefinition) -> TestStatus:
        """
        Classify a value against an analyte's catalog range.

        Missing bounds are unbounded and bounds are inclusive.

        Args:
            value: Measured value.
            definition: Catalog definition of the analyte.

        Returns:
            Status of the value.
        """
        return classify_bounds(value, definition.low, definition.high)

    def summarize(self, results: Iterable[TestResult]) -> StatusSummary:
        """
        Summarize result statuses.

        Args:
            results: Results to summarize.

        Returns:
            Status counts and the list of abnormal results.
        """
        summary = StatusSummary()

        for result in results:
            summary.total += 1
            status = result.status
            if status == TestStatus.HIGH:
                summary.high += 1
            elif status == TestStatus.LOW:
                summary.low += 1
            else:
                summary.normal += 1
                continue
            summary.abnormal_results.append(result)

        return summary
