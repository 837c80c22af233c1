"""
Extraction domain models.

Intermediate and final shapes produced while turning lab report text into
TestResults. Content problems are recorded as diagnostics on these models;
they are never raised.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from blood_work_analyzer.domain.blood_test import TestResult


class ParseIssue(str, Enum):
    """Why a line did not produce any result."""

    NO_MATCH = "no_match"
    UNKNOWN_ANALYTE = "unknown_analyte"
    MALFORMED_NUMERIC = "malformed_numeric"


class LineCandidate(BaseModel):
    """One name/value pair recognized on a line, before catalog enrichment."""

    name: str = Field(description="Canonical catalog name")
    value: float
    unit: str | None = None
    qualifier: str | None = Field(None, description="'<' or '>' printed before the value")
    flag: str | None = Field(None, description="'H' or 'L' marker printed by the lab")
    inline_range: str | None = Field(None, description="Range text printed on the line")

    model_config = ConfigDict(frozen=True)


class LineParseResult(BaseModel):
    """Outcome of parsing one line: candidates, or the issue that stopped it."""

    candidates: list[LineCandidate] = Field(default_factory=list)
    issue: ParseIssue | None = None
    detail: str = ""

    @property
    def matched(self) -> bool:
        return bool(self.candidates)

    @classmethod
    def failed(cls, issue: ParseIssue, detail: str = "") -> "LineParseResult":
        return cls(issue=issue, detail=detail)


class LineDiagnostic(BaseModel):
    """A line that produced no result, with the reason."""

    line_number: int = Field(description="1-based line number in the input")
    text: str
    reason: ParseIssue
    detail: str = ""

    model_config = ConfigDict(frozen=True)


class ExtractionResult(BaseModel):
    """
    Everything extracted from one document.

    Attributes:
        results: TestResults in first-encounter order.
        unparsed_lines: Non-blank lines that produced no result.
        diagnostics: One entry per unparsed line.
        duplicates: Names of analytes seen more than once.
    """

    results: list[TestResult] = Field(default_factory=list)
    unparsed_lines: list[str] = Field(default_factory=list)
    diagnostics: list[LineDiagnostic] = Field(default_factory=list)
    duplicates: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.results

    def result_for(self, name: str) -> TestResult | None:
        """Result with the given analyte name, if extracted."""
        return next((r for r in self.results if r.name == name), None)
