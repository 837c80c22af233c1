"""
Reference range parsing and classification.

A reference range is kept as the display string shown to the user
("70-100", "<200", ">60 mL/min/1.73m²") together with the numeric bounds
parsed from it. Status is always derived from the bounds, never stored.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")
_DASHES = re.compile(r"[‐‑‒–—−]")


class TestStatus(str, Enum):
    """Status of a result relative to its reference range."""

    __test__ = False

    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"


def _leading_number(text: str) -> float | None:
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def classify_bounds(value: float, low: float | None, high: float | None) -> TestStatus:
    """
    Classify a value against optional inclusive bounds.

    Args:
        value: Measured value.
        low: Lower bound, or None for unbounded below.
        high: Upper bound, or None for unbounded above.

    Returns:
        LOW below the lower bound, HIGH above the upper bound, otherwise NORMAL.
    """
    if low is not None and value < low:
        return TestStatus.LOW
    if high is not None and value > high:
        return TestStatus.HIGH
    return TestStatus.NORMAL


class ReferenceRange(BaseModel):
    """Parsed normal range with its display text."""

    low: float | None = None
    high: float | None = None
    text: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, text: str | None) -> "ReferenceRange":
        """
        Parse a reference range string.

        Supported formats:
            "4.5-11.0 K/µL", "41.0-50.0%", "<200 mg/dL", "≤5.7",
            ">60 mL/min/1.73m²", "8-16". A bare number "x" is read as the
        degenerate range x-x. Anything unparseable yields an unbounded range.

        Args:
            text: Range as printed on a report or stored in the ledger.

        Returns:
            ReferenceRange with the original text preserved.
        """
        raw = (text or "").strip()
        if not raw:
            return cls(text="")

        normalized = _DASHES.sub("-", raw)

        if normalized[0] in "<≤":
            upper = _leading_number(normalized[1:].lstrip("="))
            if upper is not None:
                return cls(high=upper, text=raw)
        if normalized[0] in ">≥":
            lower = _leading_number(normalized[1:].lstrip("="))
            if lower is not None:
                return cls(low=lower, text=raw)

        parts = [p for p in normalized.split("-", 1) if p.strip()]
        if len(parts) == 2:
            return cls(low=_leading_number(parts[0]), high=_leading_number(parts[1]), text=raw)

        single = _leading_number(normalized)
        if single is not None:
            return cls(low=single, high=single, text=raw)

        return cls(text=raw)

    @property
    def is_bounded(self) -> bool:
        """True when at least one bound is known."""
        return self.low is not None or self.high is not None

    def classify(self, value: float) -> TestStatus:
        """Classify a value against this range (inclusive bounds)."""
        return classify_bounds(value, self.low, self.high)

    def contains(self, value: float) -> bool:
        """True when the value falls inside the range."""
        return self.classify(value) == TestStatus.NORMAL
