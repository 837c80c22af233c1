"""
Statistics and trend service for analyte series.

Builds dated series for one analyte across blood tests and summarizes them:
count, average, extremes, median, span, slope and trend direction.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import Enum

import pandas as pd
from pydantic import BaseModel, ConfigDict

from blood_work_analyzer.domain.blood_test import BloodTest, ChartDataPoint
from blood_work_analyzer.utils.timezone_utils import days_between, make_timezone_aware

logger = logging.getLogger(__name__)

_DAYS_PER_YEAR = 365.25


class TrendDirection(str, Enum):
    """Direction of change between the first and last point of a series."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class SeriesStatistics(BaseModel):
    """
    Summary of one analyte series.

    An empty series reports ``average`` 0.0 rather than a missing value;
    callers that need to tell "no data" apart must check ``count``.
    """

    count: int = 0
    average: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    median: float | None = None
    data_span_days: int = 0
    slope_per_year: float | None = None

    model_config = ConfigDict(frozen=True)


def _values(points: Iterable[ChartDataPoint | float]) -> list[float]:
    return [p.value if isinstance(p, ChartDataPoint) else float(p) for p in points]


def compute_stats(points: Sequence[ChartDataPoint | float]) -> SeriesStatistics:
    """
    Compute summary statistics for a series.

    Args:
        points: Chart points sorted by date, or bare values.

    Returns:
        Series statistics. Span and slope need dated points; the slope is only
        reported for three or more points.
    """
    values = _values(points)
    if not values:
        return SeriesStatistics()

    series = pd.Series(values, dtype="float64")

    dated = [p for p in points if isinstance(p, ChartDataPoint)]
    span_days = days_between(dated[0].date, dated[-1].date) if len(dated) >= 2 else 0

    return SeriesStatistics(
        count=len(values),
        average=float(series.mean()),
        minimum=float(series.min()),
        maximum=float(series.max()),
        median=float(series.median()),
        data_span_days=span_days,
        slope_per_year=slope_per_year(dated) if len(dated) >= 3 else None,
    )


def trend_direction(points: Sequence[ChartDataPoint | float]) -> TrendDirection:
    """
    Trend from the sign of (last - first).

    Only the endpoints are compared; intermediate points do not matter.

    Args:
        points: Series sorted by date.

    Returns:
        STABLE for fewer than two points or equal endpoints.
    """
    values = _values(points)
    if len(values) < 2:
        return TrendDirection.STABLE

    delta = values[-1] - values[0]
    if delta > 0:
        return TrendDirection.INCREASING
    if delta < 0:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def slope_per_year(points: Sequence[ChartDataPoint]) -> float | None:
    """
    Least-squares slope of value over time, in units per year.

    Args:
        points: Dated points.

    Returns:
        Slope, or None when fewer than two distinct dates are present.
    """
    if len(points) < 2:
        return None

    origin = points[0].date
    frame = pd.DataFrame(
        {
            "years": [(p.date - origin).total_seconds() / 86400 / _DAYS_PER_YEAR for p in points],
            "value": [p.value for p in points],
        }
    )

    variance = frame["years"].var(ddof=0)
    if not variance:
        return None

    deviations = frame - frame.mean()
    covariance = (deviations["years"] * deviations["value"]).mean()
    return float(covariance / variance)


def percent_change(points: Sequence[ChartDataPoint | float]) -> float | None:
    """
    Relative change from first to last value in percent.

    Returns:
        None for fewer than two points or a zero starting value.
    """
    values = _values(points)
    if len(values) < 2 or values[0] == 0:
        return None
    return (values[-1] - values[0]) / abs(values[0]) * 100


def chart_points(
    tests: Iterable[BloodTest],
    analyte: str,
    since: datetime | None = None,
) -> list[ChartDataPoint]:
    """
    Collect the dated values of one analyte across blood tests.

    Args:
        tests: Blood tests to scan.
        analyte: Result name to collect.
        since: Only tests on or after this date are used. A naive datetime
            is read as UTC.

    Returns:
        Points sorted by date.
    """
    if since is not None and since.tzinfo is None:
        since = make_timezone_aware(since)

    points = [
        ChartDataPoint(date=test.date, value=result.value, status=result.status, unit=result.unit)
        for test in tests
        if since is None or test.date >= since
        for result in test.results
        if result.name == analyte
    ]
    points.sort(key=lambda p: p.date)

    logger.debug(f"Collected {len(points)} points for {analyte}")
    return points


def available_analytes(tests: Iterable[BloodTest]) -> list[str]:
    """Sorted names of every analyte present in the given tests."""
    return sorted({result.name for test in tests for result in test.results})
