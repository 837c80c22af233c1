"""Unit tests for analyte statistics and trends."""

from datetime import datetime

import pytz

from blood_work_analyzer.domain.blood_test import BloodTest, ChartDataPoint, TestResult
from blood_work_analyzer.domain.reference_range import TestStatus
from blood_work_analyzer.services.statistics import (
    TrendDirection,
    available_analytes,
    chart_points,
    compute_stats,
    percent_change,
    trend_direction,
)


def _point(year: int, value: float) -> ChartDataPoint:
    return ChartDataPoint(
        date=datetime(year, 1, 1, tzinfo=pytz.UTC),
        value=value,
        status=TestStatus.NORMAL,
        unit="mg/dL",
    )


def _test(date: datetime, test_type: str, **values: float) -> BloodTest:
    return BloodTest(
        date=date,
        test_type=test_type,
        results=tuple(
            TestResult(name=name, value=value, unit="mg/dL", reference_range="70-100")
            for name, value in values.items()
        ),
    )


def test_empty_series() -> None:
    """Test that empty input reports count 0 and average 0 without raising."""
    stats = compute_stats([])

    if stats.count != 0:
        raise AssertionError(f"Expected count 0, got {stats.count}")
    if stats.average != 0.0:
        raise AssertionError(f"Expected average 0.0, got {stats.average}")
    if stats.minimum is not None or stats.maximum is not None or stats.median is not None:
        raise AssertionError("Expected undefined min, max and median")


def test_basic_statistics() -> None:
    """Test count, average, extremes and median."""
    stats = compute_stats([4.0, 1.0, 3.0, 2.0])

    if stats.count != 4:
        raise AssertionError(f"Expected count 4, got {stats.count}")
    if stats.average != 2.5:
        raise AssertionError(f"Expected average 2.5, got {stats.average}")
    if (stats.minimum, stats.maximum) != (1.0, 4.0):
        raise AssertionError(f"Unexpected extremes: {stats.minimum}, {stats.maximum}")
    if stats.median != 2.5:
        raise AssertionError(f"Expected median 2.5, got {stats.median}")
    if stats.slope_per_year is not None:
        raise AssertionError("Bare values carry no dates, so no slope")


def test_trend_two_points() -> None:
    """Test trend from the first and last point."""
    cases = [
        ([10.0, 15.0], TrendDirection.INCREASING),
        ([15.0, 10.0], TrendDirection.DECREASING),
        ([10.0, 10.0], TrendDirection.STABLE),
        ([10.0], TrendDirection.STABLE),
        ([], TrendDirection.STABLE),
    ]
    for values, expected in cases:
        trend = trend_direction(values)
        if trend != expected:
            raise AssertionError(f"Expected {expected} for {values}, got {trend}")


def test_trend_ignores_intermediate_points() -> None:
    """Test that only the endpoints decide the trend."""
    if trend_direction([10.0, 50.0, 9.0]) != TrendDirection.DECREASING:
        raise AssertionError("Expected DECREASING")


def test_span_and_slope() -> None:
    """Test span in days and slope per year for dated points."""
    points = [_point(2021, 100.0), _point(2022, 110.0), _point(2023, 120.0)]
    stats = compute_stats(points)

    if stats.data_span_days != 730:
        raise AssertionError(f"Expected 730 days, got {stats.data_span_days}")
    if stats.slope_per_year is None or abs(stats.slope_per_year - 10.0) > 0.05:
        raise AssertionError(f"Expected slope near 10/year, got {stats.slope_per_year}")

    two = compute_stats(points[:2])
    if two.slope_per_year is not None:
        raise AssertionError("Slope needs at least three points")
    if two.data_span_days != 365:
        raise AssertionError(f"Expected 365 days, got {two.data_span_days}")


def test_percent_change() -> None:
    """Test relative change from first to last value."""
    if percent_change([100.0, 110.0]) != 10.0:
        raise AssertionError(f"Expected 10.0, got {percent_change([100.0, 110.0])}")
    if percent_change([0.0, 5.0]) is not None:
        raise AssertionError("Expected None for a zero start")
    if percent_change([5.0]) is not None:
        raise AssertionError("Expected None for a single point")


def test_chart_points() -> None:
    """Test collecting one analyte across blood tests."""
    tests = [
        _test(datetime(2024, 6, 1, tzinfo=pytz.UTC), "CMP", Glucose=105, Sodium=140),
        _test(datetime(2023, 6, 1, tzinfo=pytz.UTC), "CMP", Glucose=92),
        _test(datetime(2024, 1, 1, tzinfo=pytz.UTC), "Lipid Panel", LDL=120),
    ]

    points = chart_points(tests, "Glucose")
    if [p.value for p in points] != [92.0, 105.0]:
        raise AssertionError(f"Expected points sorted by date, got {points}")
    if points[1].status != TestStatus.HIGH:
        raise AssertionError(f"Expected HIGH status, got {points[1].status}")

    recent = chart_points(tests, "Glucose", since=datetime(2024, 1, 1))
    if [p.value for p in recent] != [105.0]:
        raise AssertionError(f"Unexpected filtered points: {recent}")

    if available_analytes(tests) != ["Glucose", "LDL", "Sodium"]:
        raise AssertionError(f"Unexpected analytes: {available_analytes(tests)}")
