"""Unit tests for the reference catalog."""

from pathlib import Path

import pytest

from blood_work_analyzer.domain.analyte import AnalyteDefinition, AnalyteKind, normalize_name
from blood_work_analyzer.services.catalog import ReferenceCatalog, default_catalog, load_catalog
from blood_work_analyzer.utils.exceptions import CatalogError


def test_every_kind_has_an_entry() -> None:
    """Test that the packaged catalog covers every analyte kind."""
    catalog = default_catalog()

    if len(catalog) != len(AnalyteKind):
        raise AssertionError(f"Expected {len(AnalyteKind)} entries, got {len(catalog)}")
    for kind in AnalyteKind:
        if catalog.get(kind).kind != kind:
            raise AssertionError(f"Wrong definition for {kind}")


def test_lookup_is_tolerant() -> None:
    """Test case, whitespace, punctuation and synonym tolerance."""
    catalog = default_catalog()
    cases = {
        "Glucose": "Glucose",
        "  GLUCOSE ": "Glucose",
        "white blood cells": "WBC",
        "White-Blood-Cell Count": "WBC",
        "free  t4": "Free T4",
        "Neutrophils%": "Neutrophils %",
        "Cholesterol, Total": "Total Cholesterol",
        "BUN": "Urea Nitrogen",
    }
    for name, expected in cases.items():
        definition = catalog.lookup(name)
        if definition is None or definition.name != expected:
            raise AssertionError(f"Expected {expected} for {name!r}, got {definition}")

    if catalog.lookup("Vitamin D") is not None:
        raise AssertionError("Expected None for an unknown analyte")
    if "Vitamin D" in catalog or "hdl" not in catalog:
        raise AssertionError("Unexpected membership result")


def test_match_prefix_prefers_longest_alias() -> None:
    """Test that longer aliases win over their prefixes."""
    catalog = default_catalog()

    match = catalog.match_prefix("Hemoglobin A1c 5.4 %")
    if match is None or match[0].name != "HbA1c":
        raise AssertionError(f"Expected HbA1c, got {match}")
    if match[1] != len("Hemoglobin A1c"):
        raise AssertionError(f"Unexpected end offset: {match[1]}")

    match = catalog.match_prefix("Free T4 1.2")
    if match is None or match[0].name != "Free T4":
        raise AssertionError(f"Expected Free T4, got {match}")

    if catalog.match_prefix("Hbx 12") is not None:
        raise AssertionError("Expected no match when an alias is not followed by a boundary")


def test_composite_definition() -> None:
    """Test the blood pressure composite entry."""
    definition = default_catalog().get(AnalyteKind.BLOOD_PRESSURE)

    if not definition.is_composite:
        raise AssertionError("Expected Blood Pressure to be composite")
    if definition.components != (AnalyteKind.SYSTOLIC_BP, AnalyteKind.DIASTOLIC_BP):
        raise AssertionError(f"Unexpected components: {definition.components}")
    if definition.bounds.is_bounded:
        raise AssertionError("Composite analytes carry no range of their own")


def test_catalog_ranges() -> None:
    """Test reference ranges parsed from the packaged data."""
    catalog = default_catalog()

    glucose = catalog.get(AnalyteKind.GLUCOSE)
    if (glucose.low, glucose.high) != (70.0, 100.0):
        raise AssertionError(f"Unexpected glucose range: {glucose.low}-{glucose.high}")

    hdl = catalog.get(AnalyteKind.HDL)
    if (hdl.low, hdl.high) != (40.0, None):
        raise AssertionError(f"Unexpected HDL range: {hdl.low}-{hdl.high}")

    cholesterol = catalog.get(AnalyteKind.TOTAL_CHOLESTEROL)
    if (cholesterol.low, cholesterol.high) != (None, 200.0):
        raise AssertionError(f"Unexpected cholesterol range: {cholesterol.low}-{cholesterol.high}")


def test_panels_and_units() -> None:
    """Test panel grouping and unit listing."""
    catalog = default_catalog()
    panels = catalog.panels()

    for panel in ["CBC", "CMP", "Lipid Panel", "Thyroid", "Diabetes", "Vitals"]:
        if panel not in panels:
            raise AssertionError(f"Missing panel {panel}")

    units = catalog.units()
    if "mg/dL" not in units or len(units) != len(set(units)):
        raise AssertionError(f"Unexpected units: {units}")


def test_alias_collision_is_rejected() -> None:
    """Test that one alias cannot name two analytes."""
    definitions = [
        AnalyteDefinition(kind=AnalyteKind.GLUCOSE, aliases=("Sugar",)),
        AnalyteDefinition(kind=AnalyteKind.SODIUM, aliases=("sugar",)),
    ]

    with pytest.raises(CatalogError):
        ReferenceCatalog(definitions)


def test_missing_kind_is_rejected() -> None:
    """Test that a catalog must cover every kind."""
    with pytest.raises(CatalogError):
        ReferenceCatalog([AnalyteDefinition(kind=AnalyteKind.GLUCOSE)])


def test_load_catalog_errors(tmp_path: Path) -> None:
    """Test that unreadable or invalid catalogs raise CatalogError."""
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "missing.yaml")

    invalid = tmp_path / "invalid.yaml"
    invalid.write_text("analytes:\n  - kind: Unobtainium\n", encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(invalid)


def test_normalize_name() -> None:
    """Test normalized lookup keys."""
    if normalize_name("Free-T4") != "free t4":
        raise AssertionError(f"Unexpected key: {normalize_name('Free-T4')}")
    if normalize_name("Neutrophils%") != normalize_name("Neutrophils %"):
        raise AssertionError("Expected '%' to be its own token")
    if normalize_name("Cholesterol, HDL") != "cholesterol hdl":
        raise AssertionError(f"Unexpected key: {normalize_name('Cholesterol, HDL')}")
