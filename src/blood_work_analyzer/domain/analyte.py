"""
Analyte domain models.

Defines the closed set of analytes the application understands and the
immutable definition (unit, normal range, explanation, synonyms) attached to
each one by the reference catalog.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from blood_work_analyzer.domain.reference_range import ReferenceRange, TestStatus

_NAME_TOKEN = re.compile(r"[0-9a-zµ]+|[%#]")


def normalize_name(name: str) -> str:
    """
    Canonical lookup key for an analyte name or synonym.

    Lowercases, folds the micro sign, and collapses punctuation and whitespace
    so that "Free T4", "free-t4" and "FREE  T4" compare equal.

    Args:
        name: Name as printed on a report.

    Returns:
        Normalized key.
    """
    return " ".join(name_tokens(name))


def name_tokens(name: str) -> list[str]:
    """Lowercase word tokens of a name; "%" and "#" stand alone."""
    return _NAME_TOKEN.findall(name.lower().replace("μ", "µ"))


class AnalyteKind(str, Enum):
    """Every analyte known to the reference catalog, valued by display name."""

    # Complete Blood Count
    WBC = "WBC"
    RBC = "RBC"
    HGB = "HGB"
    HCT = "HCT"
    MCV = "MCV"
    MCH = "MCH"
    MCHC = "MCHC"
    RDW = "RDW"
    PLATELETS = "Platelets"
    MPV = "MPV"
    NEUTROPHILS_PCT = "Neutrophils %"
    LYMPHOCYTES_PCT = "Lymphs %"
    MONOCYTES_PCT = "Monos %"
    EOSINOPHILS_PCT = "EOS %"
    BASOPHILS_PCT = "BASOS %"

    # Comprehensive Metabolic Panel
    GLUCOSE = "Glucose"
    UREA_NITROGEN = "Urea Nitrogen"
    CREATININE = "Creatinine"
    EGFR = "eGFR"
    SODIUM = "Sodium"
    POTASSIUM = "Potassium"
    CHLORIDE = "Chloride"
    CO2 = "CO2"
    ANION_GAP = "Anion Gap"
    CALCIUM = "Calcium"
    TOTAL_PROTEIN = "Total Protein"
    ALBUMIN = "Albumin"
    AST = "AST"
    ALT = "ALT"
    ALKALINE_PHOSPHATASE = "Alkaline Phosphatase"
    BILIRUBIN_TOTAL = "Bilirubin Total"

    # Lipid Panel
    TOTAL_CHOLESTEROL = "Total Cholesterol"
    HDL = "HDL"
    LDL = "LDL"
    TRIGLYCERIDES = "Triglycerides"

    # Thyroid
    TSH = "TSH"
    T4 = "T4"
    T3 = "T3"
    FREE_T4 = "Free T4"
    FREE_T3 = "Free T3"

    # Diabetes
    HBA1C = "HbA1c"
    INSULIN = "Insulin"
    C_PEPTIDE = "C-Peptide"

    # Vitals
    BLOOD_PRESSURE = "Blood Pressure"
    SYSTOLIC_BP = "Systolic Blood Pressure"
    DIASTOLIC_BP = "Diastolic Blood Pressure"

    @property
    def display_name(self) -> str:
        """Name shown to the user and stored on results."""
        return self.value


class AnalyteDefinition(BaseModel):
    """
    Immutable reference data for one analyte.

    Composite analytes (blood pressure) carry no range of their own; a reading
    such as "120/80" is split into one result per entry in ``components``.
    """

    kind: AnalyteKind = Field(description="Analyte identity")
    unit: str = Field("", description="Default unit of measurement")
    reference_range: str = Field("", description="Display range, e.g. '70-100' or '<200'")
    panel: str = Field("", description="Panel the analyte is usually reported in")
    explanation: str = Field("", description="What the test measures")
    high_note: str = Field("", description="Clinical note for high values")
    low_note: str = Field("", description="Clinical note for low values")
    aliases: tuple[str, ...] = Field(default=(), description="Synonyms seen on reports")
    components: tuple[AnalyteKind, ...] = Field(
        default=(), description="Component analytes of a composite reading"
    )

    bounds: ReferenceRange = Field(default_factory=ReferenceRange)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _parse_range(cls, data: object) -> object:
        if isinstance(data, dict) and "bounds" not in data:
            data = {**data, "bounds": ReferenceRange.parse(data.get("reference_range"))}
        return data

    @property
    def name(self) -> str:
        """Canonical display name."""
        return self.kind.display_name

    @property
    def low(self) -> float | None:
        return self.bounds.low

    @property
    def high(self) -> float | None:
        return self.bounds.high

    @property
    def is_composite(self) -> bool:
        return bool(self.components)

    @property
    def lookup_keys(self) -> list[str]:
        """Normalized name plus normalized aliases."""
        keys = [normalize_name(self.name)]
        keys.extend(normalize_name(alias) for alias in self.aliases)
        return list(dict.fromkeys(keys))

    def note_for(self, status: TestStatus) -> str:
        """Clinical note matching a status (empty for normal results)."""
        if status == TestStatus.HIGH:
            return self.high_note
        if status == TestStatus.LOW:
            return self.low_note
        return ""
