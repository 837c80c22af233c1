"""
Line parser for lab report text.

Turns one line of extracted report text into name/value candidates. The
analyte name is resolved against the reference catalog, inline reference
ranges are masked out before the value is read, and units are recognized
from a closed list so that "95 mg/dL" and "95mg/dl" read the same.
"""

import logging
import re

from blood_work_analyzer.domain.analyte import AnalyteDefinition
from blood_work_analyzer.domain.extraction import LineCandidate, LineParseResult, ParseIssue
from blood_work_analyzer.services.catalog import ReferenceCatalog
from blood_work_analyzer.utils.parameters import ParsingConfig

logger = logging.getLogger(__name__)

# Units printed on common reports that the catalog does not declare as defaults.
COMMON_UNITS = [
    "mmol/L",
    "µmol/L",
    "nmol/L",
    "pmol/L",
    "mg/L",
    "g/L",
    "IU/L",
    "mIU/L",
    "mIU/mL",
    "µU/mL",
    "10^3/µL",
    "10^6/µL",
    "x10^3/µL",
    "x10^6/µL",
    "cells/µL",
    "mm/hr",
    "bpm",
]

_DASHES = re.compile(r"[‐‑‒–—―−]")
_WHITESPACE = re.compile(r"\s+")
_BRACKET_FLAG = re.compile(r"[\[(]\s*([HL])\s*[\])]")
_ENCLOSED = re.compile(r"\(([^()]*)\)|\[([^\[\]]*)\]")
_RANGE = re.compile(r"(?<![\w.,/])([<>]?\d[\d.,]*)\s*-\s*(\d[\d.,]*\d|\d)(?![\w/])")
_NUMBER = r"(\d[\d.,]*\d|\d|\.\d+)"
_VALUE = re.compile(rf"(?:^|(?<=[\s:=]))([<>])?=?\s*{_NUMBER}(?:\s*/\s*{_NUMBER})?")
_TRAILING_FLAG = re.compile(r"(?:^|\s)([HL])(?:\s|$)")
_GENERIC_NAME = re.compile(r"^\s*([A-Za-zµμ][^\d:=<>]*)")
_THOUSANDS = re.compile(r"\d{1,3}(?:,\d{3})+")
_LETTER = re.compile(r"[A-Za-zµμ]")


def normalize_line(line: str) -> str:
    """
    Normalize dashes, comparison signs and whitespace.

    Args:
        line: Raw text line.

    Returns:
        Normalized line.
    """
    line = _DASHES.sub("-", line)
    line = line.replace("≤", "<").replace("≥", ">")
    return _WHITESPACE.sub(" ", line).strip()


def to_float(token: str) -> float | None:
    """
    Convert a numeric token, tolerating decimal commas and thousands separators.

    "1,234" and "1,234.5" use the comma as thousands separator; "5,7" uses it
    as decimal point.

    Args:
        token: Digits with optional "." and "," separators.

    Returns:
        Float value or None if conversion fails.
    """
    token = token.strip()
    if "," in token and "." in token:
        if token.rfind(",") < token.rfind("."):
            token = token.replace(",", "")
        else:
            token = token.replace(".", "").replace(",", ".")
    elif "," in token:
        if _THOUSANDS.fullmatch(token):
            token = token.replace(",", "")
        else:
            token = token.replace(",", ".")

    try:
        return float(token)
    except ValueError:
        return None


def _has_extra_words(segment: str) -> bool:
    """True when text between an alias and its value still names something."""
    segment = _BRACKET_FLAG.sub(" ", segment)
    segment = _ENCLOSED.sub(
        lambda m: " " if any(ch.isdigit() for ch in m.group(0)) else m.group(0), segment
    )
    return _LETTER.search(segment) is not None


def _unit_pattern(unit: str) -> re.Pattern[str]:
    body = "".join("[µμu]" if ch in "µμ" else re.escape(ch) for ch in unit)
    return re.compile(rf"\s*({body})(?![A-Za-z0-9µμ])", re.IGNORECASE)


class LineParser:
    """
    Parser for single lab report lines.

    A line reads as ``<name> [:] [<|>]<value>[/<value>] [unit] [range] [flag]``
    with any amount of noise the masking rules can strip.
    """

    def __init__(self, catalog: ReferenceCatalog, parsing_config: ParsingConfig | None = None) -> None:
        """
        Initialize line parser.

        Args:
            catalog: Reference catalog used for name resolution and units.
            parsing_config: Parsing configuration (extra unit tokens).
        """
        self.catalog = catalog
        self.parsing_config = parsing_config or ParsingConfig()

        units = catalog.units() + list(self.parsing_config.extra_units) + COMMON_UNITS
        known = list(dict.fromkeys(u for u in units if u))
        self._unit_patterns = [
            (unit, _unit_pattern(unit)) for unit in sorted(known, key=len, reverse=True)
        ]

    def match_unit(self, text: str) -> tuple[str, int] | None:
        """
        Match a known unit at the start of text.

        Args:
            text: Text immediately following a value.

        Returns:
            Tuple of (canonical unit, end offset), or None.
        """
        for unit, pattern in self._unit_patterns:
            match = pattern.match(text)
            if match:
                return unit, match.end()
        return None

    def _mask(self, text: str) -> tuple[str, str | None, str | None]:
        """
        Blank out enclosed segments and "a-b" ranges.

        Returns:
            Tuple of (masked text, inline range text, flag).
        """
        flag = None
        inline_range = None

        def blank(match: re.Match[str]) -> str:
            return " " * len(match.group(0))

        flag_match = _BRACKET_FLAG.search(text)
        if flag_match:
            flag = flag_match.group(1)
            text = text[: flag_match.start()] + blank(flag_match) + text[flag_match.end() :]

        for match in _ENCLOSED.finditer(text):
            inner = (match.group(1) or match.group(2) or "").strip()
            if inline_range is None and any(ch.isdigit() for ch in inner):
                inline_range = inner
        text = _ENCLOSED.sub(blank, text)

        range_match = _RANGE.search(text)
        if range_match and inline_range is None:
            inline_range = range_match.group(0).replace(" ", "")
        text = _RANGE.sub(blank, text)

        return text, inline_range, flag

    def _find_value(self, text: str) -> re.Match[str] | None:
        """First numeric token that stands on its own or is followed by a unit."""
        for match in _VALUE.finditer(text):
            after = text[match.end() :]
            if after and (after[0].isalpha() or after[0] in "µμ"):
                if self.match_unit(after) is None:
                    continue
            return match
        return None

    def _unknown(self, text: str) -> LineParseResult:
        generic = _GENERIC_NAME.match(text)
        name = generic.group(1).strip(" -,.;") if generic else ""
        if name:
            logger.debug(f"Unknown analyte: {name!r}")
            return LineParseResult.failed(ParseIssue.UNKNOWN_ANALYTE, name)
        return LineParseResult.failed(ParseIssue.NO_MATCH)

    def parse(self, line: str) -> LineParseResult:
        """
        Parse one line.

        Args:
            line: Raw text line.

        Returns:
            Candidates for the line (two for a composite reading), or the
            issue explaining why there are none.
        """
        text = normalize_line(line)
        if not any(ch.isdigit() for ch in text):
            return LineParseResult.failed(ParseIssue.NO_MATCH)

        prefix = self.catalog.match_prefix(text)
        if prefix is None:
            return self._unknown(text)

        definition, name_end = prefix
        rest, inline_range, flag = self._mask(text[name_end:])

        value_match = self._find_value(rest)
        if value_match is None:
            return LineParseResult.failed(ParseIssue.NO_MATCH, definition.name)

        # "Lymphocytes Absolute" starts with an alias but names another analyte
        name_segment = text[: name_end + value_match.start(2)]
        if _has_extra_words(name_segment[name_end:]):
            name = name_segment.strip(" -,.;:=<>")
            logger.debug(f"Unknown analyte: {name!r} starts with alias of {definition.name}")
            return LineParseResult.failed(ParseIssue.UNKNOWN_ANALYTE, name)

        qualifier, first, second = value_match.groups()
        tail = rest[value_match.end() :]

        unit = None
        unit_match = self.match_unit(tail)
        if unit_match:
            unit, unit_end = unit_match
            tail = tail[unit_end:]

        if flag is None:
            trailing = _TRAILING_FLAG.search(tail)
            if trailing:
                flag = trailing.group(1)

        if definition.is_composite or second is not None:
            return self._composite(definition, first, second, unit, flag)

        value = to_float(first)
        if value is None:
            return LineParseResult.failed(ParseIssue.MALFORMED_NUMERIC, first)

        candidate = LineCandidate(
            name=definition.name,
            value=value,
            unit=unit,
            qualifier=qualifier,
            flag=flag,
            inline_range=inline_range,
        )
        return LineParseResult(candidates=[candidate])

    def _composite(
        self,
        definition: AnalyteDefinition,
        first: str,
        second: str | None,
        unit: str | None,
        flag: str | None,
    ) -> LineParseResult:
        """Split an "a/b" reading into one candidate per component."""
        raw = first if second is None else f"{first}/{second}"

        if not definition.is_composite or second is None:
            logger.debug(f"{definition.name}: reading {raw!r} does not fit its components")
            return LineParseResult.failed(ParseIssue.MALFORMED_NUMERIC, raw)

        values = [to_float(first), to_float(second)]
        if any(v is None for v in values) or len(definition.components) != len(values):
            return LineParseResult.failed(ParseIssue.MALFORMED_NUMERIC, raw)

        candidates = [
            LineCandidate(name=kind.display_name, value=value, unit=unit, flag=flag)
            for kind, value in zip(definition.components, values)
        ]
        return LineParseResult(candidates=candidates)
