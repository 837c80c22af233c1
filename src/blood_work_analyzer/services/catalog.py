"""
Reference catalog service.

Loads the analyte reference data (units, normal ranges, explanations and
synonyms) from YAML once per process and answers name lookups. The catalog is
immutable after loading; every consumer shares the same instance.
"""

import logging
import re
from collections.abc import Iterator
from functools import lru_cache
from importlib import resources
from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from blood_work_analyzer.domain.analyte import (
    AnalyteDefinition,
    AnalyteKind,
    name_tokens,
    normalize_name,
)
from blood_work_analyzer.utils.exceptions import CatalogError

logger = logging.getLogger(__name__)


class _CatalogFile(BaseModel):
    """Top-level shape of the catalog YAML."""

    analytes: list[AnalyteDefinition]


def _alias_pattern(key: str) -> re.Pattern[str]:
    """
    Regex matching a normalized alias at the start of a raw line.

    Tokens may be separated by any run of spaces or punctuation, and the alias
    must end on a word boundary so "HB" never matches the start of "HbA1c".
    """
    tokens = [re.escape(t) for t in name_tokens(key)]
    body = r"[\s\-_.,/()]*".join(tokens)
    return re.compile(rf"^\s*{body}(?![0-9a-zµμ])", re.IGNORECASE)


class ReferenceCatalog:
    """
    Immutable lookup table from analyte name or synonym to its definition.

    Matching ignores case, whitespace and punctuation. Aliases must be unique
    across analytes; a collision is a catalog error.
    """

    def __init__(self, definitions: list[AnalyteDefinition]) -> None:
        """
        Build the catalog indexes.

        Args:
            definitions: One definition per analyte kind.

        Raises:
            CatalogError: If a kind is missing or duplicated, an alias is
                ambiguous, or a composite names an unknown component.
        """
        self._by_kind: dict[AnalyteKind, AnalyteDefinition] = {}
        self._by_key: dict[str, AnalyteDefinition] = {}

        for definition in definitions:
            if definition.kind in self._by_kind:
                raise CatalogError(f"Duplicate catalog entry for {definition.name}")
            self._by_kind[definition.kind] = definition

            for key in definition.lookup_keys:
                existing = self._by_key.get(key)
                if existing is not None and existing.kind != definition.kind:
                    raise CatalogError(
                        f"Alias {key!r} maps to both {existing.name} and {definition.name}"
                    )
                self._by_key[key] = definition

        missing = [kind.value for kind in AnalyteKind if kind not in self._by_kind]
        if missing:
            raise CatalogError(f"Catalog has no entry for: {', '.join(missing)}")

        for definition in definitions:
            for component in definition.components:
                if self._by_kind[component].is_composite:
                    raise CatalogError(
                        f"Component {component.value} of {definition.name} is itself composite"
                    )

        self._prefix_patterns: list[tuple[re.Pattern[str], AnalyteDefinition]] = [
            (_alias_pattern(key), self._by_key[key])
            for key in sorted(self._by_key, key=len, reverse=True)
        ]

    def __len__(self) -> int:
        return len(self._by_kind)

    def __iter__(self) -> Iterator[AnalyteDefinition]:
        return iter(self._by_kind.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def lookup(self, name: str) -> AnalyteDefinition | None:
        """
        Resolve an analyte name or synonym.

        Args:
            name: Name as printed on a report or stored on a result.

        Returns:
            The matching definition, or None when the name is unknown.
        """
        return self._by_key.get(normalize_name(name))

    def get(self, kind: AnalyteKind) -> AnalyteDefinition:
        """Definition for a kind (every kind is guaranteed present)."""
        return self._by_kind[kind]

    def match_prefix(self, line: str) -> tuple[AnalyteDefinition, int] | None:
        """
        Find the longest alias that starts the given line.

        Args:
            line: Raw text line.

        Returns:
            Tuple of (definition, end offset of the alias in ``line``), or
            None when no alias prefixes the line.
        """
        for pattern, definition in self._prefix_patterns:
            match = pattern.match(line)
            if match:
                return definition, match.end()
        return None

    def panels(self) -> dict[str, list[AnalyteDefinition]]:
        """Definitions grouped by panel, in catalog order."""
        grouped: dict[str, list[AnalyteDefinition]] = {}
        for definition in self:
            grouped.setdefault(definition.panel, []).append(definition)
        return grouped

    def units(self) -> list[str]:
        """Distinct default units declared by the catalog."""
        return list(dict.fromkeys(d.unit for d in self if d.unit))


def load_catalog(path: str | Path | None = None) -> ReferenceCatalog:
    """
    Load and validate a reference catalog.

    Args:
        path: Catalog YAML file. The catalog packaged with the library is used
            when omitted.

    Returns:
        Validated reference catalog.

    Raises:
        CatalogError: If the file is missing, malformed or inconsistent.
    """
    try:
        if path is None:
            source = resources.files("blood_work_analyzer").joinpath("data").joinpath("analytes.yaml")
            text = source.read_text(encoding="utf-8")
            origin = "packaged catalog"
        else:
            text = Path(path).read_text(encoding="utf-8")
            origin = str(path)

        parsed = _CatalogFile.model_validate(yaml.safe_load(text))

    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Failed to read reference catalog: {e}") from e
    except PydanticValidationError as e:
        raise CatalogError(f"Invalid reference catalog: {e}") from e

    catalog = ReferenceCatalog(parsed.analytes)
    logger.debug(f"Loaded {len(catalog)} analytes from {origin}")
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> ReferenceCatalog:
    """Process-wide catalog loaded from the packaged YAML."""
    return load_catalog()
