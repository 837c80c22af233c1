"""
Hashing and record ID generation utilities.

Provides deterministic blood test ID generation based on configurable fields,
and file hashing for imported source documents.
"""

import hashlib
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from dateutil import parser

from blood_work_analyzer.utils.parameters import RecordIDConfig


class _HashableResult(Protocol):
    name: str
    value: float
    unit: str


def _day_of(value: datetime | str) -> str:
    if isinstance(value, str):
        value = parser.isoparse(value)
    return value.date().isoformat()


def generate_record_id(
    date: datetime | str,
    test_type: str,
    results: Iterable[_HashableResult],
    config: RecordIDConfig | None = None,
) -> str:
    """
    Generate deterministic blood test ID based on configuration.

    The sample date contributes at day granularity so the same report imported
    from differently formatted timestamps maps to one record.

    Args:
        date: Sample date (datetime or ISO-8601 string).
        test_type: Panel label.
        results: Results contributing name, value and unit.
        config: Record ID generation configuration.

    Returns:
        Deterministic record ID (hex string).
    """
    config = config or RecordIDConfig()

    hash_data: list[str] = []

    if "date" in config.include_fields:
        hash_data.append(_day_of(date))

    if "test_type" in config.include_fields:
        hash_data.append(test_type.strip().lower())

    if "results" in config.include_fields:
        hash_data.extend(f"{r.name}={r.value:.4f}{r.unit}" for r in results)

    hash_string = "|".join(hash_data)

    hash_func = hashlib.new(config.algorithm)
    hash_func.update(hash_string.encode("utf-8"))

    return hash_func.hexdigest()


def compute_file_hash(file_path: str, algorithm: str = "md5") -> str:
    """
    Compute hash of a file.

    Args:
        file_path: Path to the file.
        algorithm: Hash algorithm to use.

    Returns:
        Hex string of the file hash.
    """
    hash_func = hashlib.new(algorithm)

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_func.update(chunk)

    return hash_func.hexdigest()
