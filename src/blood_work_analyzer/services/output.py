"""
Export service for writing blood tests to various formats.

Handles the JSON interchange format plus flattened CSV and Parquet tables
with one row per test result.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from blood_work_analyzer.domain.blood_test import BloodTest
from blood_work_analyzer.utils.parameters import OutputConfig

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "test_id",
    "date",
    "test_type",
    "name",
    "value",
    "unit",
    "reference_range",
    "status",
    "explanation",
]


def results_frame(tests: list[BloodTest]) -> pd.DataFrame:
    """
    Flatten blood tests into one row per result.

    Args:
        tests: Blood tests to flatten.

    Returns:
        DataFrame with RESULT_COLUMNS, sorted by date then extraction order.
    """
    rows: list[dict[str, Any]] = [
        {
            "test_id": test.id,
            "date": test.date.isoformat(),
            "test_type": test.test_type,
            "name": result.name,
            "value": result.value,
            "unit": result.unit,
            "reference_range": result.reference_range,
            "status": result.status.value,
            "explanation": result.explanation,
        }
        for test in sorted(tests, key=lambda t: t.date)
        for result in test.results
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


class ExportService:
    """
    Service for writing blood tests to output files.

    Handles multiple output formats selected by configuration.
    """

    def __init__(self, config: OutputConfig) -> None:
        """
        Initialize export service.

        Args:
            config: Output configuration.
        """
        self.config = config
        self.output_dir = Path(config.dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write(self, tests: list[BloodTest]) -> list[Path]:
        """
        Write blood tests in every configured format.

        Args:
            tests: Blood tests to export.

        Returns:
            Paths of the files written.
        """
        if not tests:
            logger.warning("No blood tests to export")
            return []

        written: list[Path] = []

        if "json" in self.config.formats:
            written.append(self.write_json(tests))

        if "csv" in self.config.formats:
            written.append(self.write_csv(tests))

        if "parquet" in self.config.formats:
            written.append(self.write_parquet(tests))

        logger.info(f"Exported {len(tests)} blood tests to {len(written)} files")
        return written

    def write_json(self, tests: list[BloodTest]) -> Path:
        """
        Write blood tests in the JSON interchange format.

        Args:
            tests: Blood tests.

        Returns:
            Path of the JSON file.
        """
        json_path = self.output_dir / self.config.files.blood_tests_json

        with open(json_path, "w", encoding="utf-8") as f:
            json.dump([t.to_dict() for t in tests], f, indent=2, ensure_ascii=False)

        logger.info(f"Wrote JSON to {json_path}")
        return json_path

    def write_csv(self, tests: list[BloodTest]) -> Path:
        """
        Write the flattened results table to CSV.

        Args:
            tests: Blood tests.

        Returns:
            Path of the CSV file.
        """
        csv_path = self.output_dir / self.config.files.results_csv

        df = results_frame(tests)
        df.to_csv(csv_path, index=False, encoding="utf-8")

        logger.info(f"Wrote CSV to {csv_path}")
        return csv_path

    def write_parquet(self, tests: list[BloodTest]) -> Path:
        """
        Write the flattened results table to Parquet.

        Args:
            tests: Blood tests.

        Returns:
            Path of the Parquet file.
        """
        parquet_path = self.output_dir / self.config.files.results_parquet

        df = results_frame(tests)
        df["date"] = pd.to_datetime(df["date"], utc=True)

        df.to_parquet(  # type: ignore[call-overload]
            parquet_path,
            engine=self.config.parquet.engine,
            compression=self.config.parquet.compression,
            index=False,
        )
        logger.info(f"Wrote Parquet to {parquet_path}")
        return parquet_path
