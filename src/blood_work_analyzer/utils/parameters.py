"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the entire application.
All parameters are loaded from YAML and validated using Pydantic models. Every
section carries defaults so the parsing library can run without a file.
"""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from blood_work_analyzer.utils.exceptions import ConfigurationError


class DuplicatePolicy(str, Enum):
    """How repeated analytes within one document are resolved."""

    LAST_WINS = "last_wins"
    FIRST_WINS = "first_wins"


class ParsingConfig(BaseModel):
    """Lab report text parsing configuration."""

    duplicate_policy: DuplicatePolicy = DuplicatePolicy.LAST_WINS
    extra_units: list[str] = Field(
        default_factory=list,
        description="Unit tokens recognized in addition to the catalog units",
    )
    skip_blank_lines: bool = True


class CatalogConfig(BaseModel):
    """Reference catalog configuration."""

    path: str | None = Field(
        None, description="Alternate catalog YAML; the packaged catalog is used when unset"
    )


class RecordIDConfig(BaseModel):
    """Blood test ID generation configuration."""

    algorithm: str = "sha256"
    include_fields: list[str] = Field(
        default_factory=lambda: ["date", "test_type", "results"]
    )


class ProcessingConfig(BaseModel):
    """Date handling and record identity configuration."""

    timezone: str = "UTC"
    record_id: RecordIDConfig = Field(default_factory=RecordIDConfig)


class StorageConfig(BaseModel):
    """Ledger storage configuration."""

    ledger_path: str = "data/blood_tests.json"


class OutputFilesConfig(BaseModel):
    """Output file names configuration."""

    blood_tests_json: str = "blood_tests.json"
    results_csv: str = "results.csv"
    results_parquet: str = "results.parquet"


class ParquetConfig(BaseModel):
    """Parquet output configuration."""

    compression: str = "snappy"
    engine: str = "pyarrow"


class OutputConfig(BaseModel):
    """Output configuration."""

    dir: str = "output"
    files: OutputFilesConfig = Field(default_factory=OutputFilesConfig)
    formats: list[str] = Field(default_factory=lambda: ["json", "csv"])
    parquet: ParquetConfig = Field(default_factory=ParquetConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="BWA_", env_nested_delimiter="__", case_sensitive=False
    )


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            self.config = AppConfig(**config_dict)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_parsing_config(self) -> ParsingConfig:
        """Get lab report parsing configuration."""
        return self.config.parsing

    def get_catalog_config(self) -> CatalogConfig:
        """Get reference catalog configuration."""
        return self.config.catalog

    def get_processing_config(self) -> ProcessingConfig:
        """Get date handling configuration."""
        return self.config.processing

    def get_storage_config(self) -> StorageConfig:
        """Get ledger storage configuration."""
        return self.config.storage

    def get_output_config(self) -> OutputConfig:
        """Get output configuration."""
        return self.config.output

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging

    def get_raw_config(self) -> dict[str, Any]:
        """
        Get raw configuration dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return self.config.model_dump()
