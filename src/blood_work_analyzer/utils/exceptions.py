"""Custom exceptions for the blood work analyzer."""


class BloodWorkAnalyzerError(Exception):
    """Base exception for all blood work analyzer errors."""

    pass


class ConfigurationError(BloodWorkAnalyzerError):
    """Raised when there is a configuration error."""

    pass


class CatalogError(BloodWorkAnalyzerError):
    """Raised when the reference catalog cannot be loaded or is inconsistent."""

    pass


class ParsingError(BloodWorkAnalyzerError):
    """Raised when a source document cannot be read."""

    pass


class ImportFormatError(BloodWorkAnalyzerError):
    """Raised when an imported JSON document has an unsupported shape."""

    pass


class StorageError(BloodWorkAnalyzerError):
    """Raised when the ledger file cannot be read or written."""

    pass


class ValidationError(BloodWorkAnalyzerError):
    """Raised when data validation fails."""

    pass
