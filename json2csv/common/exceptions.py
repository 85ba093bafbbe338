"""
Exception hierarchy for the processor.

Every error raised here is fatal for the run: the processor aborts before
any output is written and the CLI maps it to a user-error exit code.
"""

from typing import Optional


class Json2CsvError(Exception):
    """Base class for all processor errors."""
    pass


class ConfigError(Json2CsvError):
    """Exception raised for missing or invalid configuration."""
    pass


class MappingError(ConfigError):
    """Exception raised for an invalid explicit mapping definition."""
    pass


class PathNotFoundError(Json2CsvError):
    """Configured root path is absent in a document."""

    def __init__(self, path: str, segment: str):
        self.path = path
        self.segment = segment
        super().__init__(
            f"Root node path '{path}' not found in JSON (missing '{segment}')")


class MalformedInputError(Json2CsvError):
    """Input file is not valid JSON."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Failed to parse JSON from file {file_name}: {reason}")


class FileAccessError(Json2CsvError):
    """Input cannot be read or output cannot be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ReservedColumnError(Json2CsvError):
    """Source field name collides with a column the processor adds."""

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        super().__init__(
            f"Field '{column}' in table '{table}' collides with a generated column")
