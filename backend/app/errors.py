"""Exceptions raised by the reporting services."""


class ReportStorageError(Exception):
    """Raised when reading or writing report data in the database fails."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.operation = operation
