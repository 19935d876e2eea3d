"""
Error taxonomy for the ingestion pipeline
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    VALIDATION = "validation"          # payload rejected by the validator
    TRANSFORMATION = "transformation"  # payload could not be normalized
    DATABASE = "database"              # storage write/read failure
    DISPATCH = "dispatch"              # task could not be queued
    EXTERNAL = "external"              # third-party endpoint call failed


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IngestionError(Exception):
    """Base class for pipeline errors"""

    category = ErrorCategory.TRANSFORMATION
    severity = ErrorSeverity.MEDIUM
    retryable = False

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class TransformationError(IngestionError):
    """Provider payload could not be mapped to normalized readings"""

    category = ErrorCategory.TRANSFORMATION
    severity = ErrorSeverity.MEDIUM


class StorageError(IngestionError):
    """A storage operation failed; the database may be temporarily down"""

    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.CRITICAL
    retryable = True


class DispatchError(IngestionError):
    """The task dispatcher rejected or could not accept an event"""

    category = ErrorCategory.DISPATCH
    severity = ErrorSeverity.CRITICAL
    retryable = True


class NotificationError(IngestionError):
    """The provider's error webhook could not be reached or refused the call"""

    category = ErrorCategory.EXTERNAL
    severity = ErrorSeverity.LOW
    retryable = True
