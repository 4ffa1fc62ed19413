"""Centralized error handling module."""

from enum import Enum
from typing import Any, Dict, Optional

from quickmail.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    DATABASE = "database"
    DELIVERY = "delivery"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ValidationReason(Enum):
    """Why a composed message failed validation."""

    MISSING_SUBJECT = "no_subject"
    MISSING_RECIPIENTS = "no_selected"
    MISSING_SUBJECT_AND_RECIPIENTS = "no_subject_users"


## Custom Exceptions


class QuickmailError(Exception):
    """Base exception for all quickmail errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise QuickmailError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Database Errors


class DatabaseError(QuickmailError):
    """Base exception for database-related errors."""

    category = ErrorCategory.DATABASE
    user_message = "A database error occurred"


class DatabaseConnectionError(DatabaseError):
    """Exception for database connection failures."""

    user_message = "Failed to connect to the database"


class DatabaseTransactionError(DatabaseError):
    """Exception for database transaction failures."""

    user_message = "A database transaction error occurred"


class InvalidTableError(DatabaseError):
    """Exception for invalid database table operations."""

    user_message = "Invalid message table specified"


## Not Found Errors


class NotFoundError(QuickmailError):
    """Base exception for missing courses and records."""

    category = ErrorCategory.NOT_FOUND
    user_message = "The requested item does not exist"


class CourseNotFoundError(NotFoundError):
    """Exception when a course id does not resolve."""

    user_message = "Course not found"


class MessageNotFoundError(NotFoundError):
    """Exception when a sent or draft message is not found."""

    user_message = "Message not found"


class QuestionAttemptNotFoundError(NotFoundError):
    """Exception when a question attempt id does not resolve."""

    user_message = "Question attempt not found"


## Authorization Errors


class AuthorizationError(QuickmailError):
    """Base exception for capability and access failures."""

    category = ErrorCategory.AUTHORIZATION
    user_message = "You do not have permission to do that"


class PermissionDeniedError(AuthorizationError):
    """Exception when the acting user lacks a required capability."""

    user_message = "You do not have permission to send messages here"


class RecipientAccessError(AuthorizationError):
    """Exception when a submitted recipient is outside the eligible set."""

    user_message = "You do not have permission to message one of the selected users"


## Validation Errors


class ValidationError(QuickmailError):
    """Base exception for validation-related errors."""

    category = ErrorCategory.VALIDATION
    user_message = "Invalid input"
    reason: Optional[ValidationReason] = None


class MissingSubjectError(ValidationError):
    """Exception for a message without a subject."""

    user_message = "You must have a subject"
    reason = ValidationReason.MISSING_SUBJECT


class MissingRecipientsError(ValidationError):
    """Exception for a message without recipients."""

    user_message = "You must select at least one recipient"
    reason = ValidationReason.MISSING_RECIPIENTS


class MissingSubjectAndRecipientsError(ValidationError):
    """Exception for a message with neither subject nor recipients."""

    user_message = "You must specify both a subject and at least one recipient"
    reason = ValidationReason.MISSING_SUBJECT_AND_RECIPIENTS


class InvalidEmailAddressError(ValidationError):
    """Exception for invalid email addresses."""

    user_message = "Invalid email address"


class UnsupportedOperationError(ValidationError):
    """Exception for operations a composer variant does not offer."""

    user_message = "This operation is not supported here"


class DraftNotSupportedError(UnsupportedOperationError):
    """Exception when saving a draft on a composer that forbids drafts."""

    user_message = "Messages of this kind cannot be saved as drafts"


## Delivery Errors


class DeliveryError(QuickmailError):
    """Base exception for mail delivery errors."""

    category = ErrorCategory.DELIVERY
    user_message = "Failed to deliver email"


class SMTPError(DeliveryError):
    """Exception for SMTP protocol errors."""

    user_message = "Failed to send email"


class NetworkTimeoutError(DeliveryError):
    """Exception for network timeout errors."""

    user_message = "The connection timed out"


## File System Errors


class FileSystemError(QuickmailError):
    """Base exception for file system-related errors."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = "A file system error occurred"


class AttachmentPackagingError(FileSystemError):
    """Exception for failures while building the attachment archive."""

    user_message = "Failed to package attachments"


class InvalidPathError(FileSystemError):
    """Exception for invalid file paths."""

    user_message = "Invalid file path"


## Configuration Errors


class ConfigurationError(QuickmailError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class MissingConfigError(ConfigurationError):
    """Exception for missing configuration settings."""

    user_message = "Missing configuration settings"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Error Handler


class ErrorHandler:
    """Centralized error handling and logging."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        """Handle errors with logging and user-friendly message."""
        if isinstance(error, QuickmailError):
            _get_logger().error(f"{context}: {error.message}", extra={"context": error.details})
            if log_traceback:
                _get_logger().exception(error)
            return error.to_dict()
        else:
            _get_logger().error(f"{context}: {str(error)}")
            if log_traceback:
                _get_logger().exception(error)
            return {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, QuickmailError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
