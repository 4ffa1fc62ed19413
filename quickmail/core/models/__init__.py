"""Domain models."""

from .course import Course, CourseConfig, Group, PrependClass, Role, SendContext, User
from .message import (
    ArchiveDescriptor,
    NO_SIGNATURE,
    DeliveryFailure,
    Destination,
    Message,
    MessageFormat,
    MessageStatus,
    Signature,
)
from .question import AttemptOwner, QuestionAttempt, QuizOwned, UnknownOwner

__all__ = [
    "ArchiveDescriptor",
    "AttemptOwner",
    "Course",
    "CourseConfig",
    "DeliveryFailure",
    "Destination",
    "Group",
    "Message",
    "MessageFormat",
    "MessageStatus",
    "NO_SIGNATURE",
    "PrependClass",
    "QuestionAttempt",
    "QuizOwned",
    "Role",
    "SendContext",
    "Signature",
    "UnknownOwner",
    "User",
]
