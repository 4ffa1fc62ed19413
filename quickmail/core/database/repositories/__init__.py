"""Repositories over the quickmail tables."""

from .base import Repository
from .course_config import CourseConfigRepository
from .message import MessageRepository
from .signature import SignatureRepository

__all__ = [
    "CourseConfigRepository",
    "MessageRepository",
    "Repository",
    "SignatureRepository",
]
