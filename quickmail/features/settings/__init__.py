"""Course settings and signature management."""

from .course import CourseSettings
from .signatures import SignatureBook

__all__ = ["CourseSettings", "SignatureBook"]
