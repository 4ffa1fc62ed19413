"""Course, membership and per-course configuration models"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List

from pydantic import BaseModel, Field, field_validator


@dataclass(frozen=True)
class Role:
    """A role a user holds in a course, matched by shortname only."""

    id: int
    shortname: str
    name: str = ""


@dataclass(frozen=True)
class Group:
    """A course group (section)."""

    id: int
    name: str
    member_ids: FrozenSet[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class User:
    """A course participant."""

    id: int
    email: str
    firstname: str = ""
    lastname: str = ""
    mail_format: int = 1  # 1 = HTML, 0 = plain text
    roles: FrozenSet[Role] = field(default_factory=frozenset)
    group_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip() or self.email

    @property
    def sort_key(self) -> tuple:
        return (self.lastname.lower(), self.firstname.lower(), self.id)


@dataclass(frozen=True)
class Course:
    """The course (context) a message is composed in."""

    id: int
    shortname: str
    fullname: str = ""
    idnumber: str = ""


class PrependClass(str, Enum):
    """Which course field, if any, prefixes outgoing subjects."""

    NONE = "none"
    IDNUMBER = "idnumber"
    SHORTNAME = "shortname"


class CourseConfig(BaseModel):
    """Per-course quickmail settings."""

    role_selection: List[str] = Field(
        default_factory=lambda: ["editingteacher", "teacher", "student"]
    )
    prepend_class: PrependClass = PrependClass.NONE
    receipt: bool = False
    allow_students: bool = False

    @field_validator("role_selection")
    @classmethod
    def _strip_roles(cls, value: List[str]) -> List[str]:
        cleaned = [role.strip() for role in value if role and role.strip()]
        if not cleaned:
            raise ValueError("role_selection must name at least one role")
        return list(dict.fromkeys(cleaned))

    def course_label(self, course: Course) -> str:
        """Label used as the subject prefix, empty when prefixing is off."""
        if self.prepend_class == PrependClass.NONE:
            return ""

        return getattr(course, self.prepend_class.value, "") or ""


@dataclass(frozen=True)
class SendContext:
    """Everything a composer needs to know about who sends, and where."""

    acting_user: User
    course: Course
    config: CourseConfig
