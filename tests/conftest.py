"""
Shared test fixtures and configuration for pytest
"""
import os
import tempfile

# Keep config, logs and files out of the real home directory
os.environ.setdefault("QUICKMAIL_HOME", tempfile.mkdtemp(prefix="quickmail-tests-"))

from typing import Dict, Iterable, List, Optional, Set

import pytest

from quickmail.core.attachments import AttachmentPackager, LocalFileArea
from quickmail.core.database import (
    CourseConfigRepository,
    EngineManager,
    MessageRepository,
    SignatureRepository,
)
from quickmail.core.models import Course, CourseConfig, Group, QuestionAttempt, Role, User
from quickmail.core.services import (
    CAN_ASK_INSTRUCTOR,
    CAN_SEND,
    RECEIVE_ASK_INSTRUCTOR,
    CapabilityChecker,
    Mailer,
    PersonDirectory,
    QuestionAttemptSource,
)
from quickmail.features.compose import ComposeServices
from quickmail.utils.errors import SMTPError

STUDENT = Role(5, "student", "Student")
TEACHER = Role(3, "editingteacher", "Teacher")
GUEST = Role(6, "guest", "Guest")


def make_user(user_id: int, first: str, roles: Iterable[Role] = (STUDENT,), groups: Iterable[int] = (),
              mail_format: int = 1) -> User:
    return User(
        id=user_id,
        email=f"{first.lower()}@example.com",
        firstname=first,
        lastname="Tester",
        mail_format=mail_format,
        roles=frozenset(roles),
        group_ids=frozenset(groups),
    )


class FakeDirectory(PersonDirectory):
    """In-memory course directory."""

    def __init__(self, courses: List[Course], users: Dict[int, List[User]],
                 groups: Optional[Dict[int, List[Group]]] = None, see_all: Iterable[int] = ()):
        self.courses = {course.id: course for course in courses}
        self.users = users
        self.groups = groups or {}
        self.see_all = set(see_all)

    async def get_course(self, course_id):
        return self.courses.get(course_id)

    async def get_enrolled_users(self, course):
        return list(self.users.get(course.id, []))

    async def get_groups(self, course):
        return list(self.groups.get(course.id, []))

    async def get_user_groups(self, course, user):
        return [group for group in self.groups.get(course.id, []) if user.id in group.member_ids]

    async def can_see_all_groups(self, course, user):
        return user.id in self.see_all


class FakeCapabilities(CapabilityChecker):
    """Capabilities granted per user id, the same in every course."""

    def __init__(self, grants: Optional[Dict[int, Set[str]]] = None):
        self.grants = grants or {}

    def grant(self, user: User, *names: str) -> None:
        self.grants.setdefault(user.id, set()).update(names)

    def revoke(self, user: User, *names: str) -> None:
        self.grants.get(user.id, set()).difference_update(names)

    async def has_capability(self, name, course, user):
        return name in self.grants.get(user.id, set())


class FakeQuestions(QuestionAttemptSource):
    def __init__(self, attempts: Iterable[QuestionAttempt] = ()):
        self.attempts = {(attempt.id, attempt.slot): attempt for attempt in attempts}

    async def get_attempt(self, attempt_id, slot):
        return self.attempts.get((attempt_id, slot))


class RecordingMailer(Mailer):
    """Records every delivery; can be told to reject or raise for some users."""

    def __init__(self):
        self.deliveries = []
        self.reject: Set[int] = set()
        self.explode: Set[int] = set()

    async def deliver(self, to, sender, subject, plain_body, html_body, archive=None):
        self.deliveries.append({
            "to": to.id,
            "sender": sender.id,
            "subject": subject,
            "plain": plain_body,
            "html": html_body,
            "archive": archive,
            "archive_existed": archive is not None and archive.path.exists(),
        })

        if to.id in self.explode:
            raise SMTPError("Mailbox unavailable", details={"recipient_id": to.id})

        return to.id not in self.reject

    @property
    def recipients(self) -> List[int]:
        return [delivery["to"] for delivery in self.deliveries]


@pytest.fixture
def course():
    return Course(id=7, shortname="BIO101", fullname="Introduction to Biology", idnumber="BIO-2026")


@pytest.fixture
def teacher():
    return make_user(1, "Tess", roles=(TEACHER,))


@pytest.fixture
def students():
    """Students A, B and D, plus a guest G who is never eligible."""
    return {
        "A": make_user(2, "Alice"),
        "B": make_user(3, "Bob"),
        "D": make_user(4, "Dana"),
        "G": make_user(5, "Gus", roles=(GUEST,)),
    }


@pytest.fixture
def directory(course, teacher, students):
    return FakeDirectory([course], {course.id: [teacher, *students.values()]})


@pytest.fixture
def capabilities(teacher, students):
    caps = FakeCapabilities()
    caps.grant(teacher, CAN_SEND, CAN_ASK_INSTRUCTOR, RECEIVE_ASK_INSTRUCTOR)
    for student in students.values():
        caps.grant(student, CAN_ASK_INSTRUCTOR)
    return caps


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
async def engine_manager(tmp_path):
    """Temporary database with the schema created from metadata."""
    manager = EngineManager(tmp_path / "quickmail.db")
    await manager.create_schema()

    yield manager

    await manager.close()


@pytest.fixture
def file_area(tmp_path):
    return LocalFileArea(tmp_path / "files")


@pytest.fixture
def packager(file_area, tmp_path):
    return AttachmentPackager(file_area, tmp_path / "temp")


@pytest.fixture
def questions():
    return FakeQuestions()


@pytest.fixture
def services(directory, capabilities, engine_manager, file_area, packager, mailer, questions):
    return ComposeServices(
        directory=directory,
        capabilities=capabilities,
        messages=MessageRepository(engine_manager),
        signatures=SignatureRepository(engine_manager),
        course_configs=CourseConfigRepository(engine_manager),
        file_area=file_area,
        mailer=mailer,
        packager=packager,
        questions=questions,
        course_defaults=CourseConfig(),
    )
