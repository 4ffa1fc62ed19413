"""Collaborators the composer consumes, expressed as abstract base classes.

The host system provides concrete implementations for the directory,
capability and question-engine lookups. File storage and mail delivery
ship with local implementations (``LocalFileArea``, ``SMTPMailer``).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import random
from pathlib import Path
from typing import List, Optional

from quickmail.core.models import ArchiveDescriptor, Course, Group, QuestionAttempt, User

COMPONENT = "quickmail"
UPLOAD_COMPONENT = "user"
UPLOAD_AREA = "draft"

# Capability names checked against (course, user)
CAN_SEND = "quickmail:cansend"
CAN_ASK_INSTRUCTOR = "quickmail:canaskinstructor"
RECEIVE_ASK_INSTRUCTOR = "quickmail:receiveaskinstructor"
CAN_DELETE = "quickmail:candelete"
CAN_CONFIG = "quickmail:canconfig"


@dataclass(frozen=True)
class FileAreaKey:
    """Address of a set of stored files."""

    context_id: int
    component: str
    area: str
    item_id: int

    def with_item(self, item_id: int) -> "FileAreaKey":
        return FileAreaKey(self.context_id, self.component, self.area, item_id)


class PersonDirectory(ABC):
    """Users, roles and groups of the host system."""

    @abstractmethod
    async def get_course(self, course_id: int) -> Optional[Course]:
        pass

    @abstractmethod
    async def get_enrolled_users(self, course: Course) -> List[User]:
        """Enrolled users with their roles and group ids populated."""
        pass

    @abstractmethod
    async def get_groups(self, course: Course) -> List[Group]:
        pass

    @abstractmethod
    async def get_user_groups(self, course: Course, user: User) -> List[Group]:
        pass

    @abstractmethod
    async def can_see_all_groups(self, course: Course, user: User) -> bool:
        pass


class CapabilityChecker(ABC):
    """Named permission checks."""

    @abstractmethod
    async def has_capability(self, name: str, course: Course, user: User) -> bool:
        pass


class QuestionAttemptSource(ABC):
    """Lookup into the host's question engine."""

    @abstractmethod
    async def get_attempt(self, attempt_id: int, slot: int) -> Optional[QuestionAttempt]:
        """The attempt at ``slot``, or None if either is unknown."""
        pass


class FileArea(ABC):
    """Scoped file storage addressed by FileAreaKey."""

    @abstractmethod
    def list_files(self, key: FileAreaKey) -> List[Path]:
        """Files in the area, sorted by name."""
        pass

    @abstractmethod
    def copy_area(self, source: FileAreaKey, target: FileAreaKey) -> List[str]:
        """Replace the target area's files with the source's; returns the names."""
        pass

    @abstractmethod
    def delete_area(self, key: FileAreaKey) -> int:
        """Remove every file in the area; returns how many were removed."""
        pass

    @abstractmethod
    def store_file(self, key: FileAreaKey, filename: str, content: bytes) -> Path:
        pass

    def allocate_item_id(self, context_id: int, component: str, area: str) -> int:
        """Pick an item id whose area is currently empty."""
        while True:
            item_id = random.randint(1, 999_999_999)
            if not self.list_files(FileAreaKey(context_id, component, area, item_id)):
                return item_id


class Mailer(ABC):
    """Outgoing mail transport."""

    @abstractmethod
    async def deliver(
        self,
        to: User,
        sender: User,
        subject: str,
        plain_body: str,
        html_body: str,
        archive: Optional[ArchiveDescriptor] = None,
    ) -> bool:
        """Deliver one message to one user.

        Returns False, or raises DeliveryError, when the message was not
        accepted for delivery.
        """
        pass
