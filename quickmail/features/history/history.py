"""Browsing, reopening and deleting a user's sent messages and drafts."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from quickmail.core.models import Message, MessageStatus, User
from quickmail.core.services import CAN_DELETE
from quickmail.features.compose import ComposeServices, Composer, forward, from_draft
from quickmail.utils.errors import PermissionDeniedError
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)


def format_time(moment: datetime) -> str:
    """Long human-readable timestamp, e.g. 'Monday, 05 January 2026, 09:30 AM'."""
    return moment.strftime("%A, %d %B %Y, %I:%M %p")


@dataclass
class HistoryEntry:
    """One row of a history listing."""

    message: Message
    time_label: str
    recipient_count: int
    attachment_count: int


@dataclass
class HistoryPage:
    entries: List[HistoryEntry] = field(default_factory=list)
    total: int = 0
    page: int = 0
    per_page: int = 10

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.pages


class MessageHistory:
    """The sent log and drafts list of one user in one course."""

    def __init__(self, services: ComposeServices, per_page: Optional[int] = None):
        self.services = services
        self.per_page = per_page or services.messages.engine_mgr.config.default_page_size

    async def list_entries(
        self,
        course_id: int,
        acting_user: User,
        status: MessageStatus = MessageStatus.SENT,
        page: int = 0,
    ) -> HistoryPage:
        """A page of the user's messages, newest first."""
        page = max(0, page)
        messages = await self.services.messages.find_for_course(
            course_id, acting_user.id, status, limit=self.per_page, offset=page * self.per_page
        )
        total = await self.services.messages.count_for_course(course_id, acting_user.id, status)

        entries = [
            HistoryEntry(
                message=message,
                time_label=format_time(message.time),
                recipient_count=len(message.mailto),
                attachment_count=len(message.attachments),
            )
            for message in messages
        ]

        return HistoryPage(entries=entries, total=total, page=page, per_page=self.per_page)

    async def open_entry(self, message_id: int, status: MessageStatus, acting_user: User) -> Composer:
        """Resume a draft, or forward a sent message."""
        if status == MessageStatus.DRAFT:
            return await from_draft(self.services, message_id, acting_user)

        return await forward(self.services, message_id, acting_user)

    async def delete_entry(self, message_id: int, status: MessageStatus, acting_user: User) -> None:
        """Delete a message and its files.

        Drafts may be deleted by their owner. Sent messages need the
        delete capability in the message's course.

        Raises:
            MessageNotFoundError: If the message does not exist
            PermissionDeniedError: If the user may not delete it
        """
        message = await self.services.store.load(message_id, status)

        if status == MessageStatus.DRAFT:
            allowed = message.sender_id == acting_user.id
        else:
            course = await self.services.directory.get_course(message.course_id)
            allowed = course is not None and await self.services.capabilities.has_capability(
                CAN_DELETE, course, acting_user
            )

        if not allowed:
            raise PermissionDeniedError(
                f"User {acting_user.id} may not delete message {message_id}",
                details={"message_id": message_id, "status": status.value},
            )

        await self.services.store.remove(message)
