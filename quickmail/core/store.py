"""Persistence of messages together with their attachment areas."""

from typing import Optional

from quickmail.core.database.repositories import MessageRepository
from quickmail.core.models import Message, MessageStatus
from quickmail.core.services import (
    COMPONENT,
    UPLOAD_AREA,
    UPLOAD_COMPONENT,
    FileArea,
    FileAreaKey,
)
from quickmail.utils.errors import MessageNotFoundError
from quickmail.utils.logging import get_logger, log_event

logger = get_logger(__name__)

ATTACHMENT_AREAS = {
    MessageStatus.DRAFT: "attachment_drafts",
    MessageStatus.SENT: "attachment_log",
}


def upload_area(user_id: int, item_id: int) -> FileAreaKey:
    """The acting user's scratch area that a compose form uploads into."""
    return FileAreaKey(user_id, UPLOAD_COMPONENT, UPLOAD_AREA, item_id)


def message_area(message: Message) -> FileAreaKey:
    """Where a stored message keeps its attachments."""
    if message.id is None:
        raise ValueError("Message has no id yet")

    return FileAreaKey(
        message.course_id, COMPONENT, ATTACHMENT_AREAS[message.status], message.id
    )


class MessageStore:
    """Writes Draft and Sent records and keeps their file areas in step."""

    def __init__(self, messages: MessageRepository, file_area: FileArea):
        self.messages = messages
        self.file_area = file_area

    async def persist(self, message: Message, upload: Optional[FileAreaKey] = None) -> Message:
        """Insert or update the record, then copy uploads into its area.

        The attachment manifest is taken from the upload area, so the
        stored filename list always matches the stored files.
        """
        if upload is not None:
            message.attachments = [f.name for f in self.file_area.list_files(upload)]

        await self.messages.save(message)

        if upload is not None:
            self.file_area.copy_area(upload, message_area(message))

        logger.debug(
            f"Persisted message {message.id} as {message.status.name.lower()} "
            f"with {len(message.attachments)} attachment(s)"
        )
        return message

    async def load(self, message_id: int, status: MessageStatus) -> Message:
        """Fetch a stored message.

        Raises:
            MessageNotFoundError: If no such record exists
        """
        message = await self.messages.find_by_id(message_id, status)

        if message is None:
            raise MessageNotFoundError(
                f"No {status.name.lower()} message with id {message_id}",
                details={"message_id": message_id, "status": status.value},
            )

        return message

    def prepare_upload(self, message: Message, user_id: int) -> int:
        """Seed a fresh upload area with a stored message's files.

        Returns the upload item id for the compose form to continue with.
        """
        item_id = self.file_area.allocate_item_id(user_id, UPLOAD_COMPONENT, UPLOAD_AREA)
        self.file_area.copy_area(message_area(message), upload_area(user_id, item_id))

        return item_id

    async def remove(self, message: Message) -> None:
        """Delete the record and every file in its attachment area."""
        await self.messages.delete(message.id, message.status)
        removed = self.file_area.delete_area(message_area(message))

        log_event(
            "message_deleted",
            f"Deleted {message.status.name.lower()} message {message.id}",
            message_id=message.id,
            course_id=message.course_id,
            files_removed=removed,
        )
