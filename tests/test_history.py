"""
Tests for the sent log and drafts list

Tests cover:
- Paging and counts
- Reopening drafts and forwarding sent messages
- Delete permissions and file cleanup
"""
from datetime import datetime

import pytest

from quickmail.core.models import CourseConfig, Message, MessageStatus
from quickmail.core.services import CAN_DELETE, FileAreaKey
from quickmail.core.store import message_area
from quickmail.features.compose import ComposeSubmission, ask_instructor
from quickmail.features.history import MessageHistory, format_time
from quickmail.utils.errors import MessageNotFoundError, PermissionDeniedError


@pytest.fixture
def history(services):
    return MessageHistory(services, per_page=2)


async def store_messages(services, course, sender, status, count):
    ids = []
    for day in range(1, count + 1):
        message = Message(
            course_id=course.id,
            sender_id=sender.id,
            subject=f"Note {day}",
            mailto=[2, 3],
            time=datetime(2026, 3, day, 9, 30),
            status=status,
        )
        await services.store.persist(message)
        ids.append(message.id)
    return ids


def test_format_time():
    assert format_time(datetime(2026, 1, 5, 9, 30)) == "Monday, 05 January 2026, 09:30 AM"


class TestListing:
    """Tests for paged listings"""

    async def test_pages(self, history, services, course, teacher):
        await store_messages(services, course, teacher, MessageStatus.SENT, 3)

        first = await history.list_entries(course.id, teacher)
        second = await history.list_entries(course.id, teacher, page=1)

        assert [e.message.subject for e in first.entries] == ["Note 3", "Note 2"]
        assert first.total == 3
        assert first.pages == 2
        assert first.has_next
        assert [e.message.subject for e in second.entries] == ["Note 1"]
        assert not second.has_next

    async def test_entry_details(self, history, services, course, teacher):
        await store_messages(services, course, teacher, MessageStatus.DRAFT, 1)

        page = await history.list_entries(course.id, teacher, MessageStatus.DRAFT)

        entry = page.entries[0]
        assert entry.recipient_count == 2
        assert entry.attachment_count == 0
        assert entry.time_label == "Sunday, 01 March 2026, 09:30 AM"

    async def test_empty(self, history, course, teacher):
        page = await history.list_entries(course.id, teacher, page=-3)

        assert page.entries == []
        assert page.page == 0
        assert page.pages == 1

    def test_default_page_size(self, services):
        assert MessageHistory(services).per_page == 10


class TestOpenEntry:
    async def test_draft_resumes(self, history, services, course, teacher):
        (draft_id,) = await store_messages(services, course, teacher, MessageStatus.DRAFT, 1)

        composer = await history.open_entry(draft_id, MessageStatus.DRAFT, teacher)

        assert composer.policy.name == "draft"
        assert composer.draft_id == draft_id

    async def test_sent_forwards(self, history, services, course, teacher):
        (log_id,) = await store_messages(services, course, teacher, MessageStatus.SENT, 1)

        composer = await history.open_entry(log_id, MessageStatus.SENT, teacher)

        assert composer.policy.name == "forward"
        assert (await composer.get_compose_view()).subject == "Fwd: Note 1"

    async def test_question_to_instructor_cannot_be_forwarded(self, history, services, course, students):
        await services.course_configs.save(course.id, CourseConfig(allow_students=True))
        question = await ask_instructor(services, course.id, students["A"])
        await question.send(ComposeSubmission(subject="Help"))

        with pytest.raises(PermissionDeniedError):
            await history.open_entry(question.last_message_id, MessageStatus.SENT, students["A"])


class TestDeleteEntry:
    """Tests for deleting messages"""

    async def test_owner_deletes_draft_and_files(self, history, services, file_area, course, teacher):
        upload = FileAreaKey(teacher.id, "user", "draft", 8)
        file_area.store_file(upload, "plan.txt", b"plan")
        draft = Message(course_id=course.id, sender_id=teacher.id, subject="Plan", status=MessageStatus.DRAFT)
        await services.store.persist(draft, upload)
        assert file_area.list_files(message_area(draft))

        await history.delete_entry(draft.id, MessageStatus.DRAFT, teacher)

        assert not await services.messages.exists(draft.id, MessageStatus.DRAFT)
        assert file_area.list_files(message_area(draft)) == []

    async def test_other_user_cannot_delete_draft(self, history, services, course, teacher, students):
        (draft_id,) = await store_messages(services, course, teacher, MessageStatus.DRAFT, 1)

        with pytest.raises(PermissionDeniedError):
            await history.delete_entry(draft_id, MessageStatus.DRAFT, students["A"])

    async def test_sent_needs_delete_capability(self, history, services, capabilities, course, teacher):
        (log_id,) = await store_messages(services, course, teacher, MessageStatus.SENT, 1)

        with pytest.raises(PermissionDeniedError):
            await history.delete_entry(log_id, MessageStatus.SENT, teacher)

        capabilities.grant(teacher, CAN_DELETE)
        await history.delete_entry(log_id, MessageStatus.SENT, teacher)

        assert not await services.messages.exists(log_id, MessageStatus.SENT)

    async def test_missing(self, history, teacher):
        with pytest.raises(MessageNotFoundError):
            await history.delete_entry(1, MessageStatus.SENT, teacher)
