"""
Tests for the compose modes other than open selection

Tests cover:
- Ask instructor: fixed recipients, no drafts, no-forward flag
- Resuming drafts and draft cleanup after a send
- Forwarding sent messages
- Questions asked about a quiz attempt
- Choosing a composer for a user
- Missing courses and records owned by someone else
"""
import pytest

from quickmail.core.models import (
    CourseConfig,
    MessageStatus,
    QuestionAttempt,
    QuizOwned,
    UnknownOwner,
)
from quickmail.core.services import CAN_ASK_INSTRUCTOR, RECEIVE_ASK_INSTRUCTOR
from quickmail.core.store import upload_area
from quickmail.features.compose import (
    ComposeSubmission,
    ask_instructor,
    forward,
    from_draft,
    open_selection,
    quiz_question,
    select_composer,
)
from quickmail.features.settings import SignatureBook
from quickmail.utils.errors import (
    CourseNotFoundError,
    DraftNotSupportedError,
    MessageNotFoundError,
    MissingRecipientsError,
    PermissionDeniedError,
    QuestionAttemptNotFoundError,
)


async def save_draft(services, course, sender, subject, mailto):
    composer = await open_selection(services, course.id, sender)
    return await composer.save_draft(data=ComposeSubmission(subject=subject, body="<p>Draft body</p>", mailto=mailto))


class TestAskInstructor:
    """Tests for the ask-instructor composer"""

    async def test_recipients_fixed_to_capability_holders(self, services, course, teacher, students, mailer):
        """Submitted recipients are ignored in favour of instructors"""
        composer = await ask_instructor(services, course.id, students["A"])

        failures = await composer.send(
            ComposeSubmission(subject="Help", body="Stuck", mailto=[students["B"].id])
        )

        assert failures == []
        assert mailer.recipients == [teacher.id]

    async def test_view_is_not_selectable(self, services, course, teacher, students):
        composer = await ask_instructor(services, course.id, students["A"])

        view = await composer.get_compose_view()

        assert view.header == "Ask an Instructor"
        assert view.selectable is False
        assert view.selected == [teacher.id]
        assert view.options == []
        assert view.allow_draft is False

    async def test_drafts_not_supported(self, services, course, students):
        composer = await ask_instructor(services, course.id, students["A"])

        with pytest.raises(DraftNotSupportedError):
            await composer.save_draft(data=ComposeSubmission(subject="Help"))

    async def test_sent_message_marked_no_forward(self, services, course, students):
        composer = await ask_instructor(services, course.id, students["A"])

        await composer.send(ComposeSubmission(subject="Help"))

        stored = await services.messages.find_by_id(composer.last_message_id, MessageStatus.SENT)
        assert stored.no_forward is True

    async def test_no_instructors_means_missing_recipients(
        self, services, course, teacher, students, capabilities
    ):
        capabilities.revoke(teacher, RECEIVE_ASK_INSTRUCTOR)
        composer = await ask_instructor(services, course.id, students["A"])

        assert not await composer.potential_recipients_exist()
        with pytest.raises(MissingRecipientsError):
            await composer.send(ComposeSubmission(subject="Help"))

    async def test_requires_capability(self, services, course, students, capabilities):
        capabilities.revoke(students["A"], CAN_ASK_INSTRUCTOR)

        with pytest.raises(PermissionDeniedError):
            await ask_instructor(services, course.id, students["A"])


class TestDrafts:
    """Tests for resuming and cleaning up drafts"""

    async def test_resumed_draft_prefills_view(self, services, course, teacher, students, file_area):
        sig_id = await SignatureBook(services.signatures, teacher).save("Short", "Tess")
        file_area.store_file(upload_area(teacher.id, 31), "notes.txt", b"notes")
        original = await open_selection(services, course.id, teacher)
        draft_id = await original.save_draft(
            data=ComposeSubmission(
                subject="Field trip",
                body="<p>Draft body</p>",
                mailto=[students["D"].id, students["A"].id],
                signature_id=sig_id,
                receipt=True,
                attachments_item_id=31,
            )
        )

        composer = await from_draft(services, draft_id, teacher)
        view = await composer.get_compose_view()

        assert view.subject == "Field trip"
        assert view.body == "<p>Draft body</p>"
        assert view.selected == [students["D"].id, students["A"].id]
        assert view.signature_id == sig_id
        assert view.receipt is True
        files = file_area.list_files(upload_area(teacher.id, view.attachments_item_id))
        assert [f.name for f in files] == ["notes.txt"]

    async def test_resave_updates_the_draft(self, services, course, teacher, students):
        draft_id = await save_draft(services, course, teacher, "v1", [students["A"].id])

        composer = await from_draft(services, draft_id, teacher)
        saved_id = await composer.save_draft(data=ComposeSubmission(subject="v2", mailto=[students["A"].id]))

        assert saved_id == draft_id
        draft = await services.messages.find_by_id(draft_id, MessageStatus.DRAFT)
        assert draft.subject == "v2"

    async def test_successful_send_removes_draft(self, services, course, teacher, students):
        draft_id = await save_draft(services, course, teacher, "Field trip", [students["A"].id])
        composer = await from_draft(services, draft_id, teacher)

        failures = await composer.send(ComposeSubmission(subject="Field trip", mailto=[students["A"].id]))

        assert failures == []
        assert not await services.messages.exists(draft_id, MessageStatus.DRAFT)
        assert await services.messages.exists(composer.last_message_id, MessageStatus.SENT)

    async def test_draft_kept_when_delivery_fails(self, services, course, teacher, students, mailer):
        draft_id = await save_draft(services, course, teacher, "Field trip", [students["A"].id])
        composer = await from_draft(services, draft_id, teacher)
        mailer.reject = {students["A"].id}

        failures = await composer.send(ComposeSubmission(subject="Field trip", mailto=[students["A"].id]))

        assert len(failures) == 1
        assert await services.messages.exists(draft_id, MessageStatus.DRAFT)

    async def test_send_removes_draft_saved_by_same_composer(self, services, course, teacher, students):
        composer = await open_selection(services, course.id, teacher)
        submission = ComposeSubmission(subject="Field trip", mailto=[students["A"].id])
        draft_id = await composer.save_draft(data=submission)

        failures = await composer.send(submission)

        assert failures == []
        assert composer.draft_id is None
        assert not await services.messages.exists(draft_id, MessageStatus.DRAFT)

    async def test_send_from_open_composer_leaves_other_drafts(self, services, course, teacher, students):
        draft_id = await save_draft(services, course, teacher, "Older", [students["A"].id])
        composer = await open_selection(services, course.id, teacher)

        await composer.send(ComposeSubmission(subject="Now", mailto=[students["A"].id]))

        assert await services.messages.exists(draft_id, MessageStatus.DRAFT)

    async def test_other_users_draft_refused(self, services, course, teacher, students):
        draft_id = await save_draft(services, course, teacher, "Private", [students["A"].id])

        with pytest.raises(PermissionDeniedError):
            await from_draft(services, draft_id, students["A"])

    async def test_missing_draft(self, services, teacher):
        with pytest.raises(MessageNotFoundError):
            await from_draft(services, 404, teacher)


class TestForward:
    """Tests for forwarding sent messages"""

    async def test_forward_decorates_subject(self, services, course, teacher, students):
        original = await open_selection(services, course.id, teacher)
        await original.send(ComposeSubmission(subject="Grades", body="<p>Posted</p>", mailto=[students["A"].id]))

        composer = await forward(services, original.last_message_id, teacher)
        view = await composer.get_compose_view()

        assert view.header == "Forward"
        assert view.subject == "Fwd: Grades"
        assert view.body == "<p>Posted</p>"
        assert view.selected == [students["A"].id]

    async def test_forward_saves_new_draft(self, services, course, teacher, students):
        original = await open_selection(services, course.id, teacher)
        await original.send(ComposeSubmission(subject="Grades", mailto=[students["A"].id]))
        log_id = original.last_message_id

        composer = await forward(services, log_id, teacher)
        draft_id = await composer.save_draft(data=ComposeSubmission(subject="Fwd: Grades", mailto=[students["B"].id]))

        assert await services.messages.exists(draft_id, MessageStatus.DRAFT)
        sent = await services.messages.find_by_id(log_id, MessageStatus.SENT)
        assert sent.mailto == [students["A"].id]

    async def test_forward_carries_attachments(self, services, course, teacher, students, file_area):
        file_area.store_file(upload_area(teacher.id, 55), "notes.txt", b"notes")
        original = await open_selection(services, course.id, teacher)
        await original.send(
            ComposeSubmission(subject="Notes", attachments_item_id=55, mailto=[students["A"].id])
        )

        composer = await forward(services, original.last_message_id, teacher)
        view = await composer.get_compose_view()

        files = file_area.list_files(upload_area(teacher.id, view.attachments_item_id))
        assert [f.name for f in files] == ["notes.txt"]


@pytest.fixture
def attempt(course, students):
    return QuestionAttempt(
        id=31,
        course_id=course.id,
        user_id=students["A"].id,
        slot=3,
        owner=QuizOwned(quiz_id=8, quiz_name="Midterm"),
        question_text="<p>What is ATP?</p><script>steal()</script>",
        response_summary="Energy",
        attempt_url="https://lms.example.com/attempt/31",
    )


class TestQuizQuestion:
    """Tests for questions asked about a quiz attempt"""

    async def test_defaults_from_attempt(self, services, questions, attempt, students, teacher, mailer):
        questions.attempts[(attempt.id, attempt.slot)] = attempt

        composer = await quiz_question(services, attempt.id, attempt.slot, students["A"])
        view = await composer.get_compose_view()

        assert view.subject == "Question 3 in Midterm"
        assert "<blockquote><p>What is ATP?</p>" in view.body
        assert "<script>" not in view.body
        assert "Alice Tester's last response was:" in view.body
        assert "Energy" in view.body
        assert 'href="https://lms.example.com/attempt/31"' in view.body
        assert view.selected == [teacher.id]

        await composer.send(ComposeSubmission(subject=view.subject, body=view.body))
        assert mailer.recipients == [teacher.id]

    async def test_unknown_owner_uses_generic_subject(self, services, questions, attempt, students):
        generic = QuestionAttempt(
            id=32, course_id=attempt.course_id, user_id=attempt.user_id, slot=5,
            owner=UnknownOwner("mod_lesson"), question_summary="Name the organelle",
        )
        questions.attempts[(generic.id, generic.slot)] = generic

        composer = await quiz_question(services, generic.id, generic.slot, students["A"])
        view = await composer.get_compose_view()

        assert view.subject == "Question 5"
        assert "Name the organelle" in view.body
        assert "last response" not in view.body

    async def test_missing_attempt(self, services, students):
        with pytest.raises(QuestionAttemptNotFoundError):
            await quiz_question(services, 1, 1, students["A"])


class TestSelectComposer:
    """Tests for choosing the broadest composer a user may use"""

    async def test_sender_gets_open_selection(self, services, course, teacher):
        composer = await select_composer(services, course.id, teacher)

        assert composer.policy.name == "compose"

    async def test_student_gets_ask_instructor(self, services, course, students):
        composer = await select_composer(services, course.id, students["A"])

        assert composer.policy.name == "askinstructor"

    async def test_allow_students_opens_selection(self, services, course, students):
        await services.course_configs.save(course.id, CourseConfig(allow_students=True))

        composer = await select_composer(services, course.id, students["A"])

        assert composer.policy.name == "compose"

    async def test_no_capability(self, services, course, students):
        guest = students["G"]
        services.capabilities.revoke(guest, CAN_ASK_INSTRUCTOR)

        assert await select_composer(services, course.id, guest, required=False) is None

        with pytest.raises(PermissionDeniedError):
            await select_composer(services, course.id, guest)

    async def test_unknown_course(self, services, teacher):
        with pytest.raises(CourseNotFoundError):
            await select_composer(services, 999, teacher)
