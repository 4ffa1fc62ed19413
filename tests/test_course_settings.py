"""
Tests for course settings and signature management

Tests cover:
- Configure capability checks
- Saving settings from models and raw dicts
- Resetting to site defaults
- Signature book editing
"""
import pytest

from quickmail.core.models import NO_SIGNATURE, CourseConfig
from quickmail.core.services import CAN_CONFIG
from quickmail.features.settings import CourseSettings, SignatureBook
from quickmail.utils.errors import (
    CourseNotFoundError,
    InvalidConfigError,
    PermissionDeniedError,
    ValidationError,
)


@pytest.fixture
def settings(services, capabilities, teacher):
    capabilities.grant(teacher, CAN_CONFIG)
    return CourseSettings(services)


class TestCourseSettings:
    """Tests for per-course configuration"""

    async def test_save_dict(self, settings, course, teacher):
        saved = await settings.save(
            course.id, teacher, {"role_selection": [" student ", "student"], "receipt": True}
        )

        assert saved.role_selection == ["student"]
        assert await settings.load(course.id) == saved

    async def test_save_model(self, settings, course, teacher):
        await settings.save(course.id, teacher, CourseConfig(prepend_class="shortname"))

        assert (await settings.load(course.id)).prepend_class.value == "shortname"

    async def test_invalid_dict(self, settings, course, teacher):
        with pytest.raises(InvalidConfigError):
            await settings.save(course.id, teacher, {"role_selection": []})

    async def test_requires_capability(self, settings, course, students):
        with pytest.raises(PermissionDeniedError):
            await settings.save(course.id, students["A"], CourseConfig())

    async def test_unknown_course(self, settings, teacher):
        with pytest.raises(CourseNotFoundError):
            await settings.reset(404, teacher)

    async def test_reset(self, settings, services, course, teacher):
        await settings.save(course.id, teacher, CourseConfig(receipt=True))

        restored = await settings.reset(course.id, teacher)

        assert restored == services.course_defaults


class TestSignatureBook:
    """Tests for a user's signatures"""

    @pytest.fixture
    def book(self, services, teacher):
        return SignatureBook(services.signatures, teacher)

    async def test_save_and_list(self, book):
        sig_id = await book.save("  Formal ", "<p>Dr. Tess</p>", is_default=True)

        signatures = await book.list_signatures()

        assert [(sig.id, sig.title) for sig in signatures] == [(sig_id, "Formal")]
        assert await book.default_id() == sig_id

    async def test_edit_existing(self, book):
        sig_id = await book.save("Short", "T")

        await book.save("Short", "Tess", signature_id=sig_id)

        assert [sig.text for sig in await book.list_signatures()] == ["Tess"]

    async def test_title_required(self, book):
        with pytest.raises(ValidationError):
            await book.save("  ", "text")

    async def test_delete(self, book):
        sig_id = await book.save("Short", "T", is_default=True)

        await book.delete(sig_id)

        assert await book.list_signatures() == []
        assert await book.default_id() == NO_SIGNATURE
