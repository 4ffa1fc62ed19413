"""Per-course quickmail settings."""

from typing import Any, Dict, Union

from pydantic import ValidationError as PydanticValidationError

from quickmail.core.models import Course, CourseConfig, User
from quickmail.core.services import CAN_CONFIG
from quickmail.features.compose import ComposeServices
from quickmail.utils.errors import CourseNotFoundError, InvalidConfigError, PermissionDeniedError
from quickmail.utils.logging import get_logger, log_event

logger = get_logger(__name__)


class CourseSettings:
    """Reads and writes course configuration on behalf of a user."""

    def __init__(self, services: ComposeServices):
        self.services = services

    async def load(self, course_id: int) -> CourseConfig:
        return await self.services.load_course_config(course_id)

    async def _authorize(self, course_id: int, acting_user: User) -> Course:
        course = await self.services.directory.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"No course with id {course_id}")

        if not await self.services.capabilities.has_capability(CAN_CONFIG, course, acting_user):
            raise PermissionDeniedError(
                f"User {acting_user.id} may not configure course {course_id}",
                details={"course_id": course_id},
            )

        return course

    async def save(
        self,
        course_id: int,
        acting_user: User,
        settings: Union[CourseConfig, Dict[str, Any]],
    ) -> CourseConfig:
        """Validate and store settings, returning what was stored.

        Raises:
            PermissionDeniedError: Without the configure capability
            InvalidConfigError: If the settings fail validation
        """
        await self._authorize(course_id, acting_user)

        if not isinstance(settings, CourseConfig):
            try:
                settings = CourseConfig(**settings)
            except PydanticValidationError as e:
                raise InvalidConfigError(
                    "Invalid course settings", details={"error": str(e)}
                ) from e

        await self.services.course_configs.save(course_id, settings)

        log_event(
            "course_config_saved",
            f"Settings saved for course {course_id}",
            course_id=course_id,
            user_id=acting_user.id,
        )
        return settings

    async def reset(self, course_id: int, acting_user: User) -> CourseConfig:
        """Forget stored settings; the course follows the site defaults again."""
        await self._authorize(course_id, acting_user)
        await self.services.course_configs.reset(course_id)

        logger.info(f"Course {course_id} settings reset to defaults")
        return await self.load(course_id)
