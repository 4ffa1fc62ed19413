"""Per-course configuration stored as name/value rows."""

from typing import Dict

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, insert, select

from quickmail.core.database.engine_manager import EngineManager
from quickmail.core.database.models import quickmail_config
from quickmail.core.database.transaction import TransactionManager
from quickmail.core.models.course import CourseConfig
from quickmail.utils.errors import InvalidConfigError
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)

_LIST_FIELDS = {"role_selection"}
_BOOL_FIELDS = {"receipt", "allow_students"}


def config_to_rows(config: CourseConfig) -> Dict[str, str]:
    """Flatten a CourseConfig into name/value strings."""
    rows = {}
    for name, value in config.model_dump(mode="json").items():
        if name in _LIST_FIELDS:
            rows[name] = ",".join(value)
        elif name in _BOOL_FIELDS:
            rows[name] = "1" if value else "0"
        else:
            rows[name] = str(value)

    return rows


def rows_to_config(rows: Dict[str, str], defaults: CourseConfig) -> CourseConfig:
    """Overlay stored name/value rows on the site defaults.

    Raises:
        InvalidConfigError: If a stored value fails validation
    """
    data = defaults.model_dump()

    for name, value in rows.items():
        if name not in data:
            logger.debug(f"Ignoring unknown course setting '{name}'")
            continue
        if name in _LIST_FIELDS:
            data[name] = [part for part in value.split(",") if part.strip()]
        elif name in _BOOL_FIELDS:
            data[name] = value == "1"
        else:
            data[name] = value

    try:
        return CourseConfig(**data)

    except PydanticValidationError as e:
        raise InvalidConfigError(
            "Stored course configuration is invalid", details={"error": str(e)}
        ) from e


class CourseConfigRepository:
    """Loads and stores per-course settings."""

    def __init__(self, engine_manager: EngineManager):
        self.engine_mgr = engine_manager

    async def load_rows(self, course_id: int) -> Dict[str, str]:
        table = quickmail_config
        engine = await self.engine_mgr.get_engine()

        query = select(table.c.name, table.c.value).where(table.c.coursesid == course_id)

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return {row.name: row.value for row in result.fetchall()}

    async def load(self, course_id: int, defaults: CourseConfig) -> CourseConfig:
        """Course settings, falling back to ``defaults`` for anything unset."""
        return rows_to_config(await self.load_rows(course_id), defaults)

    async def save(self, course_id: int, config: CourseConfig) -> None:
        """Replace all stored settings for the course."""
        table = quickmail_config
        engine = await self.engine_mgr.get_engine()

        async with TransactionManager(engine) as tx:
            await tx.connection.execute(delete(table).where(table.c.coursesid == course_id))
            for name, value in config_to_rows(config).items():
                await tx.connection.execute(
                    insert(table).values(coursesid=course_id, name=name, value=value)
                )

        logger.debug(f"Saved configuration for course {course_id}")

    async def reset(self, course_id: int) -> None:
        """Drop stored settings so the course follows site defaults again."""
        table = quickmail_config
        engine = await self.engine_mgr.get_engine()

        async with engine.begin() as conn:
            await conn.execute(delete(table).where(table.c.coursesid == course_id))

        logger.debug(f"Reset configuration for course {course_id}")
