"""Message repository over the sent log and drafts tables."""

from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from quickmail.core.database.engine_manager import EngineManager
from quickmail.core.database.models import get_table
from quickmail.core.models.message import Message, MessageStatus
from quickmail.utils.errors import DatabaseError, MessageNotFoundError
from quickmail.utils.logging import get_logger

from .base import Repository
from ..utils import message_to_row, row_to_message

logger = get_logger(__name__)


class MessageRepository(Repository[Message, int, MessageStatus]):
    """Repository for Message entities using SQLAlchemy Core.

    The status of a message decides its table: drafts live in
    ``quickmail_drafts``, sent messages in ``quickmail_log``.
    """

    def __init__(self, engine_manager: EngineManager):
        """Initialize repository.

        Args:
            engine_manager: Engine manager for database access
        """
        self.engine_mgr = engine_manager

    async def save(self, entity: Message) -> int:
        """Insert the message, or update it in place when it has an id.

        Sets ``entity.id`` after an insert.

        Raises:
            MessageNotFoundError: If an update targets a missing row
            DatabaseError: If the write fails
        """
        if entity.id is None:
            return await self.insert(entity)

        await self.update(entity)
        return entity.id

    async def insert(self, entity: Message) -> int:
        """Insert a new row for the message and return its id."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(entity.status)

        try:
            async with engine.begin() as conn:
                result = await conn.execute(
                    insert(table).values(**message_to_row(entity))
                )
                entity.id = result.inserted_primary_key[0]

        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to insert message into {table.name}",
                details={"course_id": entity.course_id, "error": str(e)},
            ) from e

        logger.debug(f"Inserted message {entity.id} into {table.name}")
        return entity.id

    async def update(self, entity: Message) -> None:
        """Overwrite an existing row (last write wins)."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(entity.status)

        query = (
            update(table)
            .where(table.c.id == entity.id)
            .values(**message_to_row(entity))
        )

        try:
            async with engine.begin() as conn:
                result = await conn.execute(query)

        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to update message {entity.id} in {table.name}",
                details={"error": str(e)},
            ) from e

        if result.rowcount == 0:
            raise MessageNotFoundError(
                f"Message {entity.id} not found in {table.name}"
            )

        logger.debug(f"Updated message {entity.id} in {table.name}")

    async def find_by_id(self, id: int, context: MessageStatus) -> Optional[Message]:
        """Find a message by id in the table for ``context``."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        async with engine.connect() as conn:
            result = await conn.execute(select(table).where(table.c.id == id))
            row = result.fetchone()

        return row_to_message(row, context) if row else None

    async def find_all(
        self,
        context: MessageStatus,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Message]:
        """All messages of a status, newest first."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        query = (
            select(table)
            .order_by(table.c.time.desc(), table.c.id.desc())
            .limit(limit)
            .offset(offset)
        )

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return [row_to_message(row, context) for row in result.fetchall()]

    async def find_for_course(
        self,
        course_id: int,
        user_id: int,
        context: MessageStatus,
        limit: int = 10,
        offset: int = 0,
    ) -> List[Message]:
        """One user's messages in one course, newest first."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        query = (
            select(table)
            .where(table.c.courseid == course_id, table.c.userid == user_id)
            .order_by(table.c.time.desc(), table.c.id.desc())
            .limit(limit)
            .offset(offset)
        )

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return [row_to_message(row, context) for row in result.fetchall()]

    async def count_for_course(
        self, course_id: int, user_id: int, context: MessageStatus
    ) -> int:
        """Count one user's messages in one course."""
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        query = (
            select(func.count())
            .select_from(table)
            .where(table.c.courseid == course_id, table.c.userid == user_id)
        )

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return result.scalar() or 0

    async def delete(self, id: int, context: MessageStatus) -> None:
        """Delete a message row.

        Raises:
            MessageNotFoundError: If the message doesn't exist
        """
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        async with engine.begin() as conn:
            result = await conn.execute(delete(table).where(table.c.id == id))

            if result.rowcount == 0:
                raise MessageNotFoundError(f"Message {id} not found in {table.name}")

        logger.debug(f"Deleted message {id} from {table.name}")

    async def exists(self, id: int, context: MessageStatus) -> bool:
        engine = await self.engine_mgr.get_engine()
        table = get_table(context)

        query = select(func.count()).select_from(table).where(table.c.id == id)

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return (result.scalar() or 0) > 0
