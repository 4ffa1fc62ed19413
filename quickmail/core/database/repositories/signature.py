"""Signature repository."""

from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update

from quickmail.core.database.engine_manager import EngineManager
from quickmail.core.database.models import quickmail_signatures
from quickmail.core.database.transaction import TransactionManager
from quickmail.core.models.message import NO_SIGNATURE, Signature
from quickmail.utils.errors import NotFoundError
from quickmail.utils.logging import get_logger

from .base import Repository
from ..utils import row_to_signature

logger = get_logger(__name__)


class SignatureRepository(Repository[Signature, int, int]):
    """Repository for a user's signatures; the context is the owner id."""

    def __init__(self, engine_manager: EngineManager):
        self.engine_mgr = engine_manager

    async def save(self, entity: Signature) -> int:
        """Insert or update a signature.

        Marking a signature as default clears the flag on the owner's
        other signatures in the same transaction.
        """
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()
        values = {
            "userid": entity.owner_id,
            "title": entity.title,
            "signature": entity.text,
            "default_flag": entity.is_default,
        }

        async with TransactionManager(engine) as tx:
            if entity.is_default:
                await tx.connection.execute(
                    update(table)
                    .where(table.c.userid == entity.owner_id)
                    .values(default_flag=False)
                )

            if entity.id is None or entity.id <= 0:
                result = await tx.connection.execute(insert(table).values(**values))
                signature_id = result.inserted_primary_key[0]
            else:
                result = await tx.connection.execute(
                    update(table)
                    .where(table.c.id == entity.id, table.c.userid == entity.owner_id)
                    .values(**values)
                )
                if result.rowcount == 0:
                    raise NotFoundError(f"Signature {entity.id} not found")
                signature_id = entity.id

        logger.debug(f"Saved signature {signature_id} for user {entity.owner_id}")
        return signature_id

    async def find_by_id(self, id: int, context: int) -> Optional[Signature]:
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()

        query = select(table).where(table.c.id == id, table.c.userid == context)

        async with engine.connect() as conn:
            row = (await conn.execute(query)).fetchone()

        return row_to_signature(row) if row else None

    async def find_all(self, context: int, limit: int = 100, offset: int = 0) -> List[Signature]:
        """A user's signatures, default first, then by title."""
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()

        query = (
            select(table)
            .where(table.c.userid == context)
            .order_by(table.c.default_flag.desc(), table.c.title, table.c.id)
            .limit(limit)
            .offset(offset)
        )

        async with engine.connect() as conn:
            result = await conn.execute(query)
            return [row_to_signature(row) for row in result.fetchall()]

    async def find_default_id(self, user_id: int) -> int:
        """Id of the user's default signature, or NO_SIGNATURE."""
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()

        query = (
            select(table.c.id)
            .where(table.c.userid == user_id, table.c.default_flag == True)  # noqa: E712
            .limit(1)
        )

        async with engine.connect() as conn:
            signature_id = (await conn.execute(query)).scalar()

        return signature_id if signature_id is not None else NO_SIGNATURE

    async def delete(self, id: int, context: int) -> None:
        """Delete one of the user's signatures.

        Raises:
            NotFoundError: If the user owns no such signature
        """
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()

        async with engine.begin() as conn:
            result = await conn.execute(
                delete(table).where(table.c.id == id, table.c.userid == context)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Signature {id} not found")

        logger.debug(f"Deleted signature {id} for user {context}")

    async def exists(self, id: int, context: int) -> bool:
        table = quickmail_signatures
        engine = await self.engine_mgr.get_engine()

        query = (
            select(func.count())
            .select_from(table)
            .where(table.c.id == id, table.c.userid == context)
        )

        async with engine.connect() as conn:
            return ((await conn.execute(query)).scalar() or 0) > 0
