"""Base repository interface."""

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")
ID = TypeVar("ID")
CTX = TypeVar("CTX")


class Repository(ABC, Generic[T, ID, CTX]):
    """Base repository interface.

    CTX narrows a lookup: the message status (table) for messages,
    the owning user id for signatures.
    """

    @abstractmethod
    async def save(self, entity: T) -> ID:
        """Insert or update a single entity.

        Args:
            entity: The entity to save.

        Returns:
            The id of the stored entity.
        """
        pass

    @abstractmethod
    async def find_by_id(self, id: ID, context: CTX) -> Optional[T]:
        """Find entity by ID.

        Args:
            id: The entity ID to find.
            context: The context for lookup.

        Returns:
            The entity if found, None otherwise.
        """
        pass

    @abstractmethod
    async def find_all(
        self, context: CTX, limit: int = 100, offset: int = 0
    ) -> List[T]:
        """Find all entities in context.

        Args:
            context: The context for querying.
            limit: The maximum number of entities to return.
            offset: Offset for pagination.
        """
        pass

    @abstractmethod
    async def delete(self, id: ID, context: CTX) -> None:
        """Delete entity by ID.

        Args:
            id: The ID of the entity to delete.
            context: The context for deletion.
        """
        pass

    @abstractmethod
    async def exists(self, id: ID, context: CTX) -> bool:
        """Check if entity exists.

        Args:
            id: The ID of the entity to check.
            context: The context to check.
        """
        pass
