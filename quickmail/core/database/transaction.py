"""Transaction manager for multi-statement writes."""

import time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from quickmail.core.database.config import get_config
from quickmail.utils.errors import DatabaseTransactionError
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)


class TransactionManager:
    """Manages a database transaction with automatic commit/rollback.

    Usage:
        async with TransactionManager(engine) as tx:
            await tx.connection.execute(query)
    """

    def __init__(self, engine: AsyncEngine, timeout: Optional[float] = None):
        self.engine = engine
        self.config = get_config()
        self.timeout = timeout or self.config.transaction_timeout

        self._connection: Optional[AsyncConnection] = None
        self._transaction = None
        self._start_time: Optional[float] = None

    async def __aenter__(self) -> "TransactionManager":
        self._start_time = time.time()

        try:
            self._connection = await self.engine.connect()
            self._transaction = await self._connection.begin()
            logger.debug(f"Transaction started (timeout={self.timeout}s)")

            return self

        except Exception as e:
            if self._connection:
                await self._connection.close()
            raise DatabaseTransactionError(
                "Failed to start transaction",
                details={"error": str(e)},
            ) from e

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self._start_time if self._start_time else 0

        try:
            if duration > self.timeout:
                logger.warning(
                    f"Transaction exceeded timeout: {duration:.2f}s > {self.timeout}s"
                )
                if self._transaction:
                    await self._transaction.rollback()
                raise DatabaseTransactionError(
                    f"Transaction timeout after {duration:.2f}s",
                    details={"timeout": self.timeout, "duration": duration},
                )

            if exc_type is not None:
                if self._transaction:
                    await self._transaction.rollback()
                logger.warning(
                    f"Transaction rolled back due to {exc_type.__name__}: {exc_val} "
                    f"(duration={duration:.2f}s)"
                )
            else:
                if self._transaction:
                    await self._transaction.commit()
                logger.debug(f"Transaction committed (duration={duration:.2f}s)")

                if self.config.log_slow_queries and duration > self.config.slow_query_threshold:
                    logger.warning(
                        f"Slow transaction: {duration:.2f}s "
                        f"(threshold={self.config.slow_query_threshold}s)"
                    )

        finally:
            if self._connection:
                await self._connection.close()

    @property
    def connection(self) -> AsyncConnection:
        """Get the transaction's connection.

        Raises:
            RuntimeError: If accessed outside transaction context
        """
        if not self._connection:
            raise RuntimeError("Connection only available within transaction context")

        return self._connection
