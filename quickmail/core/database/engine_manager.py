"""Engine manager wrapping SQLAlchemy connection pool."""

import asyncio
from pathlib import Path
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from quickmail.core.database.base import create_engine, dispose_engine, metadata
from quickmail.core.database.config import DatabaseConfig, get_config
from quickmail.utils.errors import DatabaseConnectionError
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)


class EngineManager:
    """Manages SQLAlchemy async engine lifecycle."""

    def __init__(
        self,
        db_path: Path,
        config: Optional[DatabaseConfig] = None,
    ) -> None:
        self.db_path = db_path
        self.config = config or get_config()

        self._engine: Optional[AsyncEngine] = None
        self._lock = asyncio.Lock()

    async def get_engine(self) -> AsyncEngine:
        """Get or create the async engine.

        Raises:
            DatabaseConnectionError: If engine creation fails
        """
        async with self._lock:
            if self._engine is None:
                try:
                    self._engine = create_engine(self.db_path, config=self.config)
                    logger.info(f"Engine initialised: {self.db_path}")
                except Exception as e:
                    raise DatabaseConnectionError(
                        "Failed to create database engine",
                        details={"db_path": str(self.db_path), "error": str(e)},
                    ) from e

        return self._engine

    async def create_schema(self) -> None:
        """Create any missing quickmail tables."""
        engine = await self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

        logger.debug("Schema ensured")

    async def close(self) -> None:
        """Dispose of engine and close all pooled connections."""
        if self._engine:
            try:
                await dispose_engine(self._engine)
                self._engine = None
            except Exception as e:
                logger.error(f"Error disposing engine: {e}")

    async def health_check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            engine = await self.get_engine()
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            healthy = row is not None and row[0] == 1
            if not healthy:
                logger.warning("Database health check: FAILED")

            return healthy

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def __aenter__(self):
        await self.get_engine()

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            await self.close()
        except Exception as e:
            if exc_type is None:
                raise
            logger.error(f"Error closing engine: {e}")
        return False
