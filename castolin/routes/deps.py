"""FastAPI dependencies shared by the routers."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from castolin.db.client import get_session_factory

logger = logging.getLogger(__name__)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for reads and for services that open their own transaction."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def get_write_session() -> AsyncGenerator[AsyncSession, None]:
    """Session committed when the request succeeds and rolled back otherwise."""
    factory = get_session_factory()
    async with factory() as session:
        logger.info("🔵 [TRANSACTION START] PostgreSQL write transaction started")
        try:
            yield session
            await session.commit()
            logger.info("✅ [TRANSACTION END] PostgreSQL transaction committed successfully")
        except Exception as e:
            logger.error(f"❌ [TRANSACTION] PostgreSQL transaction failed, rolling back: {e}")
            await session.rollback()
            raise
