"""
FastAPI dependencies: database session and run registry
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from core.database import async_session_maker
from ingestion.registry import RunRegistry

registry = RunRegistry()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session


def get_registry() -> RunRegistry:
    """Process-wide registry of background runs"""
    return registry
