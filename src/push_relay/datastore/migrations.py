"""Schema creation helpers.

Production deployments run the Alembic scripts; these helpers create the
schema directly for development and tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from push_relay.engine.models.base import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def run_auto_migrate(engine: AsyncEngine) -> None:
    """Create all tables defined by ORM models."""
    import push_relay.engine.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all_tables(engine: AsyncEngine) -> None:
    """Drop all tables (test/dev utility only)."""
    import push_relay.engine.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
