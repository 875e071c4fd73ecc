from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from helpdesk.core.config import Settings
from helpdesk.tickets.repository import SqlTicketStore
from helpdesk.tickets.store import JsonFileTicketStore, MemoryTicketStore, TicketStore

logger = logging.getLogger(__name__)


def to_asyncpg_dsn(dsn: str) -> str:
    """Point a plain PostgreSQL DSN at the asyncpg driver."""

    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if dsn.startswith(prefix):
            return "postgresql+asyncpg://" + dsn[len(prefix) :]
    return dsn


@dataclass(slots=True)
class Datastore:
    """Ticket store selected by configuration, plus whatever it needs closed."""

    store: TicketStore
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None


async def open_datastore(settings: Settings) -> Datastore:
    if settings.datastore_type == "file":
        store = JsonFileTicketStore(settings.data_file_path)
        await store.init()
        logger.info("Using JSON file ticket store at %s", store.path)
        return Datastore(store=store)

    if settings.datastore_type == "postgres":
        engine = create_async_engine(to_asyncpg_dsn(settings.postgres_dsn), pool_pre_ping=True)
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        sql_store = SqlTicketStore(session_factory, engine=engine)
        try:
            await sql_store.ensure_schema()
        except Exception:
            await engine.dispose()
            raise
        logger.info("Using PostgreSQL ticket store")
        return Datastore(store=sql_store, engine=engine)

    logger.info("Using in-memory ticket store")
    return Datastore(store=MemoryTicketStore())
