import logging
import os

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)

# Enrichment write-backs and batch persists overlap; wait for the lock instead of failing
SQLITE_BUSY_TIMEOUT_MS = 5000


class Database:
    """Async engine and session factory for the games, api cache and stats tables."""

    def __init__(self, db_url: str, echo: bool = False):
        self.db_url = db_url
        self.echo = echo
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite")

    async def connect(self):
        """Creates the engine and any missing tables."""
        # Plain sqlite:// URLs get the async driver
        if self.db_url.startswith("sqlite://"):
            self.db_url = self.db_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

        if self.is_sqlite and ":memory:" not in self.db_url:
            db_dir = os.path.dirname(self.db_url.split(":///", 1)[-1])
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        options = {} if self.is_sqlite else {"pool_pre_ping": True}
        self.engine = create_async_engine(self.db_url, echo=self.echo, **options)

        if self.is_sqlite and ":memory:" not in self.db_url:

            @event.listens_for(self.engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
                cursor.close()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        logger.debug(f"Database connected: {self.engine.url.render_as_string(hide_password=True)}")

    async def close(self):
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

    @property
    def connected(self) -> bool:
        return self.session_factory is not None

    @property
    def session(self):
        """Returns a new AsyncSession context manager."""
        if not self.session_factory:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.session_factory()
