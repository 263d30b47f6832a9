"""Engine and session factory."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agency_billing.db.tables import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """Owns the engine and hands out sessions.

    Sessions are created with ``expire_on_commit=False`` so services can
    return loaded rows to routes and commands after the transaction ends.

    Example:
        >>> db = Database("sqlite://")
        >>> db.create_all()
        >>> with db.session_scope() as session:
        ...     session.add(Agency(name="Acme", email="hi@acme.au"))
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = self._build_engine(url, echo)
        self._sessionmaker = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
            future=True,
        )

    @staticmethod
    def _build_engine(url: str, echo: bool) -> Engine:
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise every session sees an empty DB
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, echo=echo, future=True, **kwargs)

            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_engine(url, echo=echo, future=True, pool_pre_ping=True)

    def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ensured")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on any error."""
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


_database: Optional[Database] = None


def get_database(url: Optional[str] = None) -> Database:
    """Process-wide database, created from settings on first use."""
    global _database
    if _database is None or (url is not None and url != _database.url):
        if url is None:
            from agency_billing.config import get_settings

            url = get_settings().database_url
        _database = Database(url)
    return _database


def reset_database() -> None:
    global _database
    if _database is not None:
        _database.dispose()
    _database = None
