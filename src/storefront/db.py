import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from storefront.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[Engine] = None

# Largest value a BIGINT (or SQLite INTEGER) key can hold
MAX_BIGINT = 2 ** 63 - 1


def init_engine(database: DatabaseConfig) -> Engine:
    """Create the process-wide engine from configuration."""
    global engine

    if engine is not None:
        engine.dispose()

    if database.url.startswith("sqlite"):
        # In-memory SQLite needs a single shared connection
        engine = create_engine(
            database.url,
            echo=database.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        engine = create_engine(
            database.url,
            echo=database.echo,
            pool_size=database.pool_size,
            max_overflow=database.max_overflow,
            pool_timeout=database.pool_timeout,
            pool_recycle=database.pool_recycle,
            pool_pre_ping=True,
        )
    logger.info("Database engine ready (%s)", engine.url.get_backend_name())
    return engine


def get_engine() -> Engine:
    if engine is None:
        raise RuntimeError("Database engine is not initialised; call init_engine() first")
    return engine


@contextmanager
def get_connection() -> Iterator[Connection]:
    """Plain connection; callers commit their own writes."""
    with get_engine().connect() as conn:
        yield conn


@contextmanager
def transaction() -> Iterator[Connection]:
    """Connection inside BEGIN; commits on success, rolls back on error."""
    with get_engine().begin() as conn:
        yield conn


def lock_clause(conn: Connection) -> str:
    """Row lock suffix for SELECT statements. SQLite has no FOR UPDATE."""
    if conn.dialect.name == "sqlite":
        return ""
    return " FOR UPDATE"


def create_schema() -> None:
    import storefront.models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=get_engine())


def ping() -> None:
    with get_connection() as conn:
        conn.execute(text("SELECT 1"))
