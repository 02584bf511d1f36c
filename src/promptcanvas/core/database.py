"""Database engine and session factory setup."""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Seconds a SQLite writer waits for the database lock before failing
SQLITE_BUSY_TIMEOUT = 30


def setup_db_session(db_url: str, pool_size: int = 20) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    PostgreSQL (postgresql+psycopg://...) in deployments; SQLite
    (sqlite+aiosqlite:///path.db) is accepted for local runs and tests, where
    concurrent writers queue on the file lock instead of failing immediately.

    Args:
        db_url: Async connection URL
        pool_size: Maximum number of connections in the pool (default: 20)

    Returns:
        Async session factory; the engine is reachable as factory.kw["bind"]
    """
    connect_args = {}
    if make_url(db_url).get_backend_name() == "sqlite":
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT

    engine = create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        echo=False,  # SQL is not logged; services log through structlog
        connect_args=connect_args,
    )

    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
