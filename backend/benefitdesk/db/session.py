from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from benefitdesk.core.settings import settings


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str, **overrides: Any) -> Engine:
    """Build an engine for ``url``.

    SQLite gets thread-sharing and enforced foreign keys (stage and booking
    rows reference their request). Other backends get the configured pool.
    """
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
        )
    kwargs.update(overrides)

    db_engine = create_engine(url, **kwargs)
    if is_sqlite:
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
    return db_engine


def make_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    # Snapshots are built from rows after commit, so keep attributes loaded.
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False, class_=Session)


engine = create_db_engine(settings.database_url)
SessionLocal = make_sessionmaker(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
