"""
Database session management (SQLAlchemy)
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from app.config import get_settings
from app.domain.errors import StorageError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for all ORM models
    """
    pass


# Синглтоны engine и фабрики сессий
_engine = None
_SessionLocal = None


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite игнорирует FOREIGN KEY без pragma на каждом соединении."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine():
    """Get or create SQLAlchemy engine (singleton)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.get_sqlalchemy_url()
        _engine = create_engine(url, pool_pre_ping=True)
        enable_sqlite_foreign_keys(_engine)
    return _engine


def get_session_factory():
    """Get or create session factory (singleton)"""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Iterator[Session]:
    """
    Dependency для FastAPI: открывает сессию и всегда закрывает её

    Usage:
        @app.get("/config")
        def read_config(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_schema() -> None:
    """Создать все таблицы для нового локального хранилища (обновления делает alembic)."""
    # Импорт регистрирует модели в Base.metadata
    from app.infrastructure.db import models  # noqa: F401

    Base.metadata.create_all(get_engine())


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Unit of work "всё или ничего".

    Commit по завершении блока, rollback при любом исключении. Ошибки
    драйвера превращаются в StorageError, доменные ошибки пробрасываются как есть.

    Usage:
        with atomic(db):
            repo.insert_transaction(...)
            repo.upsert_payment(...)
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage failure, transaction rolled back: %s", exc)
        raise StorageError(str(exc)) from exc
    except Exception:
        db.rollback()
        raise


def check_db_connection() -> None:
    """
    Health check - the configured store answers a trivial query

    Raises:
        StorageError: if the store is unreachable
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc
