"""
Pytest fixtures for testing
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.domain.budget_config import BudgetConfig
from app.infrastructure.db import models  # noqa: F401  (registers tables)
from app.infrastructure.db.models import FixedCostModel
from app.infrastructure.db.session import Base, enable_sqlite_foreign_keys
from app.infrastructure.ledger.repository import LedgerRepository

_TS = datetime(2025, 5, 10, 3, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs in a worker thread)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def repo(db_session) -> LedgerRepository:
    return LedgerRepository(db_session)


@pytest.fixture
def set_config(db_session, repo):
    """Store a config row: set_config(min_floor, max_ceil, resilience_days, coach_mode="calm")"""
    def _set(min_floor: int, max_ceil: int, resilience_days: int, coach_mode: str = "calm") -> BudgetConfig:
        config = repo.update_config(BudgetConfig(min_floor, max_ceil, resilience_days, coach_mode))
        db_session.commit()
        return config
    return _set


@pytest.fixture
def make_tx(db_session, repo):
    """Insert a manual transaction: make_tx("2025-05-10", "IN", 1000)"""
    def _make(date_local: str, kind: str, amount: int, **extra):
        tx = repo.insert_transaction(
            kind=kind, amount=amount, date_local=date_local, ts_utc=_TS, **extra
        )
        db_session.commit()
        return tx
    return _make


@pytest.fixture
def make_fixed_cost(db_session):
    def _make(name: str = "Rent", amount: int = 500, is_active: bool = True) -> FixedCostModel:
        fc = FixedCostModel(name=name, amount=amount, is_active=is_active)
        db_session.add(fc)
        db_session.commit()
        return fc
    return _make
