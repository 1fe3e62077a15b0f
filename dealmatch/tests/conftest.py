from __future__ import annotations

import itertools
import os

# Keep the app lifespan from creating a database file next to the package.
os.environ.setdefault("DEALMATCH_DB_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dealmatch.db import enable_sqlite_foreign_keys
from dealmatch.models import Base, Investor, Startup

_user_ids = itertools.count(1)


@pytest.fixture()
def engine():
    """In-memory SQLite shared across connections via StaticPool."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory):
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def make_startup(session):
    def _make(**overrides) -> Startup:
        fields = {
            "user_id": f"startup-user-{next(_user_ids)}",
            "company_name": "Ledgerly",
            "industry": ["payments"],
            "stage": "mvp",
            "business_model": "saas",
            "target_amount": 500_000,
            "status": "published",
        }
        fields.update(overrides)
        startup = Startup(**fields)
        session.add(startup)
        session.commit()
        return startup
    return _make


@pytest.fixture()
def make_investor(session):
    def _make(**overrides) -> Investor:
        fields = {
            "user_id": f"investor-user-{next(_user_ids)}",
            "firm_name": "Northwind Ventures",
            "investment_industries": ["payments"],
            "investment_stages": ["seed"],
            "business_models": ["saas"],
            "investment_geographies": ["global"],
            "check_size_min": 100,
            "check_size_max": 1000,
            "status": "active",
        }
        fields.update(overrides)
        investor = Investor(**fields)
        session.add(investor)
        session.commit()
        return investor
    return _make
