"""Shared fixtures: an in-memory SQLite session built from the ORM metadata."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.db.base import Base
from app.services import fx


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    with TestingSession() as session:
        yield session


@pytest.fixture(autouse=True)
def _reset_rate_cache():
    fx._rate_cache = None
    yield
    fx._rate_cache = None
