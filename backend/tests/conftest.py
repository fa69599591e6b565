"""
Shared fixtures.

Invariant tests run against a real SQLite database created per test in
tmp_path; pure logic is tested with MagicMock sessions.
"""
import os

# Must be set before anything imports app.database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")

import threading
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import Base, build_engine
from app.models.db_models import UserDB, UserRole


@pytest.fixture
def engine(tmp_path):
    from app.models import db_models  # noqa: F401

    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Factory for committed users."""
    def _make(role=UserRole.CITIZEN, name=None, city="New Delhi", state="Delhi"):
        user = UserDB(
            id=str(uuid4()),
            name=name or f"user-{uuid4().hex[:6]}",
            role=role,
            city=city,
            state=state,
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def catalog(db):
    """Seeded departments, SLA rules, zones, badges and rewards."""
    from scripts.seed_catalog import seed_catalog
    return seed_catalog(db)


@pytest.fixture
def run_concurrently(session_factory):
    """
    Run each call on its own thread with its own session, released together.

    Returns one outcome per call: the return value, or the exception raised.
    The caller's own session must not hold an open transaction.
    """
    def _run(calls):
        barrier = threading.Barrier(len(calls))
        outcomes = [None] * len(calls)

        def _worker(index, call):
            session = session_factory()
            try:
                barrier.wait()
                outcomes[index] = call(session)
            except Exception as exc:
                outcomes[index] = exc
            finally:
                session.close()

        threads = [threading.Thread(target=_worker, args=(i, call)) for i, call in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)
        return outcomes
    return _run
