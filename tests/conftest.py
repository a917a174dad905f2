"""Shared pytest fixtures for InferFlow tests."""

import pytest

from inferflow.db.connection import Database
from inferflow.providers.registry import clear_providers
from inferflow.sessions.manager import SessionManager
from inferflow.trees.store import TreeStore


@pytest.fixture
def db():
    """In-memory database for tests."""
    database = Database.connect(":memory:")
    yield database
    database.close()


@pytest.fixture
def store() -> TreeStore:
    return TreeStore()


@pytest.fixture
def clock():
    """Deterministic millisecond clock, advancing by one second per call."""
    state = {"now": 1_700_000_000_000}

    def tick() -> int:
        state["now"] += 1000
        return state["now"]

    return tick


@pytest.fixture
def manager(db, clock) -> SessionManager:
    """SessionManager bootstrapped over an empty in-memory database."""
    mgr = SessionManager(db, clock=clock)
    mgr.load()
    return mgr


@pytest.fixture(autouse=True)
def _isolated_provider_registry():
    clear_providers()
    yield
    clear_providers()
