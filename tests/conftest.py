"""Shared test fixtures and configuration.

Sets environment variables before any src import so settings never pick up
a developer's .env, and provides a fresh SQLite database per test.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", "data/test-unused.db")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("PROPOSAL_MESSAGE_MAX_LENGTH", "200")
os.environ.setdefault("COMMENT_MAX_LENGTH", "240")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_meetups.db")


@pytest.fixture
def services(tmp_db_path):
    """All core services bound to one temp database."""
    from src.adapters.service_factory import create_services
    return create_services(tmp_db_path)


@pytest.fixture
def alice(services):
    return services.users.add_user("alice", display_name="Alice")


@pytest.fixture
def bob(services):
    return services.users.add_user("bob")


@pytest.fixture
def carol(services):
    return services.users.add_user("carol")


@pytest.fixture
def make_friends(services):
    """Return a helper that makes two users accepted friends."""
    def _make(a, b):
        request = services.friendships.request(a, b.username)
        return services.friendships.respond(b, request.id, accept=True)
    return _make
