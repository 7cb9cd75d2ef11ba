"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from unittest.mock import MagicMock, AsyncMock

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


def make_mock_redis() -> MagicMock:
    """
    Create a mock Redis client.
    
    ``mock.pipe`` is the pipeline yielded by
    ``async with mock.pipeline(transaction=True)``.
    """
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.delete = AsyncMock(return_value=1)
    mock.smembers = AsyncMock(return_value=set())
    mock.mget = AsyncMock(return_value=[])
    mock.srem = AsyncMock(return_value=0)
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock(return_value=None)
    
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True])
    mock.pipeline.return_value.__aenter__.return_value = pipe
    mock.pipeline.return_value.__aexit__.return_value = False
    mock.pipe = pipe
    return mock


def make_fake_redis() -> FakeAsyncRedis:
    """Create an in-memory Redis with its own server so tests never share data."""
    return FakeAsyncRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client for unit tests."""
    return make_mock_redis()


@pytest.fixture
def fake_redis() -> FakeAsyncRedis:
    """Create an isolated in-memory Redis for behavioral tests."""
    return make_fake_redis()


@pytest.fixture
def sample_session() -> dict:
    """Sample anonymous session record."""
    return {
        "cookie": {"maxAge": 86400000, "httpOnly": True, "path": "/"},
        "views": 3,
        "flash": [],
    }


@pytest.fixture
def authenticated_session() -> dict:
    """Sample session record belonging to user u1."""
    return {
        "cookie": {"maxAge": 86400000, "httpOnly": True, "path": "/"},
        "passport": {"user": "u1"},
        "csrf": "tok-1",
    }
