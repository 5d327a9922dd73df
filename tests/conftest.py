"""Common pytest configuration."""

import pytest

from lingobus_io.storage import InMemoryLogSink


@pytest.fixture
def anyio_backend() -> str:
    """Force asyncio backend for anyio-powered tests.

    Returns:
        str: The backend name.
    """
    return "asyncio"


@pytest.fixture
def log_sink() -> InMemoryLogSink:
    """Return a log sink that records entries for assertions."""
    return InMemoryLogSink()
