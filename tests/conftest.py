"""Pytest configuration and shared fixtures."""

import pytest


@pytest.fixture(scope="module")
def anyio_backend():
    """Run async client tests on the asyncio event loop."""
    return "asyncio"
