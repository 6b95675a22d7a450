import pytest


@pytest.fixture
def anyio_backend() -> str:
    """The executor uses asyncio subprocesses, so run async tests on asyncio only."""
    return "asyncio"
