import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI binds its log output to the current stderr; drop it after each test."""
    yield
    structlog.reset_defaults()
