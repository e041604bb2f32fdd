import pytest
import structlog

from garage.logging_config import setup_logging


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    setup_logging()


@pytest.fixture(autouse=True)
def clear_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
