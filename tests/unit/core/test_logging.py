import pytest
import structlog

from gatehouse.core.config import Settings
from gatehouse.core.logging import (
    LoggingContext,
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
    rename_message_field,
)


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_configure_logging_console(reset_structlog):
    configure_logging(Settings(_env_file=None, environment="testing", log_format="console"))

    logger = get_logger("gatehouse.test")
    logger.info("Logging configured", check=True)

    assert structlog.is_configured()


def test_rename_message_field():
    event_dict = rename_message_field(None, "info", {"event": "Module created"})

    assert event_dict == {"message": "Module created"}


def test_correlation_id_binding():
    bind_correlation_id("cid_test")
    try:
        assert structlog.contextvars.get_contextvars()["correlation_id"] == "cid_test"
    finally:
        clear_context()

    assert "correlation_id" not in structlog.contextvars.get_contextvars()


def test_logging_context_unbinds():
    with LoggingContext(actor="admin@example.com"):
        assert structlog.contextvars.get_contextvars()["actor"] == "admin@example.com"

    assert "actor" not in structlog.contextvars.get_contextvars()
