"""Unit tests for logging configuration."""

import pytest
import structlog

from rolegate.config import Settings
from rolegate.core.logging import configure_logging


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_renderer_in_production(self) -> None:
        configure_logging(Settings(environment="production"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_in_development(self) -> None:
        configure_logging(Settings(environment="development", log_json=False))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Verify events below the configured level are dropped."""
        configure_logging(Settings(log_level="WARNING", log_json=True))
        logger = structlog.get_logger()

        logger.info("hidden_event")
        logger.warning("shown_event", role="admin")

        output = capsys.readouterr().out
        assert "hidden_event" not in output
        assert '"event": "shown_event"' in output
        assert '"role": "admin"' in output
