"""Tests for loguru sink configuration."""

import pytest
from loguru import logger

from scrubkit.logging_config import setup_logging


@pytest.fixture(autouse=True)
def drop_sinks():
    yield
    logger.remove()


class TestSetupLogging:

    def test_explicit_level(self, capsys):
        setup_logging("INFO")
        logger.info("sanitizer ready")
        logger.debug("hidden detail")
        err = capsys.readouterr().err
        assert "sanitizer ready" in err
        assert "hidden detail" not in err

    def test_level_from_environment(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRUBKIT_LOG_LEVEL", "warning")
        setup_logging()
        logger.info("routine")
        logger.warning("SECURITY: flagged")
        err = capsys.readouterr().err
        assert "routine" not in err
        assert "SECURITY: flagged" in err
