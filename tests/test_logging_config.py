"""Tests for logging setup and timing."""
import logging

import pytest
from vswitch_reconcile.utils.logging_config import (
    get_log_level,
    main_logger,
    perf_logger,
    setup_logging,
    timed_section,
)


@pytest.fixture
def restore_loggers():
    loggers = [main_logger, perf_logger, logging.getLogger("vswitch_reconcile")]
    saved = [(lg, list(lg.handlers), lg.level, lg.propagate) for lg in loggers]
    yield
    for lg, handlers, level, propagate in saved:
        for handler in list(lg.handlers):
            if handler not in handlers:
                lg.removeHandler(handler)
                handler.close()
        lg.setLevel(level)
        lg.propagate = propagate


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("VSWITCH_LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG
        monkeypatch.setenv("VSWITCH_LOG_LEVEL", "chatty")
        assert get_log_level() == logging.INFO

    def test_creates_log_files(self, monkeypatch, tmp_path, restore_loggers):
        log_file = tmp_path / "logs" / "vswitch.log"
        monkeypatch.setenv("VSWITCH_LOG_FILE", str(log_file))

        setup_logging()
        for handler in main_logger.handlers + perf_logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert (tmp_path / "logs" / "vswitch-perf.log").exists()
        assert perf_logger.propagate is False
        assert "Logging initialized" in log_file.read_text()


class TestTimedSection:
    """Tests for the timing context manager."""

    @pytest.mark.asyncio
    async def test_success_logged(self, caplog):
        perf_logger.propagate = True
        with caplog.at_level(logging.INFO, logger="vswitch.perf"):
            async with timed_section("add_host", switch="dvs-21", host="host-3"):
                pass
        assert "add_host" in caplog.text
        assert "OK" in caplog.text
        assert "host=host-3" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_logged_and_raised(self, caplog):
        perf_logger.propagate = True
        with caplog.at_level(logging.INFO, logger="vswitch.perf"):
            with pytest.raises(RuntimeError):
                async with timed_section("reconfigure", switch="dvs-21"):
                    raise RuntimeError("boom")
        assert "FAIL: boom" in caplog.text
