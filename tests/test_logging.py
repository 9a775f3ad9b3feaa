"""
Tests for the logging configuration module.

Tests the centralized logging configuration functionality.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from carddav_sync.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    DEFAULT_FORMAT,
    LOGGER_NAME,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test without logging environment overrides."""
    for name in (
        "CARDDAV_SYNC_DEBUG",
        "CARDDAV_SYNC_LOG_LEVEL",
        "CARDDAV_SYNC_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    logging.getLogger(LOGGER_NAME).handlers.clear()


class TestConstants:
    """Tests for module constants."""

    def test_formats_defined(self):
        """Test the log formats carry the message."""
        for fmt in (DEFAULT_FORMAT, CONSOLE_FORMAT, VERBOSE_FORMAT):
            assert "%(message)s" in fmt

    def test_verbose_format_has_location(self):
        assert "%(filename)s" in VERBOSE_FORMAT
        assert "%(lineno)d" in VERBOSE_FORMAT

    def test_date_format_defined(self):
        assert DATE_FORMAT is not None


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    def test_default_is_info(self):
        assert get_log_level_from_env() == logging.INFO

    @pytest.mark.parametrize("value", ["1", "true", "YES"])
    def test_debug_flag(self, monkeypatch, value):
        monkeypatch.setenv("CARDDAV_SYNC_DEBUG", value)
        assert get_log_level_from_env() == logging.DEBUG

    def test_debug_flag_wins_over_level(self, monkeypatch):
        monkeypatch.setenv("CARDDAV_SYNC_DEBUG", "1")
        monkeypatch.setenv("CARDDAV_SYNC_LOG_LEVEL", "ERROR")
        assert get_log_level_from_env() == logging.DEBUG

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("debug", logging.DEBUG),
            ("WARNING", logging.WARNING),
            ("warn", logging.WARNING),
            ("error", logging.ERROR),
            ("bogus", logging.INFO),
        ],
    )
    def test_level_names(self, monkeypatch, value, expected):
        monkeypatch.setenv("CARDDAV_SYNC_LOG_LEVEL", value)
        assert get_log_level_from_env() == expected


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    def test_no_log_dir_means_no_file(self):
        assert get_log_file_path() is None

    def test_daily_file_in_log_dir(self, tmp_path):
        path = get_log_file_path(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("carddav_sync_")
        assert path.suffix == ".log"

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CARDDAV_SYNC_LOG_FILE", str(tmp_path / "x.log"))
        assert get_log_file_path(Path("/ignored")) == tmp_path / "x.log"

    @pytest.mark.parametrize("value", ["none", "DISABLED", ""])
    def test_env_disables(self, monkeypatch, tmp_path, value):
        monkeypatch.setenv("CARDDAV_SYNC_LOG_FILE", value)
        assert get_log_file_path(tmp_path) is None


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_package_logger(self):
        logger = setup_logging(enable_file_logging=False)

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.INFO
        assert logger.propagate is False
        assert len(logger.handlers) == 1

    def test_verbose_forces_debug(self):
        logger = setup_logging(level=logging.ERROR, verbose=True)
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_explicit_level(self):
        logger = setup_logging(level=logging.WARNING)
        assert logger.level == logging.WARNING

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_plain_formatter_without_colors(self):
        logger = setup_logging(use_colors=False)
        assert not isinstance(logger.handlers[0].formatter, ColoredFormatter)

    def test_file_handler(self, tmp_path):
        logger = setup_logging(log_dir=tmp_path)
        file_handlers = [
            h for h in logger.handlers if isinstance(h, logging.FileHandler)
        ]

        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        get_logger("test").info("hello file")
        file_handlers[0].flush()
        log_files = list(tmp_path.glob("carddav_sync_*.log"))
        assert len(log_files) == 1
        assert "hello file" in log_files[0].read_text()
        file_handlers[0].close()

    def test_file_logging_disabled(self, tmp_path):
        logger = setup_logging(log_dir=tmp_path, enable_file_logging=False)

        assert len(logger.handlers) == 1
        assert list(tmp_path.iterdir()) == []


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def _record(self):
        return logging.LogRecord("x", logging.ERROR, __file__, 1, "msg", None, None)

    def test_no_colors_when_not_a_tty(self):
        with patch("sys.stderr") as stderr:
            stderr.isatty.return_value = False
            formatter = ColoredFormatter("%(levelname)s %(message)s")

        assert formatter.use_colors is False
        assert formatter.format(self._record()) == "ERROR msg"

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        with patch("sys.stderr") as stderr:
            stderr.isatty.return_value = True
            formatter = ColoredFormatter("%(levelname)s")
        assert formatter.use_colors is False

    def test_colors_on_tty(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm")
        with patch("sys.stderr") as stderr:
            stderr.isatty.return_value = True
            formatter = ColoredFormatter("%(levelname)s")

        record = self._record()
        assert formatter.format(record) == "\033[31mERROR\033[0m"
        assert record.levelname == "ERROR"


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs function."""

    def _make_logs(self, log_dir, count):
        for i in range(count):
            path = log_dir / f"carddav_sync_2024010{i}.log"
            path.write_text("x")
            os.utime(path, (1_700_000_000 + i, 1_700_000_000 + i))

    def test_keeps_most_recent(self, tmp_path):
        self._make_logs(tmp_path, 5)

        assert cleanup_old_logs(tmp_path, keep_count=2) == 3
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == ["carddav_sync_20240103.log", "carddav_sync_20240104.log"]

    def test_zero_keeps_everything(self, tmp_path):
        self._make_logs(tmp_path, 3)
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0
        assert len(list(tmp_path.iterdir())) == 3

    def test_missing_dir(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "nope") == 0
        assert cleanup_old_logs(None) == 0

    def test_other_files_untouched(self, tmp_path):
        self._make_logs(tmp_path, 2)
        (tmp_path / "notes.txt").write_text("keep")

        cleanup_old_logs(tmp_path, keep_count=1)

        assert (tmp_path / "notes.txt").exists()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_prefixes_package_name(self):
        assert get_logger("engine").name == "carddav_sync.engine"

    def test_keeps_package_names(self):
        assert get_logger("carddav_sync.sync").name == "carddav_sync.sync"
