"""
Unit Tests for Logging Utilities

Tests for:
- ColoredFormatter ANSI coloring per level
- setup_logging dictConfig loading and basicConfig fallback
- Logger levels applied after configuration
"""

import json
import logging
from io import StringIO
from unittest.mock import patch

import pytest

from game_recommender.utils.logging import (
    DEFAULT_CONFIG_PATH,
    QUIET_LOGGERS,
    ColoredFormatter,
    setup_logging,
)

RESET = "\033[0m"


def _make_record(level: int, message: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name="game_recommender.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_levels():
    """Put logger levels back after setup_logging changes them."""
    names = ["", "game_recommender", *QUIET_LOGGERS]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


# =============================================================================
# ColoredFormatter Tests
# =============================================================================


class TestColoredFormatter:
    """Tests for ANSI color formatting."""

    def _tty_formatter(self) -> ColoredFormatter:
        stream = StringIO()
        stream.isatty = lambda: True  # type: ignore[method-assign]
        return ColoredFormatter("%(levelname)s | %(message)s", stream=stream)

    @pytest.mark.parametrize("level", list(ColoredFormatter.COLORS))
    def test_color_applied_per_level(self, level, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)

        output = self._tty_formatter().format(_make_record(level))

        assert ColoredFormatter.COLORS[level] in output
        assert RESET in output

    def test_no_color_when_no_color_env_set(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")

        output = self._tty_formatter().format(_make_record(logging.INFO))

        assert "\033[" not in output

    def test_no_color_when_stream_not_tty(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=StringIO())

        assert fmt.format(_make_record(logging.ERROR)) == "ERROR | test"

    def test_original_record_is_untouched(self, monkeypatch):
        """Coloring must not leak into other handlers sharing the record."""
        monkeypatch.delenv("NO_COLOR", raising=False)
        record = _make_record(logging.WARNING)

        self._tty_formatter().format(record)

        assert record.levelname == "WARNING"


# =============================================================================
# setup_logging Tests
# =============================================================================


class TestSetupLogging:
    """Tests for logging configuration."""

    def test_default_config_file_is_valid(self):
        config = json.loads(DEFAULT_CONFIG_PATH.read_text())

        assert config["version"] == 1
        assert "game_recommender" in config["loggers"]

    def test_dictconfig_called_with_file_contents(self, tmp_path, restore_levels):
        config = {"version": 1, "disable_existing_loggers": False}
        path = tmp_path / "logging.json"
        path.write_text(json.dumps(config))

        with patch("logging.config.dictConfig") as mock_dc:
            setup_logging("INFO", path)

        mock_dc.assert_called_once_with(config)

    @pytest.mark.parametrize("content", [None, "{invalid json"])
    def test_fallback_to_basicconfig(self, tmp_path, content, restore_levels):
        """Should fall back to basicConfig when the file is missing or malformed."""
        path = tmp_path / "logging.json"
        if content is not None:
            path.write_text(content)

        with patch("logging.basicConfig") as mock_bc:
            setup_logging("WARNING", path)

        mock_bc.assert_called_once()
        assert mock_bc.call_args.kwargs["level"] == logging.WARNING

    def test_levels_applied(self, restore_levels):
        with patch("logging.config.dictConfig"):
            setup_logging("debug", DEFAULT_CONFIG_PATH)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("game_recommender").level == logging.DEBUG
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_unknown_level_defaults_to_info(self, restore_levels):
        with patch("logging.config.dictConfig"):
            setup_logging("chatty")

        assert logging.getLogger("game_recommender").level == logging.INFO
