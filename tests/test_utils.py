"""Tests for vmrelay.utils module."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from vmrelay.exceptions import RelayError
from vmrelay.utils import get_env, get_env_bool, log, parse_int_env, raw_terminal


class TestLog:
    def test_info_goes_to_stderr(self, capsys):
        log("INFO", "test message")
        captured = capsys.readouterr()
        assert "[INFO]" in captured.err
        assert "test message" in captured.err
        assert captured.out == ""

    def test_debug_suppressed_by_default(self, monkeypatch, capsys):
        monkeypatch.delenv("LOG_VERBOSE", raising=False)
        log("DEBUG", "should not appear")
        captured = capsys.readouterr()
        assert captured.err == ""

    @pytest.mark.parametrize("value", ["1", "yes", "On"])
    def test_debug_shown_when_verbose(self, monkeypatch, capsys, value):
        monkeypatch.setenv("LOG_VERBOSE", value)
        log("DEBUG", "details")
        assert "details" in capsys.readouterr().err

    def test_debug_suppressed_when_verbose_off(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_VERBOSE", "0")
        log("DEBUG", "details")
        assert capsys.readouterr().err == ""


class TestGetEnv:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert get_env("TEST_VAR") == "hello"

    def test_returns_default(self, monkeypatch):
        monkeypatch.delenv("TEST_VAR", raising=False)
        assert get_env("TEST_VAR", "fallback") == "fallback"


class TestGetEnvBool:
    @pytest.mark.parametrize("value", ["1", "true", "yes", "on", "TRUE", "Yes"])
    def test_truthy_values(self, monkeypatch, value):
        monkeypatch.setenv("TEST_BOOL", value)
        assert get_env_bool("TEST_BOOL") is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "off", "random"])
    def test_falsy_values(self, monkeypatch, value):
        monkeypatch.setenv("TEST_BOOL", value)
        assert get_env_bool("TEST_BOOL") is False

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("TEST_BOOL", raising=False)
        assert get_env_bool("TEST_BOOL", True) is True


class TestParseIntEnv:
    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "42")
        assert parse_int_env("MY_INT", "10") == 42

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("MY_INT", raising=False)
        assert parse_int_env("MY_INT", "10") == 10

    def test_non_integer_raises(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "abc")
        with pytest.raises(RelayError, match="must be an integer"):
            parse_int_env("MY_INT", "10")

    def test_below_minimum_raises(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "0")
        with pytest.raises(RelayError, match="must be >= 1"):
            parse_int_env("MY_INT", "10")

    def test_above_maximum_raises(self, monkeypatch):
        monkeypatch.setenv("MY_INT", "100")
        with pytest.raises(RelayError, match="must be <= 50"):
            parse_int_env("MY_INT", "10", max_val=50)


class TestRawTerminal:
    def test_pipe_is_left_alone(self):
        read_fd, write_fd = os.pipe()
        try:
            with patch("vmrelay.utils.tty.setraw") as mock_setraw:
                with raw_terminal(read_fd) as is_raw:
                    assert is_raw is False
            mock_setraw.assert_not_called()
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_tty_restored_after_block(self):
        with (
            patch("vmrelay.utils.os.isatty", return_value=True),
            patch("vmrelay.utils.termios.tcgetattr", return_value=["saved"]),
            patch("vmrelay.utils.termios.tcsetattr") as mock_set,
            patch("vmrelay.utils.tty.setraw") as mock_setraw,
        ):
            with pytest.raises(RuntimeError):
                with raw_terminal(0) as is_raw:
                    assert is_raw is True
                    raise RuntimeError("boom")
        mock_setraw.assert_called_once_with(0)
        mock_set.assert_called_once()
        assert mock_set.call_args[0][2] == ["saved"]
