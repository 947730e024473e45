"""Tests for CLI argument parsing."""

import pytest

import convo_tui.cli


def test_defaults(monkeypatch):
    monkeypatch.delenv("CONVO_TUI_SERVER", raising=False)
    args = convo_tui.cli.build_parser().parse_args(["--session", "ses_1"])
    assert args.server == "http://127.0.0.1:4096"
    assert args.session == "ses_1"
    assert args.no_settings is False


def test_server_from_environment(monkeypatch):
    monkeypatch.setenv("CONVO_TUI_SERVER", "http://agent:9000")
    args = convo_tui.cli.build_parser().parse_args(["--session", "ses_1", "--no-settings"])
    assert args.server == "http://agent:9000"
    assert args.no_settings is True


def test_session_is_required():
    with pytest.raises(SystemExit):
        convo_tui.cli.build_parser().parse_args([])
