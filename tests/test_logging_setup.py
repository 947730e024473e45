"""Tests for the logging bootstrap."""

import logging
import logging.handlers

import pytest

import convo_tui.io.logging_setup


@pytest.fixture
def fresh_runtime(monkeypatch):
    """Unconfigured runtime; restores the convo_tui logger afterwards."""
    logger = logging.getLogger("convo_tui")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    monkeypatch.setattr(convo_tui.io.logging_setup, "_RUNTIME", None)
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_writes_to_rotating_file_in_log_dir(fresh_runtime, tmp_path):
    runtime = convo_tui.io.logging_setup.configure(session_name="ses/main")
    assert runtime.file_path.startswith(str(tmp_path))
    assert "ses-main-" in runtime.file_path
    logging.getLogger("convo_tui.tui.app").info("hello log")
    for handler in logging.getLogger("convo_tui").handlers:
        handler.flush()
    with open(runtime.file_path, encoding="utf-8") as f:
        assert "hello log" in f.read()


def test_no_stderr_handler_by_default(fresh_runtime):
    convo_tui.io.logging_setup.configure()
    handlers = logging.getLogger("convo_tui").handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)


def test_stderr_handler_on_request(fresh_runtime):
    convo_tui.io.logging_setup.configure(stream=True)
    kinds = sorted(type(h).__name__ for h in logging.getLogger("convo_tui").handlers)
    assert kinds == ["RotatingFileHandler", "StreamHandler"]


def test_records_do_not_reach_root(fresh_runtime):
    convo_tui.io.logging_setup.configure()
    assert logging.getLogger("convo_tui").propagate is False


def test_level_from_environment(fresh_runtime, monkeypatch):
    monkeypatch.setenv("CONVO_TUI_LOG_LEVEL", "debug")
    runtime = convo_tui.io.logging_setup.configure()
    assert (runtime.level_name, runtime.level) == ("DEBUG", logging.DEBUG)


def test_unknown_level_falls_back_to_info(fresh_runtime, monkeypatch):
    monkeypatch.setenv("CONVO_TUI_LOG_LEVEL", "chatty")
    assert convo_tui.io.logging_setup.configure().level == logging.INFO


def test_configure_is_idempotent(fresh_runtime):
    first = convo_tui.io.logging_setup.configure(session_name="a")
    assert convo_tui.io.logging_setup.configure(session_name="b") is first
    assert convo_tui.io.logging_setup.get_runtime() is first


def test_log_file_override(fresh_runtime, tmp_path, monkeypatch):
    target = tmp_path / "custom" / "run.log"
    monkeypatch.setenv("CONVO_TUI_LOG_FILE", str(target))
    runtime = convo_tui.io.logging_setup.configure()
    assert runtime.file_path == str(target)
    assert target.parent.is_dir()
