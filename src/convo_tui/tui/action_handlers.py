"""Action handlers for navigation, revert/redo, sending, display toggles and copy.

// [LAW:one-way-deps] Depends on revert, selection, settings, widget_factory. No upward deps.
// [LAW:locality-or-seam] All action logic here; app.py keeps thin delegates.
// [LAW:one-type-per-behavior] Scroll actions are instances of _conv_action.

Every function takes the app as its first parameter.
"""

import logging
from dataclasses import dataclass

import convo_tui.io.settings
import convo_tui.tui.revert
import convo_tui.tui.selection
import convo_tui.tui.widget_factory
from convo_tui.app.session_service import SessionServiceError
from convo_tui.core.models import DecodeError
from convo_tui.tui.revert import RevertAction, RevertKind

logger = logging.getLogger(__name__)


# ─── Revert / redo ─────────────────────────────────────────────────────


def _execute_revert(app, session_id: str, action: RevertAction) -> None:
    """Worker thread: one session-service call, result posted back to the app."""
    service = app.service
    try:
        if action.kind is RevertKind.UNREVERT:
            session = service.unrevert(session_id)
        else:
            session = service.revert(session_id, action.message_id)
    except (SessionServiceError, DecodeError) as exc:
        logger.error("%s failed for session %s: %s", action.kind.value, session_id, exc)
        app.post_message(app.RevertFailed(action.failure_text))
        return
    app.post_message(app.RevertApplied(session))


def _dispatch(app, action: RevertAction) -> None:
    session = app.store.session
    if session is None or app.service is None:
        app.notify(action.failure_text, severity="error")
        return
    app.run_worker(
        lambda: _execute_revert(app, session.id, action),
        thread=True,
        exclusive=False,
        group="revert",
    )


def undo(app) -> None:
    """Move the revert boundary back one user message."""
    store = app.store
    revert = store.session.revert if store.session is not None else None
    action = convo_tui.tui.revert.plan_undo(store.snapshot(), revert)
    if action is None:
        app.notify("Nothing to undo", severity="warning")
        return
    _dispatch(app, action)


def redo(app) -> None:
    """Move the boundary forward one user message, or unrevert at the end."""
    store = app.store
    revert = store.session.revert if store.session is not None else None
    action = convo_tui.tui.revert.plan_redo(store.snapshot(), revert)
    if action is None:
        app.notify("Nothing to redo", severity="warning")
        return
    _dispatch(app, action)


# ─── Send ──────────────────────────────────────────────────────────────


def _execute_send(app, session_id: str, message_id: str, text: str) -> None:
    """Worker thread: hand the message to the server. Replies arrive as events."""
    try:
        app.service.prompt(session_id, message_id, text)
    except SessionServiceError as exc:
        logger.error("send failed for session %s: %s", session_id, exc)
        app.post_message(app.SendFailed("Message not sent"))


def send_message(app, text: str) -> None:
    """Show the message at the tail right away, then send it under the same id."""
    text = text.strip()
    if not text:
        return
    store = app.store
    if store.session is None or app.service is None:
        app.notify("No session to send to", severity="error")
        return
    record = store.add_optimistic_user_message(text)
    app.viewport.tail = True
    session_id = store.session_id
    app.run_worker(
        lambda: _execute_send(app, session_id, record.id, text),
        thread=True,
        exclusive=False,
        group="send",
    )


def toggle_composer(app) -> None:
    """Toggle the composer via mount/remove."""
    if app.screen.query(convo_tui.tui.widget_factory.Composer):
        app._close_composer()
    else:
        app._open_composer()


# ─── Display toggles ───────────────────────────────────────────────────


@dataclass(frozen=True)
class _Toggle:
    setting: str
    attr: str
    label: str


_TOGGLES = {
    "tool_details": _Toggle("show_tool_details", "show_tool_details", "Tool details"),
    "thinking": _Toggle("show_thinking_blocks", "show_thinking_blocks", "Thinking blocks"),
}


def toggle(app, name: str) -> None:
    """Flip a display flag, persist it, and re-render from scratch."""
    spec = _TOGGLES[name]
    value = not getattr(app, spec.attr)
    setattr(app, spec.attr, value)
    if app.persist_settings:
        try:
            convo_tui.io.settings.save_setting(spec.setting, value)
        except OSError as exc:
            logger.warning("could not save %s: %s", spec.setting, exc)
    app.cache.clear()
    app.request_render()
    app.notify("{} {}".format(spec.label, "shown" if value else "hidden"), timeout=2)


# ─── Clipboard ─────────────────────────────────────────────────────────


def copy_text(app, text: str) -> None:
    app.copy_to_clipboard(text)
    app.notify("Copied to clipboard", timeout=2)


def copy_last_message(app) -> None:
    text = convo_tui.tui.selection.last_message_text(app.store.snapshot())
    if not text:
        app.notify("No message to copy", severity="warning")
        return
    copy_text(app, text)


# ─── Navigation ────────────────────────────────────────────────────────


def _conv_action(operation: str):
    def _action(app) -> None:
        conv = app._get_conv()
        if conv is not None:
            conv.navigate(operation)

    _action.__name__ = operation
    return _action


go_top = _conv_action("goto_top")
go_bottom = _conv_action("goto_bottom")
page_up = _conv_action("page_up")
page_down = _conv_action("page_down")
half_page_up = _conv_action("half_page_up")
half_page_down = _conv_action("half_page_down")


def scroll_lines(app, delta: int) -> None:
    conv = app._get_conv()
    if conv is not None:
        conv.scroll_lines(delta)


def jump_to_message(app, message_id: str) -> bool:
    conv = app._get_conv()
    if conv is None:
        return False
    return conv.scroll_to_message(message_id)


def jump_to_previous_user_message(app) -> bool:
    """Scroll to the nearest user message starting above the viewport top."""
    conv = app._get_conv()
    if conv is None:
        return False
    top = conv.viewport.offset
    target = None
    for record in app.store.snapshot():
        position = conv.viewport.message_positions.get(record.id)
        if position is None or position >= top or record.info.role != "user":
            continue
        target = record.id
    return target is not None and jump_to_message(app, target)
