"""Main TUI application using Textual.

The app is the single owner of all mutable state: the domain store, the
part cache, the render scheduler, the shimmer ticker and the viewport.
Worker threads (event drain, render passes, session-service calls) never
touch that state; they post messages back to the app's message pump.

// [LAW:locality-or-seam] Thin coordinator, delegates to action_handlers,
//   event_handlers and render_pass.
// [LAW:single-enforcer] Only this module calls scheduler.request()/complete().
"""

import logging
import queue
import threading

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.message import Message

# Module-level imports so tests can monkeypatch (never use `from` for these)
import convo_tui.io.settings
import convo_tui.tui.event_handlers
import convo_tui.tui.render_pass
import convo_tui.tui.rendering
import convo_tui.tui.widget_factory
from convo_tui.app.domain_store import DomainStore
from convo_tui.app.session_service import SessionServiceError
from convo_tui.core.models import DecodeError, Session
from convo_tui.tui import action_handlers as _actions
from convo_tui.tui.part_cache import PartCache
from convo_tui.tui.render_scheduler import TICK_INTERVAL, AnimationTicker, RenderScheduler
from convo_tui.tui.viewport import Viewport

logger = logging.getLogger(__name__)

# Max payloads folded into one ServerEvents message.
_DRAIN_BATCH = 256


class ServerEvents(Message, bubble=False):
    """Thread-safe bridge: drain thread → app message pump."""

    def __init__(self, payloads: list) -> None:
        self.payloads = payloads
        super().__init__()


class SessionLoaded(Message, bubble=False):
    def __init__(self, session: Session, messages: list) -> None:
        self.session = session
        self.messages = messages
        super().__init__()


class RenderComplete(Message, bubble=False):
    """A render pass finished. `result` is None when the pass crashed."""

    def __init__(self, result) -> None:
        self.result = result
        super().__init__()


class ConvoApp(App):
    """Conversation view for one session of a coding-agent server."""

    TITLE = "convo-tui"

    BINDINGS = [
        Binding("ctrl+z", "undo", "Undo"),
        Binding("ctrl+r", "redo", "Redo"),
        Binding("ctrl+t", "toggle_tool_details", "Tool details"),
        Binding("ctrl+k", "toggle_thinking", "Thinking"),
        Binding("ctrl+n", "toggle_composer", "Send"),
        Binding("ctrl+y", "copy_last_message", "Copy last"),
        Binding("pageup", "page_up", show=False),
        Binding("pagedown", "page_down", show=False),
        Binding("ctrl+u", "half_page_up", show=False),
        Binding("ctrl+d", "half_page_down", show=False),
        Binding("home", "go_top", show=False),
        Binding("end", "go_bottom", show=False),
        Binding("up", "scroll_up_line", show=False),
        Binding("down", "scroll_down_line", show=False),
        Binding("ctrl+g", "jump_previous_user", show=False),
    ]

    class RevertApplied(Message, bubble=False):
        """The server confirmed a revert or unrevert; adopt its session."""

        def __init__(self, session: Session) -> None:
            self.session = session
            super().__init__()

    class RevertFailed(Message, bubble=False):
        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    class SendFailed(Message, bubble=False):
        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    def __init__(
        self,
        service=None,
        session_id: str = "",
        store: DomainStore | None = None,
        event_queue: queue.Queue | None = None,
        persist_settings: bool = True,
        stream_events: bool = True,
    ):
        super().__init__()
        self.service = service
        self.session_id = session_id
        self.store = store if store is not None else DomainStore()
        self.event_queue = event_queue if event_queue is not None else queue.Queue()
        self.persist_settings = persist_settings
        self._stream_events = stream_events

        self.cache = PartCache()
        self.scheduler = RenderScheduler()
        self.ticker = AnimationTicker()
        self.viewport = Viewport()

        if persist_settings:
            self.show_tool_details, self.show_thinking_blocks = convo_tui.io.settings.load_display_flags()
            self.username = convo_tui.io.settings.load_username()
        else:
            self.show_tool_details, self.show_thinking_blocks = True, False
            self.username = "You"
        self._theme_colors = convo_tui.tui.rendering.DEFAULT_THEME
        self._width = 0
        self._shutting_down = threading.Event()

        self.store.on_changed = self.request_render
        self.store.on_session_changed = self._on_session_changed

    # ─── Layout ────────────────────────────────────────────────────────

    def _get_conv(self):
        try:
            return self.query_one("#conversation", convo_tui.tui.widget_factory.ConversationView)
        except NoMatches:
            return None

    def compose(self) -> ComposeResult:
        yield convo_tui.tui.widget_factory.create_conversation_view(self.viewport)

    def on_mount(self) -> None:
        saved = convo_tui.io.settings.load_setting("theme") if self.persist_settings else None
        if saved and saved in self.available_themes:
            self.theme = saved
        self._theme_colors = convo_tui.tui.rendering.build_theme_colors(self.current_theme)

        self.run_worker(self._drain_events, thread=True, exclusive=False, group="drain")
        if self.service is not None and self.session_id:
            self.run_worker(self._load_session, thread=True, exclusive=False, group="bootstrap")
        self.request_render()

    def on_unmount(self) -> None:
        self._shutting_down.set()

    # ─── Bootstrap and event intake ────────────────────────────────────

    def _load_session(self) -> None:
        """Worker thread: fetch the session and its history, then follow the bus."""
        try:
            session = self.service.get_session(self.session_id)
            messages = self.service.list_messages(self.session_id)
        except (SessionServiceError, DecodeError) as exc:
            logger.error("could not load session %s: %s", self.session_id, exc)
            self.call_from_thread(self.notify, f"Could not load session: {exc}", severity="error")
            return
        self.post_message(SessionLoaded(session, messages))
        if self._stream_events:
            self._pump_server_events()

    def _pump_server_events(self) -> None:
        try:
            for payload in self.service.iter_events():
                if self._shutting_down.is_set():
                    return
                self.event_queue.put(payload)
        except SessionServiceError as exc:
            if not self._shutting_down.is_set():
                logger.error("event stream closed: %s", exc)
                self.call_from_thread(self.notify, "Lost connection to server", severity="error")

    def _drain_events(self) -> None:
        """Bridge thread: queue.get → post_message into Textual's message pump.

        Payloads already queued are folded into the same message, so a burst
        of deltas costs one store update round on the app thread.
        """
        while not self._shutting_down.is_set():
            try:
                first = self.event_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            batch = [first]
            while len(batch) < _DRAIN_BATCH:
                try:
                    batch.append(self.event_queue.get_nowait())
                except queue.Empty:
                    break
            self.post_message(ServerEvents(batch))

    def on_session_loaded(self, message: SessionLoaded) -> None:
        self.store.set_session(message.session, message.messages)

    def on_server_events(self, message: ServerEvents) -> None:
        outcome = convo_tui.tui.event_handlers.apply_raw_events(
            message.payloads, self.store, self.cache, self._log
        )
        if outcome.follow_tail:
            self.viewport.tail = True

    def _log(self, level: str, text: str) -> None:
        logger.log(logging.getLevelName(level), text)

    def _on_session_changed(self, previous: Session | None, session: Session | None) -> None:
        previous_revert = previous.revert if previous is not None else None
        revert = session.revert if session is not None else None
        same_session = previous is not None and session is not None and previous.id == session.id
        if not same_session or previous_revert != revert:
            self.cache.clear()

    # ─── Render loop ───────────────────────────────────────────────────

    def _build_snapshot(self):
        rendering = convo_tui.tui.rendering
        conv = self._get_conv()
        width = conv.content_width if conv is not None and conv.size.width > 0 else 80
        context = rendering.RenderContext(
            flags=rendering.RenderFlags(
                show_tool_details=self.show_tool_details,
                show_thinking_blocks=self.show_thinking_blocks,
                width=width,
            ),
            theme=self._theme_colors,
            frame=self.ticker.frame,
            username=self.username,
        )
        return convo_tui.tui.render_pass.ConversationSnapshot(
            messages=self.store.snapshot(),
            session=self.store.session,
            permission=self.store.current_permission,
            context=context,
        )

    def request_render(self) -> None:
        """Ask for a pass. Coalesces while one is in flight."""
        if self.scheduler.request():
            self._start_render_pass()

    def _start_render_pass(self) -> None:
        snapshot = self._build_snapshot()
        cache_view = self.cache.snapshot()
        fetch = self.service.fetch_message if self.service is not None else None
        self.run_worker(
            lambda: self._render_worker(snapshot, cache_view, fetch),
            thread=True,
            exclusive=False,
            group="render",
        )

    def _render_worker(self, snapshot, cache_view, fetch) -> None:
        try:
            result = convo_tui.tui.render_pass.render_conversation(snapshot, cache_view, fetch)
        except Exception:
            logger.exception("render pass failed")
            result = None
        self.post_message(RenderComplete(result))

    def on_render_complete(self, message: RenderComplete) -> None:
        result = message.result
        if result is not None:
            self.cache.merge(result.new_entries, result.generation)
            conv = self._get_conv()
            if conv is not None:
                conv.apply_render(result.lines, result.message_positions, result.chrome)
            else:
                self.viewport.apply_render(result.lines, result.message_positions, result.chrome)
        if self.scheduler.complete():
            self._start_render_pass()
        # A crashed pass reports nothing, so ask the store directly.
        if result is not None:
            animating = result.animating
        else:
            animating = convo_tui.tui.render_pass.has_animating_work(self.store.snapshot())
        if self.ticker.arm(animating):
            self.set_timer(TICK_INTERVAL, self._on_tick)

    def _on_tick(self) -> None:
        animating = convo_tui.tui.render_pass.has_animating_work(self.store.snapshot())
        if self.ticker.tick(animating):
            self.request_render()

    # ─── Widget messages ───────────────────────────────────────────────

    def on_conversation_view_width_changed(self, message) -> None:
        if message.width == self._width:
            return
        self._width = message.width
        self.cache.clear()
        self.request_render()

    def on_conversation_view_selection_copied(self, message) -> None:
        _actions.copy_text(self, message.text)

    def on_convo_app_revert_applied(self, message) -> None:
        self.viewport.tail = True
        self.store.apply_session_updated(message.session)

    def on_convo_app_revert_failed(self, message) -> None:
        self.notify(message.text, severity="error")

    def on_convo_app_send_failed(self, message) -> None:
        self.notify(message.text, severity="error")

    # ─── Composer ──────────────────────────────────────────────────────

    def _open_composer(self) -> None:
        self.screen.mount(convo_tui.tui.widget_factory.create_composer())

    def _close_composer(self) -> None:
        for composer in self.screen.query(convo_tui.tui.widget_factory.Composer):
            composer.remove()
        conv = self._get_conv()
        if conv is not None:
            conv.focus()

    def on_composer_submitted(self, message) -> None:
        self._close_composer()
        _actions.send_message(self, message.text)

    def on_composer_cancelled(self, message) -> None:
        self._close_composer()

    # ─── Actions ───────────────────────────────────────────────────────

    def action_undo(self) -> None:
        _actions.undo(self)

    def action_redo(self) -> None:
        _actions.redo(self)

    def action_toggle_tool_details(self) -> None:
        _actions.toggle(self, "tool_details")

    def action_toggle_thinking(self) -> None:
        _actions.toggle(self, "thinking")

    def action_toggle_composer(self) -> None:
        _actions.toggle_composer(self)

    def action_copy_last_message(self) -> None:
        _actions.copy_last_message(self)

    def action_go_top(self) -> None:
        _actions.go_top(self)

    def action_go_bottom(self) -> None:
        _actions.go_bottom(self)

    def action_page_up(self) -> None:
        _actions.page_up(self)

    def action_page_down(self) -> None:
        _actions.page_down(self)

    def action_half_page_up(self) -> None:
        _actions.half_page_up(self)

    def action_half_page_down(self) -> None:
        _actions.half_page_down(self)

    def action_scroll_up_line(self) -> None:
        _actions.scroll_lines(self, -1)

    def action_scroll_down_line(self) -> None:
        _actions.scroll_lines(self, 1)

    def action_jump_previous_user(self) -> None:
        _actions.jump_to_previous_user_message(self)

    # ─── Reactive watchers ─────────────────────────────────────────────

    def watch_theme(self, theme_name: str) -> None:
        if not self.is_running:
            return
        self._theme_colors = convo_tui.tui.rendering.build_theme_colors(self.current_theme)
        if self.persist_settings:
            try:
                convo_tui.io.settings.save_setting("theme", theme_name)
            except OSError as exc:
                logger.warning("could not save theme: %s", exc)
        self.cache.clear()
        self.request_render()
