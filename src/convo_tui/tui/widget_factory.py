"""Widget factory: the conversation view, the composer and their construction.

ConversationView is a Line API widget over a Viewport model: render_line(y)
reads the buffer line at viewport.offset + y. The view owns no content of
its own; the app swaps whole buffers in via apply_render().
"""

from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.strip import Strip
from textual.widget import Widget
from textual.widgets import Input

import convo_tui.tui.selection
from convo_tui.tui.viewport import Viewport

# Lines per mouse-wheel notch.
WHEEL_LINES = 3


class ConversationView(Widget, can_focus=True):
    """Virtual-rendering conversation display using the Line API.

    Only visible lines are produced per frame. Mouse drag selects text;
    release posts SelectionCopied with the clipboard payload.
    """

    DEFAULT_CSS = """
    ConversationView {
        height: 1fr;
        width: 1fr;
        color: $foreground;
        background: $background;
    }
    """

    # Textual's own text selection would fight the mouse handlers below.
    ALLOW_SELECT = False

    class WidthChanged(Message):
        """Content width changed; every cached block is now the wrong size."""

        def __init__(self, width: int) -> None:
            self.width = width
            super().__init__()

    class SelectionCopied(Message):
        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    def __init__(self, viewport: Viewport | None = None, id: str | None = None):
        super().__init__(id=id)
        self.viewport = viewport if viewport is not None else Viewport()
        self.tracker = convo_tui.tui.selection.SelectionTracker(self.viewport)
        # Buffer lines with the live selection applied, while dragging.
        self._display: list[Strip] | None = None
        self._last_width = 0

    # ─── Line API ─────────────────────────────────────────────────────

    def render_line(self, y: int) -> Strip:
        width = self.size.width
        lines = self._display if self._display is not None else self.viewport.lines
        actual_y = self.viewport.offset + y
        if actual_y >= len(lines):
            return Strip.blank(width, self.rich_style)
        return lines[actual_y].crop_extend(0, width, self.rich_style)

    def apply_render(self, lines, message_positions=None, chrome=frozenset()) -> None:
        """Swap in a finished render pass."""
        self.viewport.apply_render(lines, message_positions, chrome)
        if self.tracker.active:
            self._display = self.tracker.highlighted()
        self.refresh()

    # ─── Geometry ─────────────────────────────────────────────────────

    @property
    def content_width(self) -> int:
        return max(1, self.size.width)

    def on_resize(self, event: events.Resize) -> None:
        self.viewport.set_height(event.size.height)
        width = event.size.width
        if width > 0 and width != self._last_width:
            self._last_width = width
            self.post_message(self.WidthChanged(width))
        self.refresh()

    # ─── Navigation ───────────────────────────────────────────────────

    def navigate(self, operation: str) -> None:
        """Run a named Viewport navigation method and redraw."""
        getattr(self.viewport, operation)()
        self.refresh()

    def scroll_lines(self, delta: int) -> None:
        self.viewport.scroll_by(delta)
        self.refresh()

    def scroll_to_message(self, message_id: str) -> bool:
        found = self.viewport.scroll_to_message(message_id)
        if found:
            self.refresh()
        return found

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.scroll_lines(-WHEEL_LINES)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.scroll_lines(WHEEL_LINES)

    # ─── Selection ────────────────────────────────────────────────────

    def on_mouse_down(self, event: events.MouseDown) -> None:
        self.tracker.press(event.x, event.y)
        self._display = None
        self.capture_mouse()
        self.refresh()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if not self.tracker.active:
            return
        self.tracker.drag(event.x, event.y)
        self._display = self.tracker.highlighted()
        self.refresh()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if not self.tracker.active:
            return
        self.tracker.drag(event.x, event.y)
        self.release_mouse()
        text = self.tracker.release()
        self._display = None
        self.refresh()
        if text:
            self.post_message(self.SelectionCopied(text))


class Composer(Widget):
    """One-line message composer docked under the conversation.

    Enter posts Submitted with the typed text, Escape posts Cancelled.
    The app mounts and removes it.
    """

    DEFAULT_CSS = """
    Composer {
        dock: bottom;
        height: auto;
        border-top: solid $accent;
        background: $surface;
    }
    Composer Input {
        border: none;
        height: 1;
        padding: 0 1;
    }
    """

    class Submitted(Message):
        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    class Cancelled(Message):
        pass

    def compose(self) -> ComposeResult:
        yield Input(placeholder="Message (enter to send, esc to cancel)", id="composer-input")

    def on_mount(self) -> None:
        self.query_one(Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.post_message(self.Submitted(event.value))

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            event.prevent_default()
            self.post_message(self.Cancelled())


# Factory functions for creating widgets
def create_conversation_view(viewport: Viewport | None = None) -> ConversationView:
    """Create a new ConversationView instance."""
    return ConversationView(viewport, id="conversation")


def create_composer() -> Composer:
    return Composer(id="composer")
