"""Selection mapper: mouse drag in screen space to copied text.

Coordinates are cells. Rows are absolute buffer lines (screen row plus
the viewport offset at the time of the event), so a selection survives
scrolling during the drag.

Highlighting returns NEW strips for the touched lines; the cached strips
in the buffer are never modified.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from rich.cells import cell_len
from rich.segment import Segment
from rich.style import Style
from textual.strip import Strip

from convo_tui.app.domain_store import MessageRecord
from convo_tui.core.models import TextPart
from convo_tui.tui.rendering import GUTTER_WIDTH
from convo_tui.tui.viewport import Viewport

SELECTION_STYLE = Style(reverse=True)


@dataclass(frozen=True)
class Selection:
    """Press cell (start) and drag end (end). `end_x` is one past the cell under the pointer."""

    start_x: int
    start_y: int
    end_x: int
    end_y: int

    def normalized(self) -> "Selection":
        """Order the range top-left to bottom-right.

        Both the pressed cell and the cell under the pointer stay selected,
        whichever way the drag went.
        """
        if (self.end_y, self.end_x - 1) < (self.start_y, self.start_x):
            return Selection(
                start_x=max(0, self.end_x - 1),
                start_y=self.end_y,
                end_x=self.start_x + 1,
                end_y=self.start_y,
            )
        return self


def _highlight(strip: Strip, start: int, end: int) -> Strip:
    cell_length = strip.cell_length
    if start >= end or start >= cell_length:
        return strip
    parts = list(Segment.divide(list(strip), [start, end, cell_length]))
    result: list[Segment] = []
    if parts:
        result.extend(parts[0])
    if len(parts) > 1:
        for text, style, control in parts[1]:
            result.append(Segment(text, style + SELECTION_STYLE if style else SELECTION_STYLE, control))
    if len(parts) > 2:
        result.extend(parts[2])
    return Strip(result, cell_length)


def apply_selection(
    lines: Sequence[Strip],
    selection: Selection,
    chrome: frozenset[int] = frozenset(),
    gutter: int = GUTTER_WIDTH,
) -> tuple[list[Strip], str]:
    """Highlight the selected range and extract its text.

    Chrome lines (block padding, separators) are never copied; a run of
    them between copied lines becomes one empty line. Each copied line is
    right-trimmed.
    """
    sel = selection.normalized()
    out = list(lines)
    copied: list[str] = []
    gap = False
    last_row = min(sel.end_y, len(out) - 1)
    for y in range(max(0, sel.start_y), last_row + 1):
        if y in chrome:
            gap = bool(copied)
            continue
        strip = out[y]
        width = strip.cell_length
        left = max(gutter, sel.start_x if y == sel.start_y else gutter)
        right = width - gutter
        if y == sel.end_y:
            right = min(sel.end_x, right)
        middle = strip.crop(left, right).text.rstrip() if right > left else ""
        if gap:
            copied.append("")
            gap = False
        copied.append(middle)
        if middle:
            out[y] = _highlight(strip, left, left + cell_len(middle))
    return out, "\n".join(copied)


def last_message_text(messages: Sequence[MessageRecord]) -> str | None:
    """Text of the last Text part of the newest message (copy-last-message)."""
    if not messages:
        return None
    text = None
    for part in messages[-1].parts:
        if isinstance(part, TextPart):
            text = part.text
    return text


class SelectionTracker:
    """Press/drag/release state for one mouse selection over a Viewport."""

    def __init__(self, viewport: Viewport):
        self.viewport = viewport
        self._anchor: tuple[int, int] | None = None
        self._current: tuple[int, int] | None = None

    @property
    def active(self) -> bool:
        return self._anchor is not None

    @property
    def selection(self) -> Selection | None:
        if self._anchor is None or self._current is None:
            return None
        return Selection(self._anchor[0], self._anchor[1], self._current[0], self._current[1])

    def press(self, x: int, y: int) -> None:
        self._anchor = (x, y + self.viewport.offset)
        self._current = None

    def drag(self, x: int, y: int) -> None:
        """Extend the selection through the cell at (x, y), inclusive."""
        if self._anchor is None:
            return
        self._current = (x + 1, y + self.viewport.offset)

    def highlighted(self) -> list[Strip]:
        """Buffer lines with the live selection applied."""
        selection = self.selection
        if selection is None:
            return self.viewport.lines
        lines, _ = apply_selection(self.viewport.lines, selection, self.viewport.chrome)
        return lines

    def release(self) -> str | None:
        """End the drag. The clipboard payload, or None for a click/empty range."""
        selection = self.selection
        self._anchor = self._current = None
        # Releasing over the pressed cell is a click.
        if selection is None or (selection.start_x, selection.start_y) == (selection.end_x - 1, selection.end_y):
            return None
        _, text = apply_selection(self.viewport.lines, selection, self.viewport.chrome)
        return text if text.strip() else None
