"""Viewport model: the rendered line buffer, scroll offset and tail-follow.

Pure state, no widget: ConversationView draws whatever window this model
exposes. The tail-follow policy on a new buffer is:

    at bottom before apply  →  pinned to the bottom after
    otherwise               →  previous offset kept verbatim

so content growing above the fold never moves what the user is reading.
"""

from textual.strip import Strip


class Viewport:
    def __init__(self, height: int = 24):
        self.height = max(1, height)
        self.lines: list[Strip] = []
        self.chrome: frozenset[int] = frozenset()
        self.message_positions: dict[str, int] = {}
        self.offset = 0
        self.tail = True

    # ─── Geometry ─────────────────────────────────────────────────────

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def max_offset(self) -> int:
        return max(0, len(self.lines) - self.height)

    @property
    def at_bottom(self) -> bool:
        return self.offset >= self.max_offset

    def set_height(self, height: int) -> None:
        follow = self.tail and self.at_bottom
        self.height = max(1, height)
        if follow:
            self.offset = self.max_offset

    def visible(self) -> list[Strip]:
        return self.lines[self.offset:self.offset + self.height]

    # ─── Buffer ───────────────────────────────────────────────────────

    def apply_render(
        self,
        lines,
        message_positions: dict[str, int] | None = None,
        chrome: frozenset[int] = frozenset(),
    ) -> None:
        """Swap in a new buffer, applying the tail-follow policy."""
        follow = self.tail or self.at_bottom
        self.lines = list(lines)
        self.chrome = chrome
        self.message_positions = dict(message_positions or {})
        if follow:
            self.offset = self.max_offset
            self.tail = True
        else:
            # A shrunken buffer pulls the offset back to its last page.
            self.offset = max(0, min(self.offset, self.max_offset))

    # ─── Navigation ───────────────────────────────────────────────────

    def scroll_to(self, offset: int) -> None:
        self.offset = max(0, min(offset, self.max_offset))
        self.tail = self.at_bottom

    def scroll_by(self, delta: int) -> None:
        self.scroll_to(self.offset + delta)

    def goto_top(self) -> None:
        self.scroll_to(0)

    def goto_bottom(self) -> None:
        self.scroll_to(self.max_offset)

    def page_up(self) -> None:
        self.scroll_by(-self.height)

    def page_down(self) -> None:
        self.scroll_by(self.height)

    def half_page_up(self) -> None:
        self.scroll_by(-(self.height // 2))

    def half_page_down(self) -> None:
        self.scroll_by(self.height // 2)

    def scroll_to_message(self, message_id: str) -> bool:
        """Put a message's first line at the top. Stops tail-follow."""
        position = self.message_positions.get(message_id)
        if position is None:
            return False
        self.offset = max(0, min(position, self.max_offset))
        self.tail = False
        return True
