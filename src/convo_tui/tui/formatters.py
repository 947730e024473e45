"""Rich-backed string formatters: markdown, diffs, file previews.

Pure functions: text in, fixed-width Strips out. Each worker thread gets
its own off-screen Console, so passes can render concurrently with the UI.

Pygments Syntax() is for USER-AUTHORED content (files, commands, diffs).
Structural chrome lives in rendering.py and uses theme colors directly.
"""

import io
import threading

from rich.console import Console, RenderableType
from rich.markdown import Markdown
from rich.segment import Segment
from rich.style import Style
from rich.syntax import Syntax
from rich.text import Text
from textual.strip import Strip

_local = threading.local()

# Lines shown before a file preview is cut off when no limit is given.
DEFAULT_PREVIEW_LINES = 40


def _console() -> Console:
    console = getattr(_local, "console", None)
    if console is None:
        console = Console(
            file=io.StringIO(),
            force_terminal=True,
            color_system="truecolor",
            width=200,
            legacy_windows=False,
        )
        _local.console = console
    return console


def render_strips(
    renderable: RenderableType,
    width: int,
    background: str | None = None,
    color: str | None = None,
) -> list[Strip]:
    """Render any Rich renderable to strips exactly `width` cells wide.

    `background`/`color` become the default style under every segment.
    """
    width = max(1, width)
    console = _console()
    options = console.options.update_width(width)
    segments = console.render(renderable, options)
    lines = list(Segment.split_lines(segments))
    base = Style(color=color, bgcolor=background) if (background or color) else None
    strips = []
    for strip in Strip.from_lines(lines):
        if base is not None:
            strip = strip.apply_style(base)
        strips.append(strip.adjust_cell_length(width, base))
    return strips


def markdown_to_strips(text: str, width: int, background: str | None = None, code_theme: str = "monokai") -> list[Strip]:
    """Markdown text → strips on `background`."""
    return render_strips(Markdown(text, code_theme=code_theme), width, background)


def _infer_lexer(filename: str, content: str) -> str:
    return Syntax.guess_lexer(filename, code=content)


def render_file_preview(
    filename: str,
    content: str,
    width: int,
    max_lines: int | None = DEFAULT_PREVIEW_LINES,
    background: str | None = None,
    code_theme: str = "monokai",
) -> list[Strip]:
    """Syntax-highlighted file body with line numbers, cut to `max_lines`."""
    lines = content.splitlines()
    truncated = max_lines is not None and len(lines) > max_lines
    if truncated:
        content = "\n".join(lines[:max_lines])
    syntax = Syntax(
        content,
        _infer_lexer(filename, content),
        theme=code_theme,
        line_numbers=True,
        word_wrap=True,
        background_color=background or "default",
    )
    strips = render_strips(syntax, width, background)
    if truncated:
        more = Text(f"… {len(lines) - max_lines} more lines", style="dim")
        strips.extend(render_strips(more, width, background))
    return strips


# Unified diff line prefix → style
_DIFF_STYLES: dict[str, str] = {
    "+": "green",
    "-": "red",
    "@": "cyan",
}


def format_diff(filename: str, patch: str, width: int, background: str | None = None) -> list[Strip]:
    """Colorized unified diff under a filename header.

    File headers (`---`/`+++`) are dropped; the filename line replaces them.
    """
    text = Text()
    text.append(filename, style="bold")
    for line in patch.splitlines():
        if line.startswith(("---", "+++", "Index:", "====")):
            continue
        text.append("\n")
        text.append(line, style=_DIFF_STYLES.get(line[:1], ""))
    return render_strips(text, width, background)
