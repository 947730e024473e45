"""Part renderer: conversation parts to bordered blocks of Strips.

Every function here is pure: (parts, theme, flags) → RenderedBlock. No
caching, no store access, no widget state. render_pass.py decides WHAT
to render and consults the part cache; this module decides HOW it looks.

Block layout, `width` cells wide:

    ┃  <content: width - 6 cells>  ┃      (right border only when flagged)

with one padding line above and below the content. Padding lines are
"chrome": the selection mapper never copies them.

# [LAW:no-shared-mutable-globals] Theme travels in RenderContext; passes run
# on worker threads and never read module state.
"""

import json
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from rich.segment import Segment
from rich.style import Style
from rich.text import Text
from textual.color import Color
from textual.strip import Strip

import convo_tui.tui.formatters
from convo_tui.core.models import (
    AgentPart,
    AssistantMessage,
    DecodeError,
    FilePart,
    FrozenDict,
    MessageInfo,
    Permission,
    ToolCompleted,
    ToolError,
    ToolPart,
    ToolPending,
    decode_tool_state,
    thaw,
)
from convo_tui.core.diff_stats import FileStats

# Border + left padding. Selection never starts inside it.
GUTTER_WIDTH = 3
CHROME_WIDTH = 6
BORDER_CHAR = "\u2503"  # ┃
TRAILER_PREFIX = "\u221f "  # ∟
TOOL_OUTPUT_MAX_LINES = 10
READ_PREVIEW_MAX_LINES = 6


# ─── Theme Colors ────────────────────────────────────────────────────────────
# [LAW:one-source-of-truth] All theme-derived colors live in ThemeColors.


@dataclass(frozen=True)
class ThemeColors:
    """All colors the renderer needs, derived from a Textual Theme."""

    text: str
    text_muted: str
    background: str
    background_panel: str
    background_element: str
    primary: str
    secondary: str
    accent: str
    error: str
    warning: str
    success: str
    dark: bool
    code_theme: str


def _normalize_color(color: str | None, fallback: str) -> str:
    """Normalize a theme color to #RRGGBB hex.

    Textual's ANSI themes use names like "ansi_green" that Rich can't parse
    in style strings; "ansi_default" is unknowable and takes the fallback.
    """
    if color is None or color == "ansi_default":
        return fallback
    if color.startswith("#") and len(color) == 7:
        return color
    try:
        r, g, b = Color.parse(color).rgb
    except Exception:
        return fallback
    return "#{:02X}{:02X}{:02X}".format(r, g, b)


def _blend(a: str, b: str, factor: float) -> str:
    return Color.parse(a).blend(Color.parse(b), factor).hex


def build_theme_colors(textual_theme) -> ThemeColors:
    """Map a Textual Theme to ThemeColors."""
    dark = textual_theme.dark
    primary = _normalize_color(textual_theme.primary, "#0178D4")
    foreground = _normalize_color(textual_theme.foreground, "#e0e0e0" if dark else "#1e1e1e")
    background = _normalize_color(textual_theme.background, "#1e1e1e" if dark else "#f5f5f5")
    surface = _normalize_color(textual_theme.surface, "#2b2b2b" if dark else "#e6e6e6")
    return ThemeColors(
        text=foreground,
        text_muted=_blend(foreground, background, 0.45),
        background=background,
        background_panel=surface,
        background_element=_blend(surface, foreground, 0.08),
        primary=primary,
        secondary=_normalize_color(textual_theme.secondary, primary),
        accent=_normalize_color(textual_theme.accent, primary),
        error=_normalize_color(textual_theme.error, "#ba3c5b"),
        warning=_normalize_color(textual_theme.warning, "#ffa62b"),
        success=_normalize_color(textual_theme.success, "#4EBF71"),
        dark=dark,
        code_theme="github-dark" if dark else "friendly",
    )


DEFAULT_THEME = ThemeColors(
    text="#E0E0E0",
    text_muted="#808080",
    background="#1E1E1E",
    background_panel="#2B2B2B",
    background_element="#363636",
    primary="#0178D4",
    secondary="#9A6FD8",
    accent="#FFA62B",
    error="#BA3C5B",
    warning="#FFA62B",
    success="#4EBF71",
    dark=True,
    code_theme="github-dark",
)


# ─── Render inputs / outputs ─────────────────────────────────────────────────


@dataclass(frozen=True)
class RenderFlags:
    """UI flags that change rendered output. Part of every cache key."""

    show_tool_details: bool = True
    show_thinking_blocks: bool = False
    width: int = 80


@dataclass(frozen=True)
class RenderContext:
    """Everything a block renderer may read."""

    flags: RenderFlags = field(default_factory=RenderFlags)
    theme: ThemeColors = DEFAULT_THEME
    frame: int = 0  # shimmer phase, advanced by the animation tick
    username: str = ""
    redo_key: str = "ctrl+r"

    @property
    def width(self) -> int:
        return self.flags.width

    @property
    def content_width(self) -> int:
        return max(1, self.flags.width - CHROME_WIDTH)


@dataclass(frozen=True)
class RenderedBlock:
    """One rendered block. `chrome` holds indexes of padding lines."""

    strips: tuple[Strip, ...]
    chrome: frozenset[int] = frozenset()

    @property
    def line_count(self) -> int:
        return len(self.strips)


# ─── Primitives ──────────────────────────────────────────────────────────────


def _strips(ctx: RenderContext, renderable, background: str, color: str | None = None) -> list[Strip]:
    return convo_tui.tui.formatters.render_strips(renderable, ctx.content_width, background, color)


def content_block(
    ctx: RenderContext,
    content: list[Strip],
    *,
    background: str | None = None,
    border_color: str | None = None,
    border: bool = True,
    border_both: bool = False,
    padding: int = 1,
) -> RenderedBlock:
    """Wrap content strips (content_width wide) in borders and padding."""
    tc = ctx.theme
    background = background or tc.background_panel
    page = Style(bgcolor=tc.background)
    fill = Style(bgcolor=background)
    if border:
        left = Segment(BORDER_CHAR, Style(color=border_color or tc.background_panel) + page)
        right_color = border_color if border_both and border_color else tc.background_panel
        right = Segment(BORDER_CHAR, Style(color=right_color) + page)
        pad_left = pad_right = Segment("  ", fill)
    else:
        left = right = None
        pad_left = pad_right = Segment("   ", fill)

    inner = ctx.content_width
    blank = Strip.blank(inner, fill)
    body = [blank] * padding + list(content) + [blank] * padding

    strips = []
    for strip in body:
        segments = [pad_left] if left is None else [left, pad_left]
        segments.extend(strip.adjust_cell_length(inner, fill))
        segments.append(pad_right)
        if right is not None:
            segments.append(right)
        strips.append(Strip(segments).adjust_cell_length(ctx.width, page))

    chrome = frozenset()
    if padding:
        chrome = frozenset(list(range(padding)) + list(range(len(strips) - padding, len(strips))))
    return RenderedBlock(strips=tuple(strips), chrome=chrome)


def shimmer(text: str, frame: int, base: str, highlight: str, background: str) -> Text:
    """A bright window sweeping across `text`, one cell per frame."""
    window = 4
    span = len(text) + window * 2
    center = frame % span - window
    result = Text(style=Style(color=base, bgcolor=background))
    for index, char in enumerate(text):
        lit = abs(index - center) < window // 2 + 1
        result.append(char, style=Style(color=highlight if lit else base, bold=lit))
    return result


def truncate_height(text: str, max_lines: int) -> str:
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines])


def truncate_with_tail(text: str, width: int, tail: str = "...") -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    return text[: max(0, width - len(tail))] + tail


def relative_path(path: str, cwd: str | None = None) -> str:
    cwd = cwd if cwd is not None else os.getcwd()
    prefix = cwd.rstrip(os.sep) + os.sep
    return path[len(prefix):] if path.startswith(prefix) else path


def format_timestamp(epoch_ms: float, now: float | None = None) -> str:
    """`02 Jan 2006 03:04 PM`, or just the time when it is today."""
    moment = datetime.fromtimestamp(epoch_ms / 1000)
    today = datetime.fromtimestamp(now if now is not None else time.time()).date()
    if moment.date() == today:
        return moment.strftime("%I:%M %p")
    return moment.strftime("%d %b %Y %I:%M %p")


def _info_line(ctx: RenderContext, info: MessageInfo, author: str, background: str) -> Text:
    tc = ctx.theme
    line = Text(style=Style(bgcolor=background))
    ts = info.time_created
    if isinstance(info, AssistantMessage) and info.time_completed > 0:
        ts = info.time_completed
    if isinstance(info, AssistantMessage) and info.mode:
        line.append(info.mode.title() + " ", style=Style(color=tc.secondary))
        line.append(info.model_id, style=Style(color=tc.text_muted))
    else:
        line.append(author, style=Style(color=tc.text))
    if ts:
        line.append(f" ({format_timestamp(ts)})", style=Style(color=tc.text_muted))
    return line


# ─── Tool titles ─────────────────────────────────────────────────────────────

_TOOL_NAMES: dict[str, str] = {
    "bash": "Shell",
    "webfetch": "Fetch",
    "invalid": "Invalid",
}

_TOOL_ACTIONS: dict[str, str] = {
    "task": "Delegating...",
    "bash": "Writing command...",
    "edit": "Preparing edit...",
    "webfetch": "Fetching from the web...",
    "glob": "Finding files...",
    "grep": "Searching content...",
    "list": "Listing directory...",
    "read": "Reading file...",
    "write": "Preparing write...",
    "todowrite": "Planning...",
    "todoread": "Planning...",
    "patch": "Preparing patch...",
}


def tool_name(name: str) -> str:
    if name in _TOOL_NAMES:
        return _TOOL_NAMES[name]
    if name.startswith("opencode_"):
        name = name[len("opencode_"):]
    return name.title()


def tool_action(name: str) -> str:
    """Label shown while a tool call is still pending."""
    return _TOOL_ACTIONS.get(name, "Working...")


def _fmt_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (FrozenDict, tuple)):
        return json.dumps(thaw(value), sort_keys=True)
    return str(value)


def render_args(args: Mapping, title_key: str) -> str:
    """`<title value> (k=v, ...)` over the remaining keys, sorted."""
    if not args:
        return ""
    title = ""
    parts = []
    for key in sorted(args):
        value = args[key]
        if value is None:
            continue
        if key in ("filePath", "path") and isinstance(value, str):
            value = relative_path(value)
        if key == title_key:
            title = _fmt_value(value)
            continue
        parts.append(f"{key}={_fmt_value(value)}")
    if not parts:
        return title
    return f"{title} ({', '.join(parts)})"


def todo_phase(metadata: Mapping) -> str:
    todos = metadata.get("todos")
    if not isinstance(todos, tuple) or not todos:
        return "Plan"
    statuses = [t.get("status") for t in todos if isinstance(t, Mapping)]
    if statuses.count("pending") == len(todos):
        return "Creating plan"
    if statuses.count("completed") == len(todos):
        return "Completing plan"
    return "Updating plan"


def _title_for_read(part: ToolPart, args: Mapping) -> str:
    return f"{tool_name(part.tool)} {render_args(args, 'filePath')}"


def _title_for_file_edit(part: ToolPart, args: Mapping) -> str:
    path = args.get("filePath")
    name = tool_name(part.tool)
    return f"{name} {relative_path(path)}" if isinstance(path, str) else name


def _title_for_bash(part: ToolPart, args: Mapping) -> str:
    description = args.get("description")
    name = tool_name(part.tool)
    return f"{name} {description}" if isinstance(description, str) else name


def _title_for_task(part: ToolPart, args: Mapping) -> str:
    name = tool_name(part.tool)
    description = args.get("description")
    subagent = args.get("subagent_type")
    if description is not None and subagent is not None:
        return f"{name}[{subagent}] {description}"
    if description is not None:
        return f"{name} {description}"
    return name


def _title_for_webfetch(part: ToolPart, args: Mapping) -> str:
    return f"{tool_name(part.tool)} {render_args(args, 'url')}"


def _title_for_todowrite(part: ToolPart, args: Mapping) -> str:
    if isinstance(part.state, ToolCompleted):
        return todo_phase(part.state.metadata)
    return "Plan"


def _title_for_todoread(part: ToolPart, args: Mapping) -> str:
    return "Plan"


def _title_for_invalid(part: ToolPart, args: Mapping) -> str:
    actual = args.get("tool")
    return tool_name(actual) if isinstance(actual, str) else tool_name(part.tool)


def _title_default(part: ToolPart, args: Mapping) -> str:
    first_key = min(args) if args else ""
    return f"{tool_name(part.tool)} {render_args(args, first_key)}"


# [LAW:dataflow-not-control-flow] Title builder per tool name
_TITLE_BUILDERS = {
    "read": _title_for_read,
    "edit": _title_for_file_edit,
    "write": _title_for_file_edit,
    "bash": _title_for_bash,
    "task": _title_for_task,
    "webfetch": _title_for_webfetch,
    "todowrite": _title_for_todowrite,
    "todoread": _title_for_todoread,
    "invalid": _title_for_invalid,
}


def tool_title_text(part: ToolPart, width: int) -> str:
    """Plain title for a non-pending tool call, truncated to the block."""
    builder = _TITLE_BUILDERS.get(part.tool, _title_default)
    title = builder(part, part.state.input)
    if part.tool == "todoread":
        return title
    return truncate_with_tail(title, width - CHROME_WIDTH)


def render_tool_title(ctx: RenderContext, part: ToolPart, width: int, background: str | None = None) -> Text:
    tc = ctx.theme
    background = background or tc.background_panel
    if isinstance(part.state, ToolPending):
        return shimmer(tool_action(part.tool), ctx.frame, tc.text_muted, tc.accent, background)
    color = tc.error if isinstance(part.state, ToolError) and part.state.error else tc.text
    return Text(tool_title_text(part, width), style=Style(color=color, bgcolor=background))


# ─── Text blocks ─────────────────────────────────────────────────────────────

_MEDIA_BADGES: dict[str, str] = {
    "text/plain": "txt",
    "image/png": "img",
    "image/jpeg": "img",
    "image/gif": "img",
    "image/webp": "img",
    "application/pdf": "pdf",
}


def _file_chips(ctx: RenderContext, files: list[FilePart]) -> list[Strip]:
    tc = ctx.theme
    badge_colors = {"txt": tc.secondary, "img": tc.accent, "pdf": tc.primary}
    strips: list[Strip] = []
    for part in files:
        badge = _MEDIA_BADGES.get(part.mime, "")
        chip = Text()
        chip.append(f" {badge} ", style=Style(color=tc.background_panel, bgcolor=badge_colors.get(badge, tc.secondary)))
        chip.append(f" {part.filename} ", style=Style(color=tc.text_muted, bgcolor=tc.background_element))
        strips.extend(_strips(ctx, chip, tc.background_panel))
    return strips


def _source_highlights(text: str, files: list[FilePart], agents: list[AgentPart]) -> list[tuple[int, int]]:
    spans = []
    for part in files:
        source = part.source
        if source is not None and 0 <= source.text.start <= source.text.end:
            spans.append((source.text.start, source.text.end))
    for part in agents:
        if part.source is not None and 0 <= part.source.start <= part.source.end:
            spans.append((part.source.start, part.source.end))
    spans.sort()
    merged: list[tuple[int, int]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    limit = len(text)
    return [(min(s, limit), min(e, limit)) for s, e in merged if min(s, limit) < min(e, limit)]


def render_user_text(
    ctx: RenderContext,
    info: MessageInfo,
    text: str,
    author: str,
    files: tuple[FilePart, ...] = (),
    agents: tuple[AgentPart, ...] = (),
    is_queued: bool = False,
) -> RenderedBlock:
    """User prompt block: QUEUED badge, highlighted text, file chips, author line."""
    tc = ctx.theme
    bg = tc.background_panel
    body = Text(text, style=Style(color=tc.text, bgcolor=bg))
    for start, end in _source_highlights(text, list(files), list(agents)):
        body.stylize(Style(color=tc.secondary), start, end)

    content: list[Strip] = []
    if is_queued:
        badge = Text(" QUEUED ", style=Style(color=tc.background_panel, bgcolor=tc.accent, bold=True))
        content.extend(_strips(ctx, badge, bg))
        content.append(Strip.blank(ctx.content_width, Style(bgcolor=bg)))
    content.extend(_strips(ctx, body, bg))
    chips = _file_chips(ctx, list(files))
    if chips:
        content.append(Strip.blank(ctx.content_width, Style(bgcolor=bg)))
        content.extend(chips)
        content.append(Strip.blank(ctx.content_width, Style(bgcolor=bg)))
    content.extend(_strips(ctx, _info_line(ctx, info, author, bg), bg))
    return content_block(
        ctx,
        content,
        background=bg,
        border_color=tc.accent if is_queued else tc.secondary,
    )


def _tool_trailer(ctx: RenderContext, part: ToolPart, background: str) -> Text:
    tc = ctx.theme
    color = tc.error if isinstance(part.state, ToolError) else tc.text
    line = Text(TRAILER_PREFIX, style=Style(color=tc.text_muted, bgcolor=background))
    line.append(tool_title_text(part, ctx.width - 2), style=Style(color=color))
    return line


def render_assistant_text(
    ctx: RenderContext,
    info: AssistantMessage,
    text: str,
    tool_calls: tuple[ToolPart, ...] = (),
) -> RenderedBlock:
    """Assistant markdown; with tool details hidden, its tools collapse to ∟ lines."""
    tc = ctx.theme
    bg = tc.background
    content = convo_tui.tui.formatters.markdown_to_strips(text, ctx.content_width, bg, tc.code_theme)
    if not ctx.flags.show_tool_details:
        for part in tool_calls:
            content.extend(_strips(ctx, _tool_trailer(ctx, part, bg), bg))
    content.extend(_strips(ctx, _info_line(ctx, info, info.model_id, bg), bg))
    return content_block(ctx, content, background=bg, border=False)


def render_thinking(ctx: RenderContext, info: AssistantMessage, text: str, animate: bool) -> RenderedBlock:
    tc = ctx.theme
    bg = tc.background_panel
    if animate:
        label = shimmer("Thinking...", ctx.frame, tc.text_muted, tc.accent, bg)
    else:
        label = Text("Thinking...", style=Style(color=tc.text_muted, bgcolor=bg))
    content = _strips(ctx, label, bg)
    content.append(Strip.blank(ctx.content_width, Style(bgcolor=bg)))
    content.extend(convo_tui.tui.formatters.markdown_to_strips(text, ctx.content_width, bg, tc.code_theme))
    content.extend(_strips(ctx, _info_line(ctx, info, info.model_id, bg), bg))
    return content_block(ctx, content, background=bg, border_color=bg)


def render_generating(ctx: RenderContext, info: AssistantMessage) -> RenderedBlock:
    """Placeholder while an assistant message has produced nothing yet."""
    tc = ctx.theme
    bg = tc.background
    content = _strips(ctx, shimmer("Generating...", ctx.frame, tc.text_muted, tc.text, bg), bg)
    content.extend(_strips(ctx, _info_line(ctx, info, info.model_id, bg), bg))
    return content_block(ctx, content, background=bg, border=False)


# ─── Tool detail bodies ──────────────────────────────────────────────────────


def _muted_body(ctx: RenderContext, text: str) -> list[Strip]:
    tc = ctx.theme
    return _strips(ctx, Text(text, style=Style(color=tc.text_muted)), tc.background_panel)


def _diagnostics(ctx: RenderContext, metadata: Mapping, path: str) -> list[Strip]:
    data = metadata.get("diagnostics")
    if not isinstance(data, Mapping):
        return []
    entries = data.get(path)
    if not isinstance(entries, tuple):
        return []
    lines = []
    for diag in entries:
        if not isinstance(diag, Mapping) or diag.get("severity") != 1:
            continue
        start = diag.get("range", FrozenDict()).get("start", FrozenDict())
        line = int(start.get("line", 0)) + 1
        column = int(start.get("character", 0)) + 1
        lines.append(f"Error [{line}:{column}] {diag.get('message', '')}")
    if not lines:
        return []
    tc = ctx.theme
    return _strips(ctx, Text("\n\n".join(lines), style=Style(color=tc.error)), tc.background_panel)


def _body_read(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    preview = metadata.get("preview")
    path = args.get("filePath")
    if not isinstance(preview, str) or not isinstance(path, str):
        return []
    return convo_tui.tui.formatters.render_file_preview(
        path, preview, ctx.content_width, READ_PREVIEW_MAX_LINES, ctx.theme.background_panel, ctx.theme.code_theme
    )


def _body_edit(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    path = args.get("filePath")
    patch = metadata.get("diff")
    if not isinstance(path, str) or not isinstance(patch, str):
        return []
    body = convo_tui.tui.formatters.format_diff(
        relative_path(path), patch, ctx.content_width, ctx.theme.background_panel
    )
    return body + _diagnostics(ctx, metadata, path)


def _body_write(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    path = args.get("filePath")
    content = args.get("content")
    if not isinstance(path, str) or not isinstance(content, str):
        return []
    body = convo_tui.tui.formatters.render_file_preview(
        path, content, ctx.content_width, background=ctx.theme.background_panel, code_theme=ctx.theme.code_theme
    )
    return body + _diagnostics(ctx, metadata, path)


def _body_bash(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    command = args.get("command")
    if not isinstance(command, str):
        return []
    shown = metadata.get("output")
    text = f"```console\n$ {command}\n"
    if shown is not None:
        text += Text.from_ansi(str(shown)).plain
    text += "```"
    return convo_tui.tui.formatters.markdown_to_strips(
        text, ctx.content_width, ctx.theme.background_panel, ctx.theme.code_theme
    )


def _body_webfetch(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    fmt = args.get("format")
    if not isinstance(fmt, str) or not output:
        return []
    body = truncate_height(output, TOOL_OUTPUT_MAX_LINES)
    if fmt in ("html", "markdown"):
        return convo_tui.tui.formatters.markdown_to_strips(
            body, ctx.content_width, ctx.theme.background_panel, ctx.theme.code_theme
        )
    return _muted_body(ctx, body)


_TODO_MARKS: dict[str, str] = {
    "completed": "- [x] {}\n",
    "cancelled": "- [ ] ~~{}~~\n",
    "in_progress": "- [ ] `{}`\n",
}


def _body_todowrite(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    todos = metadata.get("todos")
    if not isinstance(todos, tuple):
        return []
    text = ""
    for todo in todos:
        if not isinstance(todo, Mapping) or todo.get("content") is None:
            continue
        text += _TODO_MARKS.get(todo.get("status"), "- [ ] {}\n").format(todo["content"])
    return convo_tui.tui.formatters.markdown_to_strips(
        text, ctx.content_width, ctx.theme.background_panel, ctx.theme.code_theme
    )


def _body_task(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    summary = metadata.get("summary")
    if not isinstance(summary, tuple):
        return []
    steps = []
    for item in summary:
        if not isinstance(item, Mapping):
            continue
        try:
            state = decode_tool_state(thaw(item.get("state", FrozenDict())))
        except DecodeError:
            continue
        step = ToolPart(
            id=str(item.get("id", "")),
            message_id=part.message_id,
            session_id=part.session_id,
            call_id="",
            tool=str(item.get("tool", "")),
            state=state,
        )
        steps.append(TRAILER_PREFIX + tool_title_text(step, ctx.width - 2))
    return _strips(ctx, Text("\n".join(steps), style=Style(color=ctx.theme.text)), ctx.theme.background_panel)


def _body_default(ctx: RenderContext, part: ToolPart, args: Mapping, metadata: Mapping, output: str) -> list[Strip]:
    return _muted_body(ctx, truncate_height(output, TOOL_OUTPUT_MAX_LINES))


# [LAW:dataflow-not-control-flow] Body renderer per tool name
_BODY_RENDERERS = {
    "read": _body_read,
    "edit": _body_edit,
    "write": _body_write,
    "bash": _body_bash,
    "webfetch": _body_webfetch,
    "todowrite": _body_todowrite,
    "task": _body_task,
}

# Tools whose call is never shown as a block.
IGNORED_TOOLS = frozenset({"todoread"})


def permission_footer(ctx: RenderContext) -> Text:
    tc = ctx.theme
    bold = Style(color=tc.text, bold=True)
    muted = Style(color=tc.text_muted)
    text = Text("Permission required to run this tool:\n\n", style=Style(color=tc.text))
    text.append("enter ", bold)
    text.append("accept   ", muted)
    text.append("a", bold)
    text.append(" accept always   ", muted)
    text.append("esc", bold)
    text.append(" reject", muted)
    return text


def render_tool_details(
    ctx: RenderContext,
    part: ToolPart,
    permission: Permission | None = None,
) -> RenderedBlock | None:
    """Full block for one tool call. None for tools that never render."""
    if part.tool in IGNORED_TOOLS:
        return None
    tc = ctx.theme
    bg = tc.background_panel
    blank = Strip.blank(ctx.content_width, Style(bgcolor=bg))
    title = _strips(ctx, render_tool_title(ctx, part, ctx.width, bg), bg)

    if isinstance(part.state, ToolPending):
        return content_block(ctx, title, background=bg)

    args = part.state.input
    metadata = part.state.metadata
    if permission is not None and permission.metadata:
        metadata = FrozenDict({**dict(metadata), **dict(permission.metadata)})
    output = part.state.output if isinstance(part.state, ToolCompleted) else ""
    error = part.state.error if isinstance(part.state, ToolError) else ""

    renderer = _BODY_RENDERERS.get(part.tool, _body_default)
    body = renderer(ctx, part, args, metadata, output)
    if error:
        err = _strips(ctx, Text(error, style=Style(color=tc.error)), bg)
        body = body + [blank] + err if body else err
    if not body and output:
        body = _body_default(ctx, part, args, metadata, output)

    content = title + [blank] + (body or [blank])
    if permission is not None:
        content += [blank, blank] + _strips(ctx, permission_footer(ctx), bg)
    return content_block(
        ctx,
        content,
        background=bg,
        border_color=tc.warning if permission is not None else bg,
        border_both=permission is not None,
    )


# ─── Status blocks ───────────────────────────────────────────────────────────


def render_error_block(ctx: RenderContext, message: str) -> RenderedBlock:
    tc = ctx.theme
    content = _strips(ctx, Text(message, style=Style(color=tc.text)), tc.background_panel)
    return content_block(ctx, content, border_color=tc.error)


def render_failure_block(ctx: RenderContext, exc: Exception) -> RenderedBlock:
    """One-line stand-in for a block whose renderer raised."""
    tc = ctx.theme
    line = Text(f"⚠ render failed: {type(exc).__name__}: {exc}", style=Style(color=tc.error))
    line.truncate(ctx.content_width, overflow="ellipsis")
    return content_block(ctx, _strips(ctx, line, tc.background_panel), border_color=tc.error, padding=0)


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def render_revert_summary(
    ctx: RenderContext,
    message_count: int,
    tool_count: int,
    file_stats: list[FileStats] = (),
) -> RenderedBlock:
    """`N messages reverted, M tool calls reverted`, redo hint, per-file stats."""
    tc = ctx.theme
    bg = tc.background_panel
    muted = Style(color=tc.text_muted)
    text = Text(
        f"{message_count} message{_plural(message_count)} reverted, "
        f"{tool_count} tool call{_plural(tool_count)} reverted",
        style=muted,
    )
    text.append("\n")
    text.append(ctx.redo_key, Style(color=tc.text))
    text.append(" (or /redo) to restore", muted)
    if file_stats:
        text.append("\n")
        for stats in file_stats:
            text.append("\n" + stats.path, Style(color=tc.text))
            if stats.added > 0:
                text.append(f" +{stats.added}", Style(color=tc.success))
            if stats.removed > 0:
                text.append(f" -{stats.removed}", Style(color=tc.error))
    return content_block(ctx, _strips(ctx, text, bg), background=bg, border_color=bg)
