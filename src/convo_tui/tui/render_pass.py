"""One full render pass: conversation snapshot in, line buffer out.

Runs on a worker thread. Inputs are immutable (ConversationSnapshot, a
frozen CacheView); the only output is the RenderResult, which carries the
cache entries this pass computed so the app can merge them.

Grouping (assistant messages): a Text part closes a group. Tool parts up
to the next Text belong to it. Tools seen before any Text in a message
wait in an orphan bucket for the first later Text; if none comes, they
render as standalone blocks at the end of the message.

# [LAW:single-enforcer] All visibility decisions (revert boundary, tool
# details, thinking blocks) are made here. rendering.py never checks them.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from rich.style import Style
from textual.strip import Strip

import convo_tui.tui.rendering
from convo_tui.app.domain_store import MessageRecord
from convo_tui.app.session_service import SessionServiceError
from convo_tui.core.models import (
    AgentPart,
    AssistantMessage,
    DecodeError,
    FilePart,
    MessageInfo,
    Part,
    Permission,
    ReasoningPart,
    Session,
    TextPart,
    ToolPart,
    UserMessage,
    error_text,
    is_terminal,
)
from convo_tui.tui.part_cache import CacheView, cache_key
from convo_tui.tui.rendering import RenderContext, RenderedBlock
from convo_tui.tui.revert import is_hidden, summarize_revert

logger = logging.getLogger(__name__)

FetchMessage = Callable[[str, str], tuple[MessageInfo, tuple[Part, ...]]]

# Sorts after every real id: nothing is queued while no assistant is busy.
_NO_PENDING_ASSISTANT = "\U0010ffff"


@dataclass(frozen=True)
class ConversationSnapshot:
    """Everything one pass reads. Built by the app, never mutated."""

    messages: tuple[MessageRecord, ...] = ()
    session: Session | None = None
    permission: Permission | None = None
    context: RenderContext = field(default_factory=RenderContext)


@dataclass(frozen=True)
class RenderResult:
    lines: tuple[Strip, ...]
    chrome: frozenset[int]
    message_positions: dict[str, int]
    part_count: int
    new_entries: dict[str, RenderedBlock]
    generation: int
    animating: bool

    @property
    def line_count(self) -> int:
        return len(self.lines)


def has_animating_work(messages) -> bool:
    """An assistant message still running, or a tool call not yet finished."""
    for record in messages:
        if isinstance(record.info, AssistantMessage) and record.info.time_completed == 0:
            return True
        for part in record.parts:
            if isinstance(part, ToolPart) and not is_terminal(part.state):
                return True
    return False


def _last_streaming_reasoning_id(messages: tuple[MessageRecord, ...]) -> str:
    for record in reversed(messages):
        if not isinstance(record.info, AssistantMessage):
            continue
        for part in reversed(record.parts):
            if isinstance(part, ReasoningPart) and part.text.strip() and part.time.end == 0:
                return part.id
    return ""


def _pending_assistant_id(messages: tuple[MessageRecord, ...]) -> str:
    """Id of the newest assistant message if it is still running."""
    for record in reversed(messages):
        if isinstance(record.info, AssistantMessage):
            if record.info.time_completed > 0:
                break
            return record.info.id
    return _NO_PENDING_ASSISTANT


class _Pass:
    """Mutable accumulators for one pass.

    // [LAW:no-shared-mutable-globals] Scoped to a single render_conversation call.
    """

    def __init__(self, snapshot: ConversationSnapshot, cache: CacheView):
        self.snapshot = snapshot
        self.ctx = snapshot.context
        self.cache = cache
        self.new_entries: dict[str, RenderedBlock] = {}
        self.blank = Strip.blank(self.ctx.width, Style(bgcolor=self.ctx.theme.background))
        self.lines: list[Strip] = [self.blank]
        self.chrome: set[int] = {0}
        self.positions: dict[str, int] = {}
        self.part_count = 0

    # ─── Cache ────────────────────────────────────────────────────────

    def cached(self, key: str, compute: Callable[[], RenderedBlock | None]) -> RenderedBlock | None:
        block = self.new_entries.get(key) or self.cache.get(key)
        if block is not None:
            return block
        try:
            block = compute()
        except Exception as exc:
            # Failure blocks are never cached; the next pass retries.
            return self.failed(exc)
        if block is not None:
            self.new_entries[key] = block
        return block

    def guarded(self, compute: Callable[[], RenderedBlock | None]) -> RenderedBlock | None:
        try:
            return compute()
        except Exception as exc:
            return self.failed(exc)

    def failed(self, exc: Exception) -> RenderedBlock:
        logger.exception("block render failed")
        return convo_tui.tui.rendering.render_failure_block(self.ctx, exc)

    # ─── Output ───────────────────────────────────────────────────────

    def emit(self, block: RenderedBlock | None, counts_as_part: bool = True) -> bool:
        if block is None or not block.strips:
            return False
        base = len(self.lines)
        self.lines.extend(block.strips)
        self.chrome.update(base + index for index in block.chrome)
        self.chrome.add(len(self.lines))
        self.lines.append(self.blank)
        if counts_as_part:
            self.part_count += 1
        return True


def _render_user(rp: _Pass, record: MessageRecord, pending_assistant_id: str) -> None:
    ctx = rp.ctx
    info = record.info
    is_queued = info.id > pending_assistant_id
    for index, part in enumerate(record.parts):
        if not isinstance(part, TextPart) or part.synthetic or not part.text:
            continue
        remaining = record.parts[index + 1:]
        files = tuple(p for p in remaining if isinstance(p, FilePart))
        agents = tuple(p for p in remaining if isinstance(p, AgentPart))
        key = cache_key("user", info.id, part.text, ctx.width, files, agents, ctx.username, is_queued)
        rp.emit(
            rp.cached(
                key,
                lambda part=part, files=files, agents=agents: convo_tui.tui.rendering.render_user_text(
                    ctx, info, part.text, ctx.username, files, agents, is_queued
                ),
            )
        )


def _render_text_group(rp: _Pass, info: AssistantMessage, part: TextPart, tool_calls: tuple[ToolPart, ...]) -> bool:
    ctx = rp.ctx
    # Streaming text, or a group whose tools are still running, is never cached.
    finished = part.time.end > 0 and all(is_terminal(t.state) for t in tool_calls)

    def compute():
        return convo_tui.tui.rendering.render_assistant_text(ctx, info, part.text, tool_calls)

    if not finished:
        return rp.emit(rp.guarded(compute))
    key = cache_key(
        "text",
        info.id,
        info.model_id,
        info.mode,
        info.time_created,
        info.time_completed,
        part.id,
        part.text,
        ctx.flags,
        tool_calls,
    )
    return rp.emit(rp.cached(key, compute))


def _render_tool(rp: _Pass, info: AssistantMessage, part: ToolPart, permission: Permission | None) -> bool:
    ctx = rp.ctx

    def compute():
        return convo_tui.tui.rendering.render_tool_details(ctx, part, permission)

    if not is_terminal(part.state):
        return rp.emit(rp.guarded(compute))
    key = cache_key("tool", info.id, part, ctx.flags, permission)
    return rp.emit(rp.cached(key, compute))


def _render_reasoning(rp: _Pass, info: AssistantMessage, part: ReasoningPart, streaming_id: str) -> bool:
    ctx = rp.ctx
    animate = part.time.end == 0 and part.id == streaming_id

    def compute():
        return convo_tui.tui.rendering.render_thinking(ctx, info, part.text, animate)

    if part.time.end == 0:
        return rp.emit(rp.guarded(compute))
    key = cache_key("reasoning", info.id, info.model_id, info.mode, info.time_completed, part, ctx.width)
    return rp.emit(rp.cached(key, compute))


def _render_assistant(rp: _Pass, record: MessageRecord, streaming_reasoning_id: str) -> None:
    ctx = rp.ctx
    flags = ctx.flags
    info = record.info
    permission = rp.snapshot.permission
    parts = record.parts
    has_text = False
    has_content = False
    orphans: list[ToolPart] = []

    for index, part in enumerate(parts):
        if isinstance(part, TextPart):
            if not part.text.strip():
                continue
            has_text = True
            tool_calls = list(orphans)
            orphans = []
            for later in parts[index + 1:]:
                if isinstance(later, TextPart):
                    break
                if isinstance(later, ToolPart):
                    tool_calls.append(later)
            has_content |= _render_text_group(rp, info, part, tuple(tool_calls))

        elif isinstance(part, ToolPart):
            part_permission = permission if permission is not None and permission.call_id == part.call_id else None
            if not flags.show_tool_details and part_permission is None:
                if not has_text:
                    orphans.append(part)
                continue
            has_content |= _render_tool(rp, info, part, part_permission)

        elif isinstance(part, ReasoningPart):
            if not flags.show_thinking_blocks or not part.text:
                continue
            has_content |= _render_reasoning(rp, info, part, streaming_reasoning_id)

    # No Text ever claimed them: show the orphans on their own.
    for orphan in orphans:
        has_content |= _render_tool(rp, info, orphan, None)

    error = error_text(info.error) if info.error is not None else ""
    if not has_content and not error and info.time_completed == 0:
        rp.emit(rp.guarded(lambda: convo_tui.tui.rendering.render_generating(ctx, info)))
    if error:
        rp.emit(rp.guarded(lambda: convo_tui.tui.rendering.render_error_block(ctx, error)), counts_as_part=False)


def _render_permission_preview(rp: _Pass, fetch_message: FetchMessage | None) -> None:
    """Tool call awaiting permission in a child session, fetched on demand."""
    permission = rp.snapshot.permission
    session = rp.snapshot.session
    if permission is None or session is None or permission.session_id == session.id:
        return
    if fetch_message is None:
        return
    try:
        info, parts = fetch_message(permission.session_id, permission.message_id)
    except (SessionServiceError, DecodeError) as exc:
        logger.error("failed to fetch message from child session: %s", exc)
        return
    for part in parts:
        if isinstance(part, ToolPart) and part.call_id == permission.call_id:
            rp.emit(
                rp.guarded(
                    lambda part=part: convo_tui.tui.rendering.render_tool_details(rp.ctx, part, permission)
                )
            )


def render_conversation(
    snapshot: ConversationSnapshot,
    cache: CacheView,
    fetch_message: FetchMessage | None = None,
) -> RenderResult:
    """Render every visible message to one flat line buffer."""
    rp = _Pass(snapshot, cache)
    messages = snapshot.messages
    revert = snapshot.session.revert if snapshot.session is not None else None
    streaming_reasoning_id = (
        _last_streaming_reasoning_id(messages) if snapshot.context.flags.show_thinking_blocks else ""
    )
    pending_assistant_id = _pending_assistant_id(messages)

    for record in messages:
        rp.positions[record.id] = len(rp.lines)
        if is_hidden(record.id, revert):
            continue
        if isinstance(record.info, UserMessage):
            _render_user(rp, record, pending_assistant_id)
        else:
            _render_assistant(rp, record, streaming_reasoning_id)

    summary = summarize_revert(messages, revert)
    if not summary.empty:
        rp.emit(
            rp.guarded(
                lambda: convo_tui.tui.rendering.render_revert_summary(
                    rp.ctx, summary.message_count, summary.tool_count, list(summary.files)
                )
            ),
            counts_as_part=False,
        )

    _render_permission_preview(rp, fetch_message)

    return RenderResult(
        lines=tuple(rp.lines),
        chrome=frozenset(rp.chrome),
        message_positions=rp.positions,
        part_count=rp.part_count,
        new_entries=rp.new_entries,
        generation=cache.generation,
        animating=has_animating_work(messages),
    )
