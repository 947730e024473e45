"""Tests for block renderers: tool titles, status blocks and layout."""

from datetime import datetime

import pytest

from convo_tui.core.diff_stats import FileStats
from convo_tui.core.models import ToolError, ToolPending, freeze
from convo_tui.tui.rendering import (
    RenderContext,
    RenderFlags,
    format_timestamp,
    relative_path,
    render_args,
    render_error_block,
    render_revert_summary,
    render_tool_details,
    render_user_text,
    todo_phase,
    tool_action,
    tool_name,
    tool_title_text,
    truncate_height,
    truncate_with_tail,
)
from tests.harness import builders as b
from tests.harness import strips_to_text


def _tool(name, args, metadata=None, state=None):
    return b.tool("prt_1", "msg_002", name=name, state=state or b.completed(args, metadata=metadata))


def _text(block) -> str:
    return strips_to_text(block.strips)


class TestToolTitles:
    @pytest.mark.parametrize(
        "name, expected",
        [("bash", "Shell"), ("webfetch", "Fetch"), ("grep", "Grep"), ("opencode_lsp_hover", "Lsp_Hover")],
    )
    def test_tool_name(self, name, expected):
        assert tool_name(name) == expected

    def test_pending_action_labels(self):
        assert tool_action("bash") == "Writing command..."
        assert tool_action("mystery") == "Working..."

    def test_bash_uses_description(self):
        assert tool_title_text(_tool("bash", {"command": "ls", "description": "List files"}), 80) == "Shell List files"

    def test_task_with_subagent(self):
        part = _tool("task", {"description": "Find bugs", "subagent_type": "general"})
        assert tool_title_text(part, 80) == "Task[general] Find bugs"

    def test_default_title_uses_first_key(self):
        part = _tool("grep", {"pattern": "TODO", "include": "*.py"})
        assert tool_title_text(part, 80) == "Grep *.py (pattern=TODO)"

    def test_invalid_shows_requested_tool(self):
        assert tool_title_text(_tool("invalid", {"tool": "bash"}), 80) == "Shell"

    def test_title_truncated_to_block_width(self):
        part = _tool("bash", {"command": "x", "description": "d" * 100})
        title = tool_title_text(part, 40)
        assert len(title) == 34
        assert title.endswith("...")

    def test_render_args_sorts_and_skips_none(self):
        args = freeze({"url": "https://x", "timeout": 5, "format": None, "follow": True})
        assert render_args(args, "url") == "https://x (follow=true, timeout=5)"
        assert render_args(freeze({}), "url") == ""

    @pytest.mark.parametrize(
        "statuses, phase",
        [
            (["pending", "pending"], "Creating plan"),
            (["completed", "completed"], "Completing plan"),
            (["completed", "pending"], "Updating plan"),
            ([], "Plan"),
        ],
    )
    def test_todo_phase(self, statuses, phase):
        metadata = freeze({"todos": [{"content": f"t{i}", "status": s} for i, s in enumerate(statuses)]})
        assert todo_phase(metadata) == phase


class TestHelpers:
    def test_truncate_with_tail(self):
        assert truncate_with_tail("hello", 10) == "hello"
        assert truncate_with_tail("hello world", 8) == "hello..."
        assert truncate_with_tail("hello", 0) == ""

    def test_truncate_height(self):
        assert truncate_height("a\nb\nc", 2) == "a\nb"
        assert truncate_height("a", 2) == "a"

    def test_relative_path(self):
        assert relative_path("/work/src/a.py", cwd="/work") == "src/a.py"
        assert relative_path("/elsewhere/a.py", cwd="/work") == "/elsewhere/a.py"

    def test_timestamp_today_shows_time_only(self):
        moment = datetime(2026, 1, 2, 15, 4).timestamp()
        assert format_timestamp(moment * 1000, now=moment) == "03:04 PM"

    def test_timestamp_other_day_shows_date(self):
        moment = datetime(2026, 1, 2, 15, 4).timestamp()
        assert format_timestamp(moment * 1000, now=moment + 3 * 86400) == "02 Jan 2026 03:04 PM"


class TestBlocks:
    def test_block_is_full_width_with_chrome_padding(self, ctx):
        block = render_error_block(ctx, "provider exploded")
        assert all(strip.cell_length == ctx.width for strip in block.strips)
        assert block.chrome == frozenset({0, block.line_count - 1})
        assert "provider exploded" in _text(block)

    def test_revert_summary_counts_and_hint(self, ctx):
        stats = [FileStats("src/a.py", added=3, removed=1), FileStats("b.txt", added=0, removed=2)]
        text = _text(render_revert_summary(ctx, 3, 1, stats))
        assert "3 messages reverted, 1 tool call reverted" in text
        assert "ctrl+r (or /redo) to restore" in text
        assert "src/a.py +3 -1" in text
        assert "b.txt -2" in text

    def test_revert_summary_singular(self, ctx):
        text = _text(render_revert_summary(ctx, 1, 0))
        assert "1 message reverted, 0 tool calls reverted" in text

    def test_queued_user_message_has_badge(self, ctx):
        block = render_user_text(ctx, b.user("msg_003"), "do it", "alice", is_queued=True)
        text = _text(block)
        assert "QUEUED" in text
        assert "do it" in text
        assert "alice" in text

    def test_todoread_never_renders(self, ctx):
        assert render_tool_details(ctx, _tool("todoread", {})) is None

    def test_pending_tool_shows_action_label(self, ctx):
        part = _tool("bash", {}, state=ToolPending(input=freeze({})))
        assert "Writing command..." in _text(render_tool_details(ctx, part))

    def test_errored_tool_shows_error(self, ctx):
        state = ToolError(input=freeze({"command": "false"}), start=1, end=2, error="exit status 1")
        text = _text(render_tool_details(ctx, _tool("bash", {}, state=state)))
        assert "exit status 1" in text

    def test_permission_footer(self, ctx):
        permission = b.permission("per_1", "msg_002", "call_prt_1")
        text = _text(render_tool_details(ctx, _tool("bash", {"command": "rm -rf build"}), permission))
        assert "Permission required to run this tool" in text
        assert "accept always" in text

    def test_narrow_width_still_renders(self):
        ctx = RenderContext(flags=RenderFlags(width=12))
        block = render_error_block(ctx, "x" * 40)
        assert all(strip.cell_length == 12 for strip in block.strips)
