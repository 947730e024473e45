"""Revert/redo: soft time travel over the conversation.

The state is derived, never stored: a session with a revert pointer is
Reverted(boundary), otherwise Normal. Planning is pure; the app executes
the planned RevertAction through the session service on a worker and only
adopts the boundary the server sends back.

Boundaries are compared by message id. Ids are ascending, so "before" and
"after" in id order match creation order without trusting timestamps.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from convo_tui.app.domain_store import MessageRecord
from convo_tui.core.diff_stats import FileStats, sorted_stats
from convo_tui.core.models import RevertPointer, ToolPart, UserMessage


class RevertMode(Enum):
    NORMAL = "normal"
    REVERTED = "reverted"


def mode_of(revert: RevertPointer | None) -> RevertMode:
    return RevertMode.REVERTED if revert is not None else RevertMode.NORMAL


class RevertKind(Enum):
    REVERT = "revert"
    UNREVERT = "unrevert"


@dataclass(frozen=True)
class RevertAction:
    """One session-service call to make."""

    kind: RevertKind
    message_id: str = ""
    # Toast text when the call fails.
    failure_text: str = ""

    @classmethod
    def revert(cls, message_id: str, failure_text: str = "Failed to undo message") -> "RevertAction":
        return cls(kind=RevertKind.REVERT, message_id=message_id, failure_text=failure_text)

    @classmethod
    def unrevert(cls) -> "RevertAction":
        return cls(kind=RevertKind.UNREVERT, failure_text="Failed to redo message")


def _user_ids(messages: Sequence[MessageRecord]) -> list[str]:
    return [record.id for record in messages if isinstance(record.info, UserMessage)]


def plan_undo(messages: Sequence[MessageRecord], revert: RevertPointer | None) -> RevertAction | None:
    """Nearest user message strictly before the boundary (or the end)."""
    for message_id in reversed(_user_ids(messages)):
        if revert is not None and message_id >= revert.message_id:
            continue
        return RevertAction.revert(message_id)
    return None


def plan_redo(messages: Sequence[MessageRecord], revert: RevertPointer | None) -> RevertAction | None:
    """Move the boundary to the next user message, or unrevert entirely.

    None when not reverted ("Nothing to redo").
    """
    if revert is None:
        return None
    for message_id in _user_ids(messages):
        if message_id > revert.message_id:
            return RevertAction.revert(message_id, failure_text="Failed to redo message")
    return RevertAction.unrevert()


@dataclass(frozen=True)
class RevertSummary:
    message_count: int = 0
    tool_count: int = 0
    files: tuple[FileStats, ...] = ()

    @property
    def empty(self) -> bool:
        return self.message_count == 0 and self.tool_count == 0


def is_hidden(message_id: str, revert: RevertPointer | None) -> bool:
    """True for messages at or after the boundary."""
    return revert is not None and message_id >= revert.message_id


def summarize_revert(messages: Sequence[MessageRecord], revert: RevertPointer | None) -> RevertSummary:
    """Hidden message and tool-call counts plus per-file diff stats."""
    if revert is None:
        return RevertSummary()
    hidden = [record for record in messages if is_hidden(record.id, revert)]
    tools = sum(1 for record in hidden for part in record.parts if isinstance(part, ToolPart))
    files = tuple(sorted_stats(revert.diff)) if revert.diff else ()
    return RevertSummary(message_count=len(hidden), tool_count=tools, files=files)
