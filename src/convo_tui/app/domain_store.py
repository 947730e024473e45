"""Domain store: the ordered message/part collection for one session.

// [LAW:one-source-of-truth] Messages, parts, the session pointer and the
// permission queue live here and nowhere else.
// [LAW:one-way-deps] No widget imports. No rendering imports.

Records are frozen; a mutation swaps the record at its index. That makes
`snapshot()` a plain tuple copy that background render passes can read
without locks.

Lookups are linear scans with no secondary index. A conversation is small
enough that O(n) per event is fine.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from convo_tui.core.ids import ascending_id
from convo_tui.core.models import (
    FilePart,
    MessageInfo,
    Part,
    Permission,
    Session,
    TextPart,
    TimeWindow,
    ToolPart,
    UserMessage,
    can_transition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageRecord:
    """One message and its parts in insertion order."""

    info: MessageInfo
    parts: tuple[Part, ...] = ()

    @property
    def id(self) -> str:
        return self.info.id


class DomainStore:
    """Ordered, in-memory conversation state. Single owner.

    Every apply_* method returns True when the store actually changed, so
    re-applying an identical event reports False and callers can skip the
    render request.
    """

    def __init__(self, session: Session | None = None):
        self._session: Session | None = session
        self._messages: list[MessageRecord] = []
        self._permissions: list[Permission] = []

        # Callbacks, registered by the app
        self.on_changed: Callable[[], None] | None = None
        self.on_session_changed: Callable[[Session | None, Session | None], None] | None = None

    # ─── Session ──────────────────────────────────────────────────────

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.id if self._session is not None else ""

    def set_session(self, session: Session | None, messages: list[MessageRecord] | None = None) -> None:
        """Switch to another session, replacing all messages.

        Permissions are kept; they belong to the server, not the session view.
        """
        previous = self._session
        self._session = session
        self._messages = sorted(messages or [], key=lambda record: record.id)
        if self.on_session_changed is not None:
            self.on_session_changed(previous, session)
        self._notify()

    def clear(self) -> None:
        """Session cleared: forget the session and all of its messages.

        Goes through set_session, so on_session_changed sees the switch to
        no session and listeners drop whatever they derived from it.
        """
        if self._session is None and not self._messages:
            return
        self.set_session(None)

    def _owns(self, session_id: str) -> bool:
        return self._session is not None and session_id == self._session.id

    # ─── Messages ─────────────────────────────────────────────────────

    def _index_of(self, message_id: str) -> int:
        for index, record in enumerate(self._messages):
            if record.id == message_id:
                return index
        return -1

    def _insertion_index(self, message_id: str) -> int:
        # Tail-biased: almost every new message lands at the end.
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].id < message_id:
                return index + 1
        return 0

    def apply_message_updated(self, info: MessageInfo) -> bool:
        """Replace a message's info keeping its parts, or insert it sorted."""
        if not self._owns(info.session_id):
            return False
        index = self._index_of(info.id)
        if index >= 0:
            current = self._messages[index]
            if current.info == info:
                return False
            self._messages[index] = replace(current, info=info)
        else:
            self._messages.insert(self._insertion_index(info.id), MessageRecord(info=info))
        self._notify()
        return True

    def apply_message_removed(self, session_id: str, message_id: str) -> bool:
        if not self._owns(session_id):
            return False
        index = self._index_of(message_id)
        if index < 0:
            return False
        del self._messages[index]
        self._notify()
        return True

    def add_optimistic_user_message(self, text: str, files: tuple[FilePart, ...] = ()) -> MessageRecord:
        """Insert a locally composed user message before the server confirms it.

        The server echoes the same id back in message.updated, which then
        replaces the info and keeps these parts.
        """
        if self._session is None:
            raise RuntimeError("no active session")
        message_id = ascending_id("msg")
        session_id = self._session.id
        info = UserMessage(id=message_id, session_id=session_id)
        parts: list[Part] = [
            TextPart(
                id=ascending_id("prt"),
                message_id=message_id,
                session_id=session_id,
                text=text,
                time=TimeWindow(),
            )
        ]
        parts.extend(replace(f, message_id=message_id, session_id=session_id) for f in files)
        record = MessageRecord(info=info, parts=tuple(parts))
        self._messages.insert(self._insertion_index(message_id), record)
        self._notify()
        return record

    # ─── Parts ────────────────────────────────────────────────────────

    def apply_part_updated(self, part: Part) -> bool:
        """Replace a part in place, or append it to its message."""
        if not self._owns(part.session_id):
            return False
        index = self._index_of(part.message_id)
        if index < 0:
            logger.debug("part %s for unknown message %s dropped", part.id, part.message_id)
            return False
        record = self._messages[index]
        parts = list(record.parts)
        for part_index, existing in enumerate(parts):
            if existing.id != part.id:
                continue
            if existing == part:
                return False
            if isinstance(existing, ToolPart) and isinstance(part, ToolPart):
                if not can_transition(existing.state, part.state):
                    # Server is authoritative; apply anyway.
                    logger.warning(
                        "tool part %s: out-of-order transition %s -> %s",
                        part.id,
                        existing.state.status,
                        part.state.status,
                    )
            parts[part_index] = part
            break
        else:
            parts.append(part)
        self._messages[index] = replace(record, parts=tuple(parts))
        self._notify()
        return True

    def apply_part_removed(self, session_id: str, message_id: str, part_id: str) -> bool:
        if not self._owns(session_id):
            return False
        index = self._index_of(message_id)
        if index < 0:
            return False
        record = self._messages[index]
        parts = tuple(p for p in record.parts if p.id != part_id)
        if len(parts) == len(record.parts):
            return False
        self._messages[index] = replace(record, parts=parts)
        self._notify()
        return True

    # ─── Session pointer ──────────────────────────────────────────────

    def apply_session_updated(self, session: Session) -> bool:
        """Adopt the server's view of the current session (revert pointer included)."""
        if not self._owns(session.id):
            return False
        if self._session == session:
            return False
        previous = self._session
        self._session = session
        if self.on_session_changed is not None:
            self.on_session_changed(previous, session)
        self._notify()
        return True

    # ─── Permissions ──────────────────────────────────────────────────

    @property
    def current_permission(self) -> Permission | None:
        """Head of the FIFO queue."""
        return self._permissions[0] if self._permissions else None

    @property
    def permissions(self) -> tuple[Permission, ...]:
        return tuple(self._permissions)

    def apply_permission_updated(self, permission: Permission) -> bool:
        """Enqueue a permission request (any session: child sessions ask too)."""
        for index, existing in enumerate(self._permissions):
            if existing.id == permission.id:
                if existing == permission:
                    return False
                self._permissions[index] = permission
                self._notify()
                return True
        self._permissions.append(permission)
        self._notify()
        return True

    def apply_permission_replied(self, permission_id: str) -> bool:
        remaining = [p for p in self._permissions if p.id != permission_id]
        if len(remaining) == len(self._permissions):
            return False
        self._permissions = remaining
        self._notify()
        return True

    # ─── Read-only accessors ──────────────────────────────────────────

    def snapshot(self) -> tuple[MessageRecord, ...]:
        """Immutable view of all messages in store order."""
        return tuple(self._messages)

    def get_message(self, message_id: str) -> MessageRecord | None:
        index = self._index_of(message_id)
        return self._messages[index] if index >= 0 else None

    def message_ids(self) -> list[str]:
        return [record.id for record in self._messages]

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def _notify(self) -> None:
        if self.on_changed is not None:
            self.on_changed()
