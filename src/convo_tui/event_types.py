"""Typed inbound events for the conversation engine.

// [LAW:one-source-of-truth] The class IS the type, no event_type string field.
// [LAW:single-enforcer] parse_event is the sole event validation boundary.

Payloads arrive already JSON-decoded in the server's bus shape:
``{"type": "message.part.updated", "properties": {...}}``.

This module is STABLE: safe for `from` imports everywhere.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from convo_tui.core.models import (
    MessageInfo,
    Part,
    Permission,
    PayloadError,
    Session,
    decode_message_info,
    decode_part,
    decode_permission,
    decode_session,
)


# ─── Type alias for JSON-parsed dicts ─────────────────────────────────────────

JsonDict = dict[str, object]


# ─── Event hierarchy ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConversationEvent:
    """Base class for all inbound conversation events."""

    @property
    def session_id(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class MessageUpdatedEvent(ConversationEvent):
    """message.updated: new or changed message info (parts untouched)."""

    info: MessageInfo

    @property
    def session_id(self) -> str:
        return self.info.session_id


@dataclass(frozen=True)
class MessageRemovedEvent(ConversationEvent):
    """message.removed"""

    removed_session_id: str
    message_id: str

    @property
    def session_id(self) -> str:
        return self.removed_session_id


@dataclass(frozen=True)
class PartUpdatedEvent(ConversationEvent):
    """message.part.updated: new or changed part."""

    part: Part

    @property
    def session_id(self) -> str:
        return self.part.session_id


@dataclass(frozen=True)
class PartRemovedEvent(ConversationEvent):
    """message.part.removed"""

    removed_session_id: str
    message_id: str
    part_id: str

    @property
    def session_id(self) -> str:
        return self.removed_session_id


@dataclass(frozen=True)
class SessionUpdatedEvent(ConversationEvent):
    """session.updated: carries the revert pointer."""

    info: Session

    @property
    def session_id(self) -> str:
        return self.info.id


@dataclass(frozen=True)
class SessionDeletedEvent(ConversationEvent):
    """session.deleted"""

    info: Session

    @property
    def session_id(self) -> str:
        return self.info.id


@dataclass(frozen=True)
class PermissionUpdatedEvent(ConversationEvent):
    """permission.updated: a tool call awaits approval."""

    permission: Permission

    @property
    def session_id(self) -> str:
        return self.permission.session_id


@dataclass(frozen=True)
class PermissionRepliedEvent(ConversationEvent):
    """permission.replied"""

    replied_session_id: str
    permission_id: str

    @property
    def session_id(self) -> str:
        return self.replied_session_id


# ─── Parsing ──────────────────────────────────────────────────────────────────


def _props(raw: Mapping) -> Mapping:
    props = raw.get("properties", {})
    if not isinstance(props, Mapping):
        raise PayloadError("event properties must be an object")
    return props


def _id(props: Mapping, key: str) -> str:
    value = props.get(key)
    if not isinstance(value, str) or not value:
        raise PayloadError(f"event missing {key!r}")
    return value


def _parse_message_updated(props: Mapping) -> MessageUpdatedEvent:
    return MessageUpdatedEvent(info=decode_message_info(props.get("info")))


def _parse_message_removed(props: Mapping) -> MessageRemovedEvent:
    return MessageRemovedEvent(
        removed_session_id=_id(props, "sessionID"),
        message_id=_id(props, "messageID"),
    )


def _parse_part_updated(props: Mapping) -> PartUpdatedEvent:
    return PartUpdatedEvent(part=decode_part(props.get("part")))


def _parse_part_removed(props: Mapping) -> PartRemovedEvent:
    return PartRemovedEvent(
        removed_session_id=_id(props, "sessionID"),
        message_id=_id(props, "messageID"),
        part_id=_id(props, "partID"),
    )


def _parse_session_updated(props: Mapping) -> SessionUpdatedEvent:
    return SessionUpdatedEvent(info=decode_session(props.get("info")))


def _parse_session_deleted(props: Mapping) -> SessionDeletedEvent:
    return SessionDeletedEvent(info=decode_session(props.get("info")))


def _parse_permission_updated(props: Mapping) -> PermissionUpdatedEvent:
    return PermissionUpdatedEvent(permission=decode_permission(props))


def _parse_permission_replied(props: Mapping) -> PermissionRepliedEvent:
    return PermissionRepliedEvent(
        replied_session_id=_id(props, "sessionID"),
        permission_id=_id(props, "permissionID"),
    )


# [LAW:dataflow-not-control-flow] Dispatch table for event parsing
_EVENT_PARSERS: dict[str, Callable[[Mapping], ConversationEvent]] = {
    "message.updated": _parse_message_updated,
    "message.removed": _parse_message_removed,
    "message.part.updated": _parse_part_updated,
    "message.part.removed": _parse_part_removed,
    "session.updated": _parse_session_updated,
    "session.deleted": _parse_session_deleted,
    "permission.updated": _parse_permission_updated,
    "permission.replied": _parse_permission_replied,
}


def parse_event(raw: JsonDict) -> ConversationEvent | None:
    """Parse one bus payload into a typed event.

    Returns None for event types this engine does not consume.

    Raises:
        DecodeError: payload (or the part/message inside it) is malformed or
            carries an unknown part variant.
    """
    if not isinstance(raw, Mapping):
        raise PayloadError(f"event: expected object, got {type(raw).__name__}")
    parser = _EVENT_PARSERS.get(raw.get("type"))
    if parser is None:
        return None
    return parser(_props(raw))
