"""Conversation data model: messages, parts, tool states, sessions, permissions.

Every variant is a frozen dataclass; unions are plain type aliases. Raw JSON
payloads from the server are decoded here and nowhere else.

// [LAW:one-source-of-truth] The class IS the variant, no "type" string field.
// [LAW:single-enforcer] decode_* functions are the sole payload validation boundary.

This module is STABLE: safe for `from` imports everywhere.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Union


# ─── Errors ───────────────────────────────────────────────────────────────────


class DecodeError(ValueError):
    """A server payload could not be decoded into a typed value."""


class PayloadError(DecodeError):
    """Payload is structurally malformed (wrong shape / missing keys)."""


class UnknownPartError(DecodeError):
    """Part payload carries a type tag this client does not know."""

    def __init__(self, part_type: str, part_id: str = ""):
        self.part_type = part_type
        self.part_id = part_id
        super().__init__(f"unknown part type {part_type!r} (id={part_id or '?'})")


# ─── Immutable JSON values ────────────────────────────────────────────────────


class FrozenDict(Mapping):
    """Read-only mapping with a deterministic repr (sorted keys).

    Deterministic repr matters: cache fingerprints are derived from it.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping | None = None):
        self._data = dict(data or {})

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self) -> Iterator:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._data.items(), key=lambda kv: str(kv[0]))))

    def __eq__(self, other) -> bool:
        if isinstance(other, FrozenDict):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        items = ", ".join(
            f"{k!r}: {v!r}" for k, v in sorted(self._data.items(), key=lambda kv: str(kv[0]))
        )
        return "FrozenDict({" + items + "})"


EMPTY = FrozenDict()


def freeze(value):
    """Recursively convert decoded JSON into immutable values."""
    if isinstance(value, FrozenDict):
        return value
    if isinstance(value, Mapping):
        return FrozenDict({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise PayloadError(f"unsupported JSON value of type {type(value).__name__}")


def thaw(value):
    """Inverse of freeze(): plain dicts and lists, e.g. for json.dumps."""
    if isinstance(value, FrozenDict):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


# ─── Small value types ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimeWindow:
    """Start/end timestamps in epoch milliseconds. end == 0 means still open."""

    start: float = 0
    end: float = 0


@dataclass(frozen=True)
class CacheTokens:
    read: float = 0
    write: float = 0


@dataclass(frozen=True)
class TokenUsage:
    input: float = 0
    output: float = 0
    reasoning: float = 0
    cache: CacheTokens = field(default_factory=CacheTokens)


# ─── Message errors ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProviderAuthError:
    provider_id: str
    message: str


@dataclass(frozen=True)
class OutputLengthError:
    pass


@dataclass(frozen=True)
class AbortedError:
    message: str = ""


@dataclass(frozen=True)
class UnknownError:
    message: str


MessageError = Union[ProviderAuthError, OutputLengthError, AbortedError, UnknownError]

# [LAW:dataflow-not-control-flow] Display text per error kind as a table.
_ERROR_TEXT: dict[type, Callable[[MessageError], str]] = {
    ProviderAuthError: lambda err: err.message,
    OutputLengthError: lambda err: "Message output length exceeded",
    AbortedError: lambda err: "Request was aborted",
    UnknownError: lambda err: err.message,
}


def error_text(error: MessageError) -> str:
    """Fixed user-facing text for an assistant message error."""
    fn = _ERROR_TEXT.get(type(error))
    if fn is None:
        raise TypeError(f"unhandled message error variant: {type(error).__name__}")
    return fn(error)


# ─── Messages ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UserMessage:
    id: str
    session_id: str
    time_created: float = 0

    @property
    def role(self) -> str:
        return "user"


@dataclass(frozen=True)
class AssistantMessage:
    id: str
    session_id: str
    time_created: float = 0
    time_completed: float = 0
    model_id: str = ""
    provider_id: str = ""
    mode: str = ""
    cost: float = 0
    tokens: TokenUsage = field(default_factory=TokenUsage)
    error: MessageError | None = None
    summary: bool = False

    @property
    def role(self) -> str:
        return "assistant"


MessageInfo = Union[UserMessage, AssistantMessage]


# ─── Tool state ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToolPending:
    input: FrozenDict = EMPTY

    status = "pending"


@dataclass(frozen=True)
class ToolRunning:
    input: FrozenDict = EMPTY
    start: float = 0
    title: str = ""
    metadata: FrozenDict = EMPTY

    status = "running"


@dataclass(frozen=True)
class ToolCompleted:
    input: FrozenDict = EMPTY
    start: float = 0
    end: float = 0
    output: str = ""
    metadata: FrozenDict = EMPTY
    title: str = ""

    status = "completed"


@dataclass(frozen=True)
class ToolError:
    input: FrozenDict = EMPTY
    start: float = 0
    end: float = 0
    error: str = ""
    metadata: FrozenDict = EMPTY

    status = "error"


ToolState = Union[ToolPending, ToolRunning, ToolCompleted, ToolError]

_TOOL_STATE_RANK: dict[type, int] = {
    ToolPending: 0,
    ToolRunning: 1,
    ToolCompleted: 2,
    ToolError: 2,
}


def is_terminal(state: ToolState) -> bool:
    return isinstance(state, (ToolCompleted, ToolError))


def can_transition(old: ToolState, new: ToolState) -> bool:
    """Pending -> Running -> {Completed | Error}. Same-variant updates are allowed."""
    if type(old) is type(new):
        return True
    old_rank = _TOOL_STATE_RANK[type(old)]
    new_rank = _TOOL_STATE_RANK[type(new)]
    if is_terminal(old):
        return False
    return new_rank > old_rank


# ─── File / agent sources ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class SourceText:
    value: str = ""
    start: int = -1
    end: int = -1


@dataclass(frozen=True)
class FileSource:
    path: str
    text: SourceText = field(default_factory=SourceText)


@dataclass(frozen=True)
class SymbolSource:
    path: str
    name: str
    kind: int = 0
    text: SourceText = field(default_factory=SourceText)


PartSource = Union[FileSource, SymbolSource]


# ─── Parts ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TextPart:
    id: str
    message_id: str
    session_id: str
    text: str = ""
    time: TimeWindow = field(default_factory=TimeWindow)
    synthetic: bool = False

    @property
    def finished(self) -> bool:
        return self.time.end > 0


@dataclass(frozen=True)
class ReasoningPart:
    id: str
    message_id: str
    session_id: str
    text: str = ""
    time: TimeWindow = field(default_factory=TimeWindow)


@dataclass(frozen=True)
class FilePart:
    id: str
    message_id: str
    session_id: str
    mime: str = ""
    filename: str = ""
    url: str = ""
    source: PartSource | None = None


@dataclass(frozen=True)
class ToolPart:
    id: str
    message_id: str
    session_id: str
    call_id: str
    tool: str
    state: ToolState = field(default_factory=ToolPending)


@dataclass(frozen=True)
class StepStartPart:
    id: str
    message_id: str
    session_id: str


@dataclass(frozen=True)
class StepFinishPart:
    id: str
    message_id: str
    session_id: str
    cost: float = 0
    tokens: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class SnapshotPart:
    id: str
    message_id: str
    session_id: str
    snapshot: str = ""


@dataclass(frozen=True)
class PatchPart:
    id: str
    message_id: str
    session_id: str
    hash: str = ""
    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class SourceSpan:
    value: str = ""
    start: int = -1
    end: int = -1


@dataclass(frozen=True)
class AgentPart:
    id: str
    message_id: str
    session_id: str
    name: str = ""
    source: SourceSpan | None = None


Part = Union[
    TextPart,
    ReasoningPart,
    FilePart,
    ToolPart,
    StepStartPart,
    StepFinishPart,
    SnapshotPart,
    PatchPart,
    AgentPart,
]


# ─── Session / permission ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class RevertPointer:
    message_id: str
    part_id: str | None = None
    diff: str | None = None


@dataclass(frozen=True)
class Session:
    id: str
    title: str = ""
    parent_id: str = ""
    revert: RevertPointer | None = None


@dataclass(frozen=True)
class Permission:
    id: str
    session_id: str
    message_id: str
    call_id: str = ""
    type: str = ""
    title: str = ""
    metadata: FrozenDict = EMPTY


# ─── Decoding ─────────────────────────────────────────────────────────────────


def _require_mapping(raw, what: str) -> Mapping:
    if not isinstance(raw, Mapping):
        raise PayloadError(f"{what}: expected object, got {type(raw).__name__}")
    return raw


def _str(raw: Mapping, key: str, what: str, required: bool = True) -> str:
    value = raw.get(key)
    if value is None:
        if required:
            raise PayloadError(f"{what}: missing {key!r}")
        return ""
    if not isinstance(value, str):
        raise PayloadError(f"{what}: {key!r} must be a string")
    return value


def _num(raw: Mapping, key: str) -> float:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _obj(raw: Mapping, key: str) -> Mapping:
    value = raw.get(key)
    return value if isinstance(value, Mapping) else {}


def _decode_tokens(raw: Mapping) -> TokenUsage:
    cache = _obj(raw, "cache")
    return TokenUsage(
        input=_num(raw, "input"),
        output=_num(raw, "output"),
        reasoning=_num(raw, "reasoning"),
        cache=CacheTokens(read=_num(cache, "read"), write=_num(cache, "write")),
    )


def _decode_time(raw: Mapping) -> TimeWindow:
    return TimeWindow(start=_num(raw, "start"), end=_num(raw, "end"))


def decode_message_error(raw) -> MessageError | None:
    if not raw:
        return None
    raw = _require_mapping(raw, "message error")
    name = raw.get("name", "")
    data = _obj(raw, "data")
    message = data.get("message") if isinstance(data.get("message"), str) else ""
    if name == "ProviderAuthError":
        return ProviderAuthError(provider_id=str(data.get("providerID", "")), message=message)
    if name == "MessageOutputLengthError":
        return OutputLengthError()
    if name == "MessageAbortedError":
        return AbortedError(message=message)
    return UnknownError(message=message or str(name or "Unknown error"))


def decode_message_info(raw) -> MessageInfo:
    """Decode a message info payload (`role` discriminated)."""
    raw = _require_mapping(raw, "message")
    what = "message"
    msg_id = _str(raw, "id", what)
    session_id = _str(raw, "sessionID", what)
    time = _obj(raw, "time")
    role = raw.get("role")
    if role == "user":
        return UserMessage(id=msg_id, session_id=session_id, time_created=_num(time, "created"))
    if role == "assistant":
        return AssistantMessage(
            id=msg_id,
            session_id=session_id,
            time_created=_num(time, "created"),
            time_completed=_num(time, "completed"),
            model_id=_str(raw, "modelID", what, required=False),
            provider_id=_str(raw, "providerID", what, required=False),
            mode=_str(raw, "mode", what, required=False),
            cost=_num(raw, "cost"),
            tokens=_decode_tokens(_obj(raw, "tokens")),
            error=decode_message_error(raw.get("error")),
            summary=bool(raw.get("summary", False)),
        )
    raise PayloadError(f"message {msg_id}: unknown role {role!r}")


def _decode_source_text(raw: Mapping) -> SourceText:
    return SourceText(
        value=str(raw.get("value", "")),
        start=int(_num(raw, "start")) if "start" in raw else -1,
        end=int(_num(raw, "end")) if "end" in raw else -1,
    )


def _decode_file_source(raw) -> PartSource | None:
    if not raw:
        return None
    raw = _require_mapping(raw, "file source")
    kind = raw.get("type")
    text = _decode_source_text(_obj(raw, "text"))
    if kind == "file":
        return FileSource(path=str(raw.get("path", "")), text=text)
    if kind == "symbol":
        return SymbolSource(
            path=str(raw.get("path", "")),
            name=str(raw.get("name", "")),
            kind=int(_num(raw, "kind")),
            text=text,
        )
    raise PayloadError(f"unknown file source type {kind!r}")


def decode_tool_state(raw) -> ToolState:
    raw = _require_mapping(raw, "tool state")
    status = raw.get("status")
    tool_input = freeze(_obj(raw, "input"))
    metadata = freeze(_obj(raw, "metadata"))
    time = _obj(raw, "time")
    if status == "pending":
        return ToolPending(input=tool_input)
    if status == "running":
        return ToolRunning(
            input=tool_input,
            start=_num(time, "start"),
            title=str(raw.get("title") or ""),
            metadata=metadata,
        )
    if status == "completed":
        return ToolCompleted(
            input=tool_input,
            start=_num(time, "start"),
            end=_num(time, "end"),
            output=str(raw.get("output") or ""),
            metadata=metadata,
            title=str(raw.get("title") or ""),
        )
    if status == "error":
        return ToolError(
            input=tool_input,
            start=_num(time, "start"),
            end=_num(time, "end"),
            error=str(raw.get("error") or ""),
            metadata=metadata,
        )
    raise PayloadError(f"unknown tool status {status!r}")


def _decode_text(raw: Mapping, ids: dict) -> TextPart:
    return TextPart(
        **ids,
        text=str(raw.get("text") or ""),
        time=_decode_time(_obj(raw, "time")),
        synthetic=bool(raw.get("synthetic", False)),
    )


def _decode_reasoning(raw: Mapping, ids: dict) -> ReasoningPart:
    return ReasoningPart(**ids, text=str(raw.get("text") or ""), time=_decode_time(_obj(raw, "time")))


def _decode_file(raw: Mapping, ids: dict) -> FilePart:
    return FilePart(
        **ids,
        mime=str(raw.get("mime") or ""),
        filename=str(raw.get("filename") or ""),
        url=str(raw.get("url") or ""),
        source=_decode_file_source(raw.get("source")),
    )


def _decode_tool(raw: Mapping, ids: dict) -> ToolPart:
    if "state" not in raw:
        raise PayloadError(f"tool part {ids['id']}: missing state")
    return ToolPart(
        **ids,
        call_id=str(raw.get("callID") or ""),
        tool=_str(raw, "tool", "tool part"),
        state=decode_tool_state(raw["state"]),
    )


def _decode_step_start(raw: Mapping, ids: dict) -> StepStartPart:
    return StepStartPart(**ids)


def _decode_step_finish(raw: Mapping, ids: dict) -> StepFinishPart:
    return StepFinishPart(**ids, cost=_num(raw, "cost"), tokens=_decode_tokens(_obj(raw, "tokens")))


def _decode_snapshot(raw: Mapping, ids: dict) -> SnapshotPart:
    return SnapshotPart(**ids, snapshot=str(raw.get("snapshot") or ""))


def _decode_patch(raw: Mapping, ids: dict) -> PatchPart:
    files = raw.get("files") or ()
    return PatchPart(**ids, hash=str(raw.get("hash") or ""), files=tuple(str(f) for f in files))


def _decode_agent(raw: Mapping, ids: dict) -> AgentPart:
    src = raw.get("source")
    span = None
    if isinstance(src, Mapping):
        span = SourceSpan(
            value=str(src.get("value", "")),
            start=int(_num(src, "start")) if "start" in src else -1,
            end=int(_num(src, "end")) if "end" in src else -1,
        )
    return AgentPart(**ids, name=str(raw.get("name") or ""), source=span)


# [LAW:dataflow-not-control-flow] Wire tag → decoder table.
_PART_DECODERS: dict[str, Callable[[Mapping, dict], Part]] = {
    "text": _decode_text,
    "reasoning": _decode_reasoning,
    "file": _decode_file,
    "tool": _decode_tool,
    "step-start": _decode_step_start,
    "step-finish": _decode_step_finish,
    "snapshot": _decode_snapshot,
    "patch": _decode_patch,
    "agent": _decode_agent,
}


def decode_part(raw) -> Part:
    """Decode one part payload. Raises UnknownPartError / PayloadError."""
    raw = _require_mapping(raw, "part")
    ids = {
        "id": _str(raw, "id", "part"),
        "message_id": _str(raw, "messageID", "part"),
        "session_id": _str(raw, "sessionID", "part"),
    }
    part_type = raw.get("type")
    decoder = _PART_DECODERS.get(part_type) if isinstance(part_type, str) else None
    if decoder is None:
        raise UnknownPartError(str(part_type), ids["id"])
    return decoder(raw, ids)


def decode_session(raw) -> Session:
    raw = _require_mapping(raw, "session")
    revert_raw = raw.get("revert")
    revert = None
    if isinstance(revert_raw, Mapping) and revert_raw.get("messageID"):
        revert = RevertPointer(
            message_id=str(revert_raw["messageID"]),
            part_id=revert_raw.get("partID") or None,
            diff=revert_raw.get("diff") or None,
        )
    return Session(
        id=_str(raw, "id", "session"),
        title=_str(raw, "title", "session", required=False),
        parent_id=_str(raw, "parentID", "session", required=False),
        revert=revert,
    )


def decode_permission(raw) -> Permission:
    raw = _require_mapping(raw, "permission")
    return Permission(
        id=_str(raw, "id", "permission"),
        session_id=_str(raw, "sessionID", "permission"),
        message_id=_str(raw, "messageID", "permission"),
        call_id=_str(raw, "callID", "permission", required=False),
        type=_str(raw, "type", "permission", required=False),
        title=_str(raw, "title", "permission", required=False),
        metadata=freeze(_obj(raw, "metadata")),
    )
