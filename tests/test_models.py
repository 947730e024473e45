"""Tests for model decoding and tool-state rules."""

import pytest

from convo_tui.core.models import (
    AbortedError,
    AssistantMessage,
    FrozenDict,
    OutputLengthError,
    PayloadError,
    ProviderAuthError,
    TextPart,
    ToolCompleted,
    ToolError,
    ToolPending,
    ToolRunning,
    UnknownError,
    UnknownPartError,
    UserMessage,
    can_transition,
    decode_message_info,
    decode_part,
    decode_session,
    error_text,
    freeze,
    thaw,
)


class TestDecodePart:
    def test_text_part(self):
        part = decode_part(
            {"id": "prt_1", "messageID": "msg_1", "sessionID": "ses", "type": "text", "text": "hi", "time": {"start": 5}}
        )
        assert isinstance(part, TextPart)
        assert part.text == "hi"
        assert part.time.start == 5
        assert part.time.end == 0

    def test_tool_part_with_completed_state(self):
        part = decode_part(
            {
                "id": "prt_2",
                "messageID": "msg_1",
                "sessionID": "ses",
                "type": "tool",
                "callID": "call_1",
                "tool": "read",
                "state": {
                    "status": "completed",
                    "input": {"filePath": "/tmp/a.py"},
                    "output": "contents",
                    "time": {"start": 1, "end": 2},
                },
            }
        )
        assert isinstance(part.state, ToolCompleted)
        assert part.state.input["filePath"] == "/tmp/a.py"
        assert part.call_id == "call_1"

    def test_unknown_type_raises_unknown_part_error(self):
        with pytest.raises(UnknownPartError) as excinfo:
            decode_part({"id": "prt_3", "messageID": "msg_1", "sessionID": "ses", "type": "hologram"})
        assert excinfo.value.part_type == "hologram"
        assert excinfo.value.part_id == "prt_3"

    def test_missing_ids_is_payload_error(self):
        with pytest.raises(PayloadError):
            decode_part({"type": "text", "text": "orphan"})

    def test_tool_part_without_state_is_payload_error(self):
        with pytest.raises(PayloadError):
            decode_part({"id": "p", "messageID": "m", "sessionID": "s", "type": "tool", "tool": "bash"})


class TestDecodeMessage:
    def test_user_and_assistant_roles(self):
        user = decode_message_info({"id": "msg_1", "sessionID": "ses", "role": "user", "time": {"created": 10}})
        assistant = decode_message_info(
            {
                "id": "msg_2",
                "sessionID": "ses",
                "role": "assistant",
                "modelID": "m",
                "time": {"created": 11, "completed": 12},
                "error": {"name": "MessageAbortedError", "data": {"message": "stop"}},
            }
        )
        assert isinstance(user, UserMessage)
        assert isinstance(assistant, AssistantMessage)
        assert assistant.time_completed == 12
        assert isinstance(assistant.error, AbortedError)

    def test_unknown_role_is_payload_error(self):
        with pytest.raises(PayloadError):
            decode_message_info({"id": "msg_1", "sessionID": "ses", "role": "system"})


def test_error_text_table():
    assert error_text(ProviderAuthError(provider_id="x", message="bad key")) == "bad key"
    assert error_text(OutputLengthError()) == "Message output length exceeded"
    assert error_text(AbortedError()) == "Request was aborted"
    assert error_text(UnknownError(message="weird")) == "weird"


def test_decode_session_revert_pointer():
    session = decode_session({"id": "ses", "revert": {"messageID": "msg_3", "diff": "+++ b/a\n+x\n"}})
    assert session.revert.message_id == "msg_3"
    assert session.revert.part_id is None
    assert decode_session({"id": "ses"}).revert is None


@pytest.mark.parametrize(
    "old, new, allowed",
    [
        (ToolPending(), ToolRunning(), True),
        (ToolRunning(), ToolCompleted(), True),
        (ToolPending(), ToolError(), True),
        (ToolRunning(), ToolRunning(title="again"), True),
        (ToolCompleted(), ToolRunning(), False),
        (ToolError(), ToolCompleted(), False),
        (ToolRunning(), ToolPending(), False),
    ],
)
def test_tool_state_transitions(old, new, allowed):
    assert can_transition(old, new) is allowed


def test_frozen_dict_repr_is_key_order_independent():
    a = freeze({"b": 1, "a": [1, {"z": 2, "y": 3}]})
    b = freeze({"a": [1, {"y": 3, "z": 2}], "b": 1})
    assert repr(a) == repr(b)
    assert a == b
    assert hash(a) == hash(b)
    assert thaw(a) == {"b": 1, "a": [1, {"z": 2, "y": 3}]}
    assert isinstance(a, FrozenDict)
