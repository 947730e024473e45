"""Tests for DomainStore ordering, idempotence and scoping."""

import time

import pytest

from convo_tui.app.domain_store import DomainStore
from convo_tui.core.models import ToolCompleted, ToolRunning
from tests.harness import builders as b


class TestMessageOrdering:
    def test_out_of_order_arrivals_sort_by_id(self, store):
        for message_id in ("msg_003", "msg_001", "msg_002"):
            store.apply_message_updated(b.user(message_id))
        assert store.message_ids() == ["msg_001", "msg_002", "msg_003"]

    def test_update_keeps_parts(self, store):
        store.apply_message_updated(b.assistant("msg_002", completed=False))
        store.apply_part_updated(b.text("prt_1", "msg_002", "hello"))
        store.apply_message_updated(b.assistant("msg_002", completed=True))
        record = store.get_message("msg_002")
        assert record.info.time_completed > 0
        assert [p.id for p in record.parts] == ["prt_1"]

    def test_set_session_sorts_history(self):
        store = DomainStore()
        history = [b.record(b.user("msg_002")), b.record(b.user("msg_001"))]
        store.set_session(b.make_session(), history)
        assert store.message_ids() == ["msg_001", "msg_002"]


class TestIdempotence:
    def test_reapplying_same_events_is_a_noop(self, store):
        changes = []
        store.on_changed = lambda: changes.append(1)
        info = b.assistant("msg_002")
        part = b.text("prt_1", "msg_002", "hello")

        assert store.apply_message_updated(info) is True
        assert store.apply_part_updated(part) is True
        before = store.snapshot()

        assert store.apply_message_updated(info) is False
        assert store.apply_part_updated(part) is False
        assert store.snapshot() == before
        assert len(changes) == 2


class TestParts:
    def test_replace_in_place_and_append(self, store):
        store.apply_message_updated(b.assistant("msg_002"))
        store.apply_part_updated(b.text("prt_1", "msg_002", "hel", finished=False))
        store.apply_part_updated(b.tool("prt_2", "msg_002"))
        store.apply_part_updated(b.text("prt_1", "msg_002", "hello"))
        parts = store.get_message("msg_002").parts
        assert [p.id for p in parts] == ["prt_1", "prt_2"]
        assert parts[0].text == "hello"

    def test_remove_part(self, store):
        store.apply_message_updated(b.assistant("msg_002"))
        store.apply_part_updated(b.text("prt_1", "msg_002", "a"))
        store.apply_part_updated(b.text("prt_2", "msg_002", "b"))
        assert store.apply_part_removed(b.SESSION_ID, "msg_002", "prt_1") is True
        assert [p.id for p in store.get_message("msg_002").parts] == ["prt_2"]
        assert store.apply_part_removed(b.SESSION_ID, "msg_002", "prt_1") is False

    def test_part_for_unknown_message_is_dropped(self, store):
        assert store.apply_part_updated(b.text("prt_1", "msg_404", "lost")) is False
        assert store.message_count == 0

    def test_out_of_order_tool_transition_still_applies(self, store, caplog):
        store.apply_message_updated(b.assistant("msg_002"))
        store.apply_part_updated(b.tool("prt_1", "msg_002", state=b.completed()))
        with caplog.at_level("WARNING"):
            changed = store.apply_part_updated(b.tool("prt_1", "msg_002", state=b.running()))
        assert changed is True
        assert isinstance(store.get_message("msg_002").parts[0].state, ToolRunning)
        assert "out-of-order" in caplog.text

    def test_forward_tool_transition(self, store):
        store.apply_message_updated(b.assistant("msg_002"))
        store.apply_part_updated(b.tool("prt_1", "msg_002", state=b.running()))
        store.apply_part_updated(b.tool("prt_1", "msg_002", state=b.completed()))
        assert isinstance(store.get_message("msg_002").parts[0].state, ToolCompleted)


class TestSessionScoping:
    def test_foreign_session_events_are_ignored(self, store):
        assert store.apply_message_updated(b.user("msg_001", session_id="ses_other")) is False
        assert store.apply_message_removed("ses_other", "msg_001") is False
        assert store.message_count == 0

    def test_no_session_ignores_everything(self):
        store = DomainStore()
        assert store.apply_message_updated(b.user("msg_001")) is False

    def test_session_update_for_other_session_ignored(self, store):
        assert store.apply_session_updated(b.make_session("msg_001", session_id="ses_other")) is False
        assert store.session.revert is None

    def test_session_update_reports_previous_and_new(self, store):
        seen = []
        store.on_session_changed = lambda prev, new: seen.append((prev.revert, new.revert))
        assert store.apply_session_updated(b.make_session("msg_003")) is True
        assert seen[0][0] is None
        assert seen[0][1].message_id == "msg_003"
        assert store.apply_session_updated(b.make_session("msg_003")) is False


    def test_clear_forgets_session_and_messages(self, store):
        store.apply_message_updated(b.user("msg_001"))
        seen = []
        store.on_session_changed = lambda prev, new: seen.append((prev.id, new))
        store.clear()
        assert seen == [(b.SESSION_ID, None)]
        assert store.session is None
        assert store.message_count == 0
        assert store.apply_message_updated(b.user("msg_002")) is False

    def test_clear_without_session_is_a_no_op(self):
        store = DomainStore()
        store.on_session_changed = lambda prev, new: pytest.fail("no session to clear")
        store.clear()

class TestPermissions:
    def test_fifo_head_and_reply(self, store):
        store.apply_permission_updated(b.permission("per_1", "msg_002", "call_a"))
        store.apply_permission_updated(b.permission("per_2", "msg_002", "call_b"))
        assert store.current_permission.id == "per_1"
        assert store.apply_permission_replied("per_1") is True
        assert store.current_permission.id == "per_2"
        assert store.apply_permission_replied("per_unknown") is False

    def test_child_session_permission_accepted(self, store):
        assert store.apply_permission_updated(b.permission("per_1", "msg_9", "call_x", session_id="ses_child")) is True
        assert store.current_permission.session_id == "ses_child"

    def test_duplicate_permission_is_idempotent(self, store):
        perm = b.permission("per_1", "msg_002", "call_a")
        assert store.apply_permission_updated(perm) is True
        assert store.apply_permission_updated(perm) is False
        assert len(store.permissions) == 1


class TestOptimisticMessage:
    def test_inserted_at_tail_with_text_part(self, store):
        store.apply_message_updated(b.user("msg_001"))
        record = store.add_optimistic_user_message("what now?")
        assert store.message_ids()[-1] == record.id
        assert record.parts[0].text == "what now?"
        assert record.parts[0].message_id == record.id

    def test_server_echo_replaces_info_and_keeps_parts(self, store):
        record = store.add_optimistic_user_message("hi")
        echoed = b.user(record.id)
        assert store.apply_message_updated(echoed) is True
        assert store.message_count == 1
        assert store.get_message(record.id).parts == record.parts

    def test_sorts_after_server_history(self, store):
        now_ms = int(time.time() * 1000)
        for ms in (now_ms - 5000, now_ms - 1000):
            store.apply_message_updated(b.user(b.server_id("msg", ms)))
        record = store.add_optimistic_user_message("and then?")
        assert len(record.id) == len(b.server_id("msg", now_ms))
        assert store.message_ids()[-1] == record.id

    def test_requires_session(self):
        with pytest.raises(RuntimeError):
            DomainStore().add_optimistic_user_message("hi")
