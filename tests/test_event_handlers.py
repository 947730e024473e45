"""Tests for applying bus payloads to the store."""

from convo_tui.tui import event_handlers
from convo_tui.tui.rendering import RenderedBlock
from tests.harness import builders as b


def _logger():
    entries = []
    return entries, lambda level, message: entries.append((level, message))


def test_stream_builds_conversation(store, cache):
    payloads = [
        b.message_updated("msg_001", role="user"),
        b.part_updated(b.text_part("prt_001", "msg_001", "hi", end=1)),
        b.message_updated("msg_002"),
        b.part_updated(b.text_part("prt_002", "msg_002", "hel")),
        b.part_updated(b.text_part("prt_002", "msg_002", "hello", end=2)),
    ]
    outcome = event_handlers.apply_raw_events(payloads, store, cache)
    assert outcome.changed
    assert store.message_ids() == ["msg_001", "msg_002"]
    assert store.get_message("msg_002").parts[0].text == "hello"


def test_duplicate_batch_reports_unchanged(store, cache):
    payloads = [b.message_updated("msg_002"), b.part_updated(b.text_part("prt_1", "msg_002", "x"))]
    event_handlers.apply_raw_events(payloads, store, cache)
    again = event_handlers.apply_raw_events(payloads, store, cache)
    assert again.changed is False


def test_bad_payload_is_logged_and_skipped(store, cache):
    entries, log_fn = _logger()
    payloads = [
        b.message_updated("msg_002"),
        b.part_updated({"id": "p", "messageID": "msg_002", "sessionID": b.SESSION_ID, "type": "hologram"}),
        b.part_updated(b.text_part("prt_2", "msg_002", "still here")),
    ]
    event_handlers.apply_raw_events(payloads, store, cache, log_fn)
    assert [p.id for p in store.get_message("msg_002").parts] == ["prt_2"]
    assert entries[0][0] == "WARNING"
    assert "hologram" in entries[0][1]


def test_removal_clears_cache(store, cache):
    event_handlers.apply_raw_events(
        [b.message_updated("msg_002"), b.part_updated(b.text_part("prt_1", "msg_002", "x"))], store, cache
    )
    cache.set("key", RenderedBlock(strips=()))
    generation = cache.generation
    outcome = event_handlers.apply_raw_events(
        [{"type": "message.part.removed", "properties": {"sessionID": b.SESSION_ID, "messageID": "msg_002", "partID": "prt_1"}}],
        store,
        cache,
    )
    assert outcome.clear_cache
    assert len(cache) == 0
    assert cache.generation == generation + 1


def test_revert_pointer_change_clears_cache(store, cache):
    cache.set("key", RenderedBlock(strips=()))
    outcome = event_handlers.apply_raw_events([b.session_updated("msg_003")], store, cache)
    assert outcome.clear_cache
    assert store.session.revert.message_id == "msg_003"
    assert "key" not in cache



def test_deleting_the_current_session_clears_store_and_cache(store, cache):
    event_handlers.apply_raw_events([b.message_updated("msg_002")], store, cache)
    cache.set("key", RenderedBlock(strips=()))
    entries, log_fn = _logger()
    outcome = event_handlers.apply_raw_events([b.session_deleted()], store, cache, log_fn)
    assert outcome == event_handlers.HandlerOutcome(changed=True, clear_cache=True, follow_tail=True)
    assert store.session is None
    assert store.message_count == 0
    assert len(cache) == 0
    assert entries == [("INFO", f"session deleted: {b.SESSION_ID}")]


def test_deleting_another_session_changes_nothing(store, cache):
    event_handlers.apply_raw_events([b.message_updated("msg_002")], store, cache)
    cache.set("key", RenderedBlock(strips=()))
    outcome = event_handlers.apply_raw_events([b.session_deleted("ses_other")], store, cache)
    assert outcome.changed is False
    assert store.message_ids() == ["msg_002"]
    assert "key" in cache

def test_permission_events_follow_tail(store, cache):
    outcome = event_handlers.apply_raw_events([b.permission_updated("per_1", "msg_002", "call_1")], store, cache)
    assert outcome.follow_tail
    assert store.current_permission.id == "per_1"
    outcome = event_handlers.apply_raw_events([b.permission_replied("per_1")], store, cache)
    assert outcome.follow_tail
    assert store.current_permission is None


def test_foreign_session_payloads_change_nothing(store, cache):
    outcome = event_handlers.apply_raw_events(
        [
            b.message_updated("msg_001", role="user", session_id="ses_other"),
            b.part_updated(b.text_part("prt_1", "msg_001", "x", session_id="ses_other")),
        ],
        store,
        cache,
    )
    assert outcome.changed is False
    assert store.message_count == 0


def test_unconsumed_event_types_are_skipped(store, cache):
    outcome = event_handlers.apply_raw_events([{"type": "file.watcher.updated", "properties": {}}], store, cache)
    assert outcome == event_handlers.UNCHANGED
