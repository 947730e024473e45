"""Event handling logic: pure functions applying server events to the store.

Each handler mutates the DomainStore and reports what the caller has to do
next: request a render, drop the part cache, and/or snap the viewport to
the tail. The app owns the scheduler and viewport, so handlers never touch
them.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from convo_tui.app.domain_store import DomainStore
from convo_tui.core.models import DecodeError
from convo_tui.event_types import (
    ConversationEvent,
    MessageRemovedEvent,
    MessageUpdatedEvent,
    PartRemovedEvent,
    PartUpdatedEvent,
    PermissionRepliedEvent,
    PermissionUpdatedEvent,
    SessionDeletedEvent,
    SessionUpdatedEvent,
    parse_event,
)
from convo_tui.tui.part_cache import PartCache

logger = logging.getLogger(__name__)

LogFn = Callable[[str, str], None]


@dataclass(frozen=True)
class HandlerOutcome:
    """What one applied event asks of the app."""

    changed: bool = False
    clear_cache: bool = False
    follow_tail: bool = False

    def merge(self, other: "HandlerOutcome") -> "HandlerOutcome":
        return HandlerOutcome(
            changed=self.changed or other.changed,
            clear_cache=self.clear_cache or other.clear_cache,
            follow_tail=self.follow_tail or other.follow_tail,
        )


UNCHANGED = HandlerOutcome()


def _default_log(level: str, message: str) -> None:
    logger.log(logging.getLevelName(level), message)


def handle_message_updated(event: MessageUpdatedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    return HandlerOutcome(changed=store.apply_message_updated(event.info))


def handle_message_removed(event: MessageRemovedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    log_fn("DEBUG", f"message removed: {event.message_id}")
    changed = store.apply_message_removed(event.session_id, event.message_id)
    return HandlerOutcome(changed=changed, clear_cache=changed)


def handle_part_updated(event: PartUpdatedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    return HandlerOutcome(changed=store.apply_part_updated(event.part))


def handle_part_removed(event: PartRemovedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    log_fn("DEBUG", f"part removed: {event.message_id}/{event.part_id}")
    # Removal can shift grouping for every sibling part.
    changed = store.apply_part_removed(event.session_id, event.message_id, event.part_id)
    return HandlerOutcome(changed=changed, clear_cache=changed)


def handle_session_updated(event: SessionUpdatedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    previous = store.session
    changed = store.apply_session_updated(event.info)
    revert_moved = changed and previous is not None and previous.revert != event.info.revert
    return HandlerOutcome(changed=changed, clear_cache=revert_moved)


def handle_session_deleted(event: SessionDeletedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    if event.session_id != store.session_id:
        return UNCHANGED
    log_fn("INFO", f"session deleted: {event.session_id}")
    store.clear()
    return HandlerOutcome(changed=True, clear_cache=True, follow_tail=True)


def handle_permission_updated(event: PermissionUpdatedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    log_fn("DEBUG", f"permission updated: {event.permission.id} (session {event.session_id})")
    changed = store.apply_permission_updated(event.permission)
    return HandlerOutcome(changed=changed, follow_tail=changed)


def handle_permission_replied(event: PermissionRepliedEvent, store: DomainStore, log_fn: LogFn) -> HandlerOutcome:
    changed = store.apply_permission_replied(event.permission_id)
    return HandlerOutcome(changed=changed, follow_tail=changed)


# [LAW:dataflow-not-control-flow] Event dispatch table keyed by event class
EVENT_HANDLERS: dict[type, Callable[[ConversationEvent, DomainStore, LogFn], HandlerOutcome]] = {
    MessageUpdatedEvent: handle_message_updated,
    MessageRemovedEvent: handle_message_removed,
    PartUpdatedEvent: handle_part_updated,
    PartRemovedEvent: handle_part_removed,
    SessionUpdatedEvent: handle_session_updated,
    SessionDeletedEvent: handle_session_deleted,
    PermissionUpdatedEvent: handle_permission_updated,
    PermissionRepliedEvent: handle_permission_replied,
}


def handle_event(
    event: ConversationEvent,
    store: DomainStore,
    cache: PartCache | None = None,
    log_fn: LogFn = _default_log,
) -> HandlerOutcome:
    """Apply one typed event. Clears `cache` when the event demands it."""
    handler = EVENT_HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"unhandled event type: {type(event).__name__}")
    outcome = handler(event, store, log_fn)
    if outcome.clear_cache and cache is not None:
        cache.clear()
    return outcome


def apply_raw_events(
    payloads: Iterable[dict],
    store: DomainStore,
    cache: PartCache | None = None,
    log_fn: LogFn = _default_log,
) -> HandlerOutcome:
    """Decode and apply a batch of bus payloads.

    A payload that fails to decode is logged and skipped; the rest of the
    batch still applies.
    """
    outcome = UNCHANGED
    for raw in payloads:
        try:
            event = parse_event(raw)
        except DecodeError as exc:
            log_fn("WARNING", f"dropped event {raw.get('type', '?') if isinstance(raw, dict) else '?'}: {exc}")
            continue
        if event is None:
            continue
        outcome = outcome.merge(handle_event(event, store, cache, log_fn))
    return outcome
