"""App lifecycle management for Textual in-process tests.

Creates ConvoApp instances wired for testing and manages run_test() lifecycle.
State isolation: every call creates a fresh queue, store and app.
"""

import queue
from contextlib import asynccontextmanager
from typing import AsyncIterator

from textual.pilot import Pilot

from convo_tui.app.domain_store import DomainStore
from convo_tui.app.session_service import SessionServiceError
from convo_tui.core.models import RevertPointer, Session
from convo_tui.tui.app import ConvoApp


class FakeSessionService:
    """In-memory SessionService. Records calls; optionally fails them."""

    def __init__(self, store: DomainStore | None = None, fail: bool = False):
        self.store = store
        self.fail = fail
        self.calls: list[tuple] = []

    def revert(self, session_id, message_id, part_id=None):
        self.calls.append(("revert", session_id, message_id))
        if self.fail:
            raise SessionServiceError("boom")
        session = self.store.session
        return Session(id=session.id, title=session.title, revert=RevertPointer(message_id=message_id))

    def unrevert(self, session_id):
        self.calls.append(("unrevert", session_id))
        if self.fail:
            raise SessionServiceError("boom")
        session = self.store.session
        return Session(id=session.id, title=session.title, revert=None)

    def prompt(self, session_id, message_id, text):
        self.calls.append(("prompt", session_id, message_id, text))
        if self.fail:
            raise SessionServiceError("boom")

    def fetch_message(self, session_id, message_id):
        self.calls.append(("fetch", session_id, message_id))
        raise SessionServiceError(f"no message {message_id}")


@asynccontextmanager
async def run_app(
    *,
    store: DomainStore | None = None,
    service=None,
    size: tuple[int, int] = (100, 30),
) -> AsyncIterator[tuple[Pilot, ConvoApp]]:
    """Create and run a ConvoApp in test mode.

    Yields (pilot, app). No server: events are injected by putting bus
    payloads on app.event_queue.
    """
    # [LAW:no-shared-mutable-globals] Fresh state for every test
    store = store if store is not None else DomainStore()
    app = ConvoApp(
        service=service,
        store=store,
        event_queue=queue.Queue(),
        persist_settings=False,
    )
    async with app.run_test(size=size) as pilot:
        await pilot.pause()
        yield pilot, app


async def settle_render(pilot: Pilot, app: ConvoApp, attempts: int = 60) -> None:
    """Wait until no render pass is in flight and the buffer is populated."""
    for _ in range(attempts):
        await pilot.pause(0.02)
        if not app.scheduler.rendering and app.viewport.line_count > 0:
            return


async def wait_until(pilot: Pilot, condition, attempts: int = 100) -> bool:
    """Pump the app until `condition()` holds. False if it never does."""
    for _ in range(attempts):
        if condition():
            return True
        await pilot.pause(0.02)
    return condition()
