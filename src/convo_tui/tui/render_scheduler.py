"""Render scheduler: single-flight, coalescing render requests.

State is two flags. A request while idle starts a pass; a request while a
pass is in flight only marks the view dirty. When the pass completes, a
dirty view gets exactly one trailing pass. Any number of requests during
one pass therefore collapse into one more pass: a depth-1 debounce, not a
queue.

The scheduler never runs anything itself; the app asks it whether to
start a pass and starts the worker.

// [LAW:single-enforcer] Only the app calls request()/complete(), on its thread.
"""

from dataclasses import dataclass
from enum import Enum

# Shimmer animation period.
TICK_INTERVAL = 0.09


class SchedulerState(Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    RENDERING_DIRTY = "rendering_dirty"


# [LAW:dataflow-not-control-flow] (state, event) → (next state, start a pass?)
_TRANSITIONS: dict[tuple[SchedulerState, str], tuple[SchedulerState, bool]] = {
    (SchedulerState.IDLE, "request"): (SchedulerState.RENDERING, True),
    (SchedulerState.RENDERING, "request"): (SchedulerState.RENDERING_DIRTY, False),
    (SchedulerState.RENDERING_DIRTY, "request"): (SchedulerState.RENDERING_DIRTY, False),
    (SchedulerState.RENDERING, "complete"): (SchedulerState.IDLE, False),
    (SchedulerState.RENDERING_DIRTY, "complete"): (SchedulerState.RENDERING, True),
    # Stray completion (no pass in flight) is ignored.
    (SchedulerState.IDLE, "complete"): (SchedulerState.IDLE, False),
}


@dataclass
class RenderScheduler:
    state: SchedulerState = SchedulerState.IDLE
    passes_started: int = 0
    requests_coalesced: int = 0

    @property
    def rendering(self) -> bool:
        return self.state is not SchedulerState.IDLE

    @property
    def dirty(self) -> bool:
        return self.state is SchedulerState.RENDERING_DIRTY

    def _step(self, event: str) -> bool:
        self.state, start = _TRANSITIONS[(self.state, event)]
        if start:
            self.passes_started += 1
        return start

    def request(self) -> bool:
        """Something changed. True when the caller must start a pass now."""
        start = self._step("request")
        if not start:
            self.requests_coalesced += 1
        return start

    def complete(self) -> bool:
        """The in-flight pass finished. True when one trailing pass must start."""
        return self._step("complete")


class AnimationTicker:
    """Decides whether the shimmer tick chain keeps running.

    The app arms a tick after each applied pass while there is in-flight
    work; each tick re-checks at its start and stops the chain when idle.
    """

    def __init__(self):
        self.armed = False
        self.frame = 0

    def arm(self, animating: bool) -> bool:
        """After a pass. True when the caller must schedule a tick."""
        if not animating or self.armed:
            return False
        self.armed = True
        return True

    def tick(self, animating: bool) -> bool:
        """At tick start. True when the tick should advance and re-render."""
        self.armed = False
        if not animating:
            return False
        self.frame += 1
        return True
