"""Test harness for convo-tui.

Re-exports the public API for convenient imports:
    from tests.harness import run_app, wait_until, strips_to_text, ...
"""

from tests.harness.app_runner import FakeSessionService, run_app, settle_render, wait_until
from tests.harness.content import result_text, strip_text, strips_to_text

__all__ = [
    "FakeSessionService",
    "run_app",
    "settle_render",
    "wait_until",
    "result_text",
    "strip_text",
    "strips_to_text",
]
