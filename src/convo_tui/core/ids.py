"""Ascending identifiers for locally created records.

Ids use the server's layout, `<prefix>_<12 hex time+counter><14 base62 random>`,
so local and server ids of one session sort together in creation order.
The time component is monotonic within a process even when the wall clock
stalls, so two ids minted in the same millisecond still compare ascending.
"""

import secrets
import threading
import time

_BASE62 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
_TIME_MASK = (1 << 48) - 1

_lock = threading.Lock()
_last_timestamp = 0
_counter = 0


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_BASE62) for _ in range(length))


def ascending_id(prefix: str, now_ms: int | None = None) -> str:
    """Return a new id for `prefix` that sorts after every id minted before it."""
    global _last_timestamp, _counter
    current = int(time.time() * 1000) if now_ms is None else now_ms
    with _lock:
        current = max(current, _last_timestamp)
        if current != _last_timestamp:
            _last_timestamp = current
            _counter = 0
        _counter += 1
        # 12 bits of per-millisecond counter packed under the timestamp,
        # truncated to the six bytes the server keeps.
        value = (current * 0x1000 + _counter) & _TIME_MASK
    return f"{prefix}_{value:012x}{_random_suffix(14)}"
