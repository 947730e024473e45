"""Part cache: memoized RenderedBlocks keyed by a content/state fingerprint.

Invalidation is coarse: clear() drops everything (width or theme change,
session switch, part/message removal, revert/unrevert). There is no
per-entry eviction; the cache lives as long as the session view.

Render passes run off the app thread and must not write here. A pass
reads a frozen CacheView and returns its new entries; the app merges them
back, discarding entries computed before the last clear().
"""

import hashlib
from dataclasses import dataclass
from types import MappingProxyType

from convo_tui.tui.rendering import RenderedBlock


def cache_key(*parts: object) -> str:
    """Digest of the reprs of `parts`.

    Models are frozen dataclasses with deterministic reprs (FrozenDict sorts
    its keys), so equal content always yields an equal key.
    """
    digest = hashlib.blake2b(digest_size=16)
    for part in parts:
        digest.update(repr(part).encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()


@dataclass(frozen=True)
class CacheView:
    """Read-only cache contents as of one generation."""

    entries: MappingProxyType
    generation: int

    def get(self, key: str) -> RenderedBlock | None:
        return self.entries.get(key)


class PartCache:
    """Unbounded key → RenderedBlock map. Owned by the app."""

    def __init__(self):
        self._entries: dict[str, RenderedBlock] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, key: str) -> RenderedBlock | None:
        return self._entries.get(key)

    def set(self, key: str, block: RenderedBlock) -> None:
        self._entries[key] = block

    def clear(self) -> None:
        self._entries = {}
        self._generation += 1

    def snapshot(self) -> CacheView:
        return CacheView(entries=MappingProxyType(dict(self._entries)), generation=self._generation)

    def merge(self, entries: dict[str, RenderedBlock], generation: int) -> bool:
        """Adopt entries computed by a pass. False when they are stale."""
        if generation != self._generation:
            return False
        for key, block in entries.items():
            self._entries.setdefault(key, block)
        return True

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
