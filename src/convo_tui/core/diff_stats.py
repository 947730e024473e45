"""Per-file added/removed line counts for a unified diff."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FileStats:
    path: str
    added: int = 0
    removed: int = 0


def parse_stats(diff: str) -> dict[str, FileStats]:
    """Count `+`/`-` lines per file.

    The current file is taken from `+++ b/<path>` headers; `---` headers and
    `@@` hunk markers are skipped. Lines before any `+++` header are ignored.
    """
    added: dict[str, int] = {}
    removed: dict[str, int] = {}
    current: str | None = None

    for line in diff.splitlines():
        if line.startswith("---"):
            continue
        if line.startswith("+++"):
            path = line[3:].strip()
            current = path[2:] if path.startswith("b/") else path
            added.setdefault(current, 0)
            removed.setdefault(current, 0)
            continue
        if line.startswith("@@") or current is None:
            continue
        if line.startswith("+"):
            added[current] += 1
        elif line.startswith("-"):
            removed[current] += 1

    return {
        path: FileStats(path=path, added=added[path], removed=removed[path])
        for path in added
    }


def sorted_stats(diff: str) -> list[FileStats]:
    """parse_stats() ordered by path."""
    stats = parse_stats(diff)
    return [stats[path] for path in sorted(stats)]
