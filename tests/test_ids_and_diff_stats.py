"""Tests for ascending ids and diff statistics."""

import convo_tui.core.ids
from convo_tui.core.diff_stats import FileStats, parse_stats, sorted_stats
from convo_tui.core.ids import ascending_id


def test_ids_ascend_within_one_millisecond():
    ids = [ascending_id("msg", now_ms=1_700_000_000_000) for _ in range(50)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 50
    assert all(i.startswith("msg_") for i in ids)


def test_ids_ascend_when_clock_goes_backwards():
    later = ascending_id("prt", now_ms=1_700_000_001_000)
    earlier_clock = ascending_id("prt", now_ms=1_700_000_000_000)
    assert earlier_clock > later


def test_ids_use_the_server_layout(monkeypatch):
    monkeypatch.setattr(convo_tui.core.ids, "_last_timestamp", 0)
    minted = ascending_id("msg", now_ms=1_700_000_002_000)
    prefix, body = minted.split("_")
    assert prefix == "msg"
    assert len(body) == 26
    assert int(body[:12], 16) == (1_700_000_002_000 * 0x1000 + 1) & ((1 << 48) - 1)
    assert body[12:].isalnum()


DIFF = """\
diff --git a/src/app.py b/src/app.py
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
-import sys
+import json
+import logging
--- a/README.md
+++ b/README.md
@@ -10,2 +10,1 @@
-old line
-another
+new line
"""


def test_parse_stats_counts_per_file():
    stats = parse_stats(DIFF)
    assert stats["src/app.py"] == FileStats("src/app.py", added=2, removed=1)
    assert stats["README.md"] == FileStats("README.md", added=1, removed=2)


def test_header_lines_are_not_counted():
    stats = parse_stats("+++ b/a.txt\n@@ -1 +1 @@\n+x\n")
    assert stats == {"a.txt": FileStats("a.txt", added=1, removed=0)}


def test_lines_before_first_header_are_ignored():
    assert parse_stats("+stray\n-stray\n") == {}


def test_sorted_stats_orders_by_path():
    assert [s.path for s in sorted_stats(DIFF)] == ["README.md", "src/app.py"]
