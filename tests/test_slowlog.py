from __future__ import annotations

from redscout.core.slowlog import SlowLogEntry, sort_slow_log

ENTRIES = [
    SlowLogEntry(id=1, timestamp=30.0, duration_us=500, command="GET"),
    SlowLogEntry(id=2, timestamp=10.0, duration_us=900, command="SET"),
    SlowLogEntry(id=3, timestamp=20.0, duration_us=100, command="DEL"),
]


def test_sort_by_timestamp_descending() -> None:
    assert [e.id for e in sort_slow_log(ENTRIES)] == [1, 3, 2]


def test_sort_by_duration_and_command() -> None:
    assert [e.id for e in sort_slow_log(ENTRIES, "duration")] == [2, 1, 3]
    assert [e.id for e in sort_slow_log(ENTRIES, "command")] == [2, 1, 3]


def test_unknown_sort_key_falls_back_to_id() -> None:
    assert [e.id for e in sort_slow_log(ENTRIES, "nope")] == [3, 2, 1]
