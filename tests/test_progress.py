"""Tests for the bounded processing log."""

from datetime import datetime, timedelta

from recognition_engine.core.progress import ErrorEntry, LogEntry, LogLevel, ProgressLog


def _entry(i):
    return LogEntry(timestamp=datetime(2024, 1, 1) + timedelta(seconds=i), stage="s", message=str(i))


class TestProgressLog:
    """Tests for ProgressLog."""

    def test_append_returns_new_log(self):
        empty = ProgressLog()
        log = empty.append(_entry(0))

        assert len(empty) == 0
        assert len(log) == 1
        assert log.latest().message == "0"

    def test_oldest_evicted_first(self):
        log = ProgressLog(limit=3)
        for i in range(5):
            log = log.append(_entry(i))

        assert [e.message for e in log] == ["2", "3", "4"]

    def test_loading_oversized_list_truncates(self):
        items = [_entry(i).to_dict() for i in range(120)]

        log = ProgressLog.from_list(items)

        assert len(log) == 100
        assert log.entries[0].message == "20"
        assert log.latest().message == "119"

    def test_entry_round_trip(self):
        entry = LogEntry(
            timestamp=datetime(2024, 5, 1, 12, 0), stage="error", message="boom",
            level=LogLevel.ERROR, data={"code": 1},
        )

        assert LogEntry.from_dict(entry.to_dict()) == entry

    def test_error_entry_dict(self):
        entry = ErrorEntry(attempt=2, timestamp=datetime(2024, 5, 1), message="boom")

        assert entry.to_dict()["attempt"] == 2
        assert ErrorEntry.from_dict(entry.to_dict()) == entry
