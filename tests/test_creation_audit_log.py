"""Tests for filterfolders.audit.creation_log."""

from datetime import UTC, datetime, timedelta

from filterfolders.audit.creation_log import CreationAuditLog
from filterfolders.schemas.folders import (
    CreationAuditEntry,
    CreationResults,
    FailedPath,
    PathState,
)


def _make_results() -> CreationResults:
    return CreationResults(
        created=["A", "B/C"],
        failed=[FailedPath(path="Bad", error="denied")],
        pending=["Later"],
        states={
            "A": PathState.ALREADY_EXISTS,
            "B/C": PathState.CREATED,
            "Bad": PathState.FAILED,
            "Later": PathState.PENDING,
        },
        cancelled=True,
    )


def _make_entry(timestamp: datetime, account_id: str = "acc1") -> CreationAuditEntry:
    return CreationAuditEntry(timestamp=timestamp, account_id=account_id, requested=1)


class TestLogBatch:
    def test_splits_created_and_existing(self, tmp_path):
        audit = CreationAuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_batch("acc1", requested=4, results=_make_results())

        assert entry.created == ["B/C"]
        assert entry.already_existed == ["A"]
        assert [f.path for f in entry.failed] == ["Bad"]
        assert entry.pending == ["Later"]
        assert entry.cancelled is True

    def test_round_trips_through_file(self, tmp_path):
        audit = CreationAuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_batch("acc1", requested=4, results=_make_results())
        assert audit.read_entries() == [entry]

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "audit.jsonl"
        CreationAuditLog(path).log_batch("acc1", requested=0, results=CreationResults())
        assert path.exists()


class TestReadEntries:
    def test_missing_file(self, tmp_path):
        assert CreationAuditLog(tmp_path / "none.jsonl").read_entries() == []

    def test_since_and_limit(self, tmp_path):
        audit = CreationAuditLog(tmp_path / "audit.jsonl")
        now = datetime.now(UTC)
        for hours in (3, 2, 1):
            audit.log(_make_entry(now - timedelta(hours=hours), account_id=f"h{hours}"))

        recent = audit.read_entries(since=now - timedelta(hours=2, minutes=30))
        assert [e.account_id for e in recent] == ["h2", "h1"]

        last = audit.read_entries(limit=1)
        assert [e.account_id for e in last] == ["h1"]

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        audit = CreationAuditLog(path)
        audit.log(_make_entry(datetime.now(UTC)))
        with path.open("a") as f:
            f.write("\n\n")
        assert len(audit.read_entries()) == 1
