"""Append-only audit log of folder creation batches.

Writes CreationAuditEntry records as JSON Lines (one JSON object per line).
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from filterfolders.schemas.folders import CreationAuditEntry, CreationResults, PathState

logger = logging.getLogger(__name__)


class CreationAuditLog:
    """Append-only JSONL log of what each creation batch did.

    Usage::

        audit = CreationAuditLog("/path/to/creation_audit.jsonl")
        audit.log_batch("default", requested=12, results=results)

        entries = audit.read_entries(since=some_datetime)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: CreationAuditEntry) -> None:
        """Append a single audit entry to the log file."""
        with self._path.open("a") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug(
            "Creation audit: account=%s created=%d failed=%d pending=%d",
            entry.account_id,
            len(entry.created),
            len(entry.failed),
            len(entry.pending),
        )

    def log_batch(
        self, account_id: str, *, requested: int, results: CreationResults
    ) -> CreationAuditEntry:
        """Record the outcome of one creation batch."""
        entry = CreationAuditEntry(
            timestamp=datetime.now(UTC),
            account_id=account_id,
            requested=requested,
            created=results.paths_in_state(PathState.CREATED),
            already_existed=results.paths_in_state(PathState.ALREADY_EXISTS),
            failed=list(results.failed),
            pending=list(results.pending),
            cancelled=results.cancelled,
        )
        self.log(entry)
        return entry

    def read_entries(
        self,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[CreationAuditEntry]:
        """Read audit entries, optionally filtered by timestamp.

        Args:
            since: Only return entries after this timestamp.
            limit: Maximum number of entries to return (the most recent ones).

        Returns:
            List of CreationAuditEntry objects, oldest first.
        """
        if not self._path.exists():
            return []

        entries: list[CreationAuditEntry] = []
        with self._path.open() as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = CreationAuditEntry.model_validate_json(line)
                if since and entry.timestamp <= since:
                    continue
                entries.append(entry)

        if limit is not None:
            entries = entries[-limit:]

        return entries
