"""Hash-chained audit journal for engine operations.

Every state change the engine commits (and every operation it reverts) can be
recorded as a structured entry:
- Entries are pydantic models written one per line to a JSONL journal
- Each entry carries the hash of the previous one, so edits are detectable
- Messages are mirrored to loguru sinks for humans

The journal is optional: engine components only write to it when an
AuditLogger is passed in.
"""

from __future__ import annotations

import hashlib
import json
import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[journal_id]}</cyan> | {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LogEntry(BaseModel):
    """One journal line, linked to its predecessor by hash."""

    timestamp: str = Field(default_factory=_utc_now)
    journal_id: str
    sequence: int = Field(ge=0)
    level: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    previous_hash: str | None = None
    entry_hash: str | None = None

    def compute_hash(self) -> str:
        """SHA-256 over every field except entry_hash, keys sorted."""
        payload = json.dumps(
            self.model_dump(exclude={"entry_hash"}), sort_keys=True, default=str
        )
        return hashlib.sha256(payload.encode()).hexdigest()

    def finalize(self) -> LogEntry:
        self.entry_hash = self.compute_hash()
        return self


class AuditLogger:
    """Hash-chained journal of engine events.

    Usage:
        audit = AuditLogger.create_journal("local_engine")
        audit.log_event("collateral_deposited", {"user": "alice", "amount": "10"})
        audit.close()
    """

    def __init__(self, journal_id: str, log_dir: Path, console: bool = True) -> None:
        """Open a journal.

        Args:
            journal_id: Unique identifier, also the journal's file stem.
            log_dir: Directory for `<journal_id>.jsonl` and `<journal_id>.log`.
            console: Mirror INFO and above to stderr.
        """
        self.journal_id = journal_id
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._json_log_path = self.log_dir / f"{journal_id}.jsonl"
        self._last_hash: str | None = None
        self._sequence = 0

        self._sink_ids = self._add_sinks(console)
        self._logger = logger.bind(journal_id=journal_id)

    def _add_sinks(self, console: bool) -> list[int]:
        """Attach loguru sinks filtered to records bound to this journal."""
        journal_id = self.journal_id

        def belongs_here(record: Any) -> bool:
            return record["extra"].get("journal_id") == journal_id

        sinks = [
            logger.add(
                self.log_dir / f"{journal_id}.log",
                format=FILE_FORMAT,
                level="DEBUG",
                filter=belongs_here,
            )
        ]
        if console:
            sinks.append(
                logger.add(sys.stderr, format=CONSOLE_FORMAT, level="INFO", filter=belongs_here)
            )
        return sinks

    @classmethod
    def create_journal(
        cls,
        name: str,
        log_dir: str | Path | None = None,
        console: bool = True,
    ) -> AuditLogger:
        """Open a journal with a unique, timestamped id.

        Args:
            name: Prefix for the journal id (e.g. 'replay', 'fuzz').
            log_dir: Journal directory (default: $LOG_DIR, else ./logs).
            console: Mirror INFO and above to stderr.
        """
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        journal_id = f"{name}_{stamp}_{uuid.uuid4().hex[:8]}"
        directory = Path(log_dir) if log_dir is not None else Path(os.getenv("LOG_DIR", "logs"))
        return cls(journal_id, directory, console=console)

    def close(self) -> None:
        """Detach this journal's loguru sinks."""
        while self._sink_ids:
            logger.remove(self._sink_ids.pop())

    def _append(self, level: str, message: str, data: dict[str, Any] | None) -> LogEntry:
        entry = LogEntry(
            journal_id=self.journal_id,
            sequence=self._sequence,
            level=level,
            message=message,
            data=data or {},
            previous_hash=self._last_hash,
        ).finalize()

        with open(self._json_log_path, "a") as f:
            f.write(entry.model_dump_json() + "\n")

        self._last_hash = entry.entry_hash
        self._sequence += 1
        return entry

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("DEBUG", message, data)
        self._logger.debug(message)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("INFO", message, data)
        self._logger.info(message)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("WARNING", message, data)
        self._logger.warning(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("ERROR", message, data)
        self._logger.error(message)

    def log_event(self, event_type: str, event_data: dict[str, Any]) -> None:
        """Record a structured event.

        The event type is stored under `data["event_type"]` next to the
        event's own fields. Amounts should be passed as strings so that
        18-decimal integers survive JSON round trips.

        Args:
            event_type: Event name (e.g. 'debt_minted', 'liquidation_executed').
            event_data: Event fields.
        """
        self._append("EVENT", f"Event: {event_type}", {"event_type": event_type, **event_data})
        details = ", ".join(f"{key}={value}" for key, value in event_data.items())
        self._logger.info(f"{event_type} {details}".rstrip())

    def get_log_summary(self) -> dict[str, Any]:
        return {
            "journal_id": self.journal_id,
            "entry_count": self._sequence,
            "last_hash": self._last_hash,
            "json_log_path": str(self._json_log_path),
        }

    @property
    def json_log_path(self) -> Path:
        return self._json_log_path


def verify_log_integrity(log_path: Path) -> tuple[bool, list[str]]:
    """Re-check every hash link in a JSONL journal.

    Args:
        log_path: Path to the journal.

    Returns:
        Tuple of (is_valid, problems), one problem string per failed check.
    """
    problems: list[str] = []
    expected_previous: str | None = None

    for line_num, line in enumerate(Path(log_path).read_text().splitlines(), 1):
        try:
            entry = LogEntry.model_validate_json(line)
        except ValueError as e:
            problems.append(f"Line {line_num}: Parse error - {e}")
            continue

        if entry.previous_hash != expected_previous:
            problems.append(
                f"Line {line_num}: Hash chain broken "
                f"(previous_hash {entry.previous_hash}, expected {expected_previous})"
            )
        actual = entry.compute_hash()
        if entry.entry_hash != actual:
            problems.append(
                f"Line {line_num}: Entry hash mismatch "
                f"(stored {entry.entry_hash}, computed {actual})"
            )
        expected_previous = entry.entry_hash

    return not problems, problems
