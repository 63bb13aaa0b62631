"""Tests for the hash-chained audit journal."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from stable_engine.core.logging import AuditLogger, LogEntry, verify_log_integrity


def read_entries(path: Path) -> list[dict]:
    with open(path) as f:
        return [json.loads(line) for line in f]


class TestLogEntry:
    """Tests for LogEntry model."""

    def test_hash_is_stable(self) -> None:
        entry = LogEntry(
            journal_id="journal",
            sequence=0,
            level="INFO",
            message="Engine ready",
            timestamp="2024-01-01T00:00:00+00:00",
        )
        assert entry.compute_hash() == entry.compute_hash()
        assert len(entry.compute_hash()) == 64  # SHA256 hex length

    def test_finalize_sets_hash(self) -> None:
        entry = LogEntry(journal_id="journal", sequence=0, level="INFO", message="m")
        entry.finalize()
        assert entry.entry_hash == entry.compute_hash()

    def test_data_changes_hash(self) -> None:
        common = {
            "journal_id": "journal",
            "sequence": 0,
            "level": "EVENT",
            "message": "Event: debt_minted",
            "timestamp": "2024-01-01T00:00:00+00:00",
        }
        first = LogEntry(data={"amount": "1"}, **common)
        second = LogEntry(data={"amount": "2"}, **common)
        assert first.compute_hash() != second.compute_hash()


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_create_journal(self, temp_log_dir: Path) -> None:
        journal = AuditLogger.create_journal("engine", temp_log_dir, console=False)
        try:
            assert journal.journal_id.startswith("engine_")
            assert journal.json_log_path.parent == temp_log_dir
        finally:
            journal.close()

    def test_create_journal_uses_log_dir_env(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "from_env"))
        journal = AuditLogger.create_journal("engine", console=False)
        try:
            assert journal.log_dir == tmp_path / "from_env"
            assert journal.log_dir.is_dir()
        finally:
            journal.close()

    def test_log_event(self, audit_logger: AuditLogger) -> None:
        audit_logger.log_event("collateral_deposited", {"user": "alice", "amount": "10"})

        entries = read_entries(audit_logger.json_log_path)
        assert len(entries) == 1
        assert entries[0]["level"] == "EVENT"
        assert entries[0]["data"]["event_type"] == "collateral_deposited"
        assert entries[0]["data"]["user"] == "alice"

    def test_levels(self, audit_logger: AuditLogger) -> None:
        audit_logger.debug("d")
        audit_logger.info("i", {"key": "value"})
        audit_logger.warning("w")
        audit_logger.error("e")

        entries = read_entries(audit_logger.json_log_path)
        assert [e["level"] for e in entries] == ["DEBUG", "INFO", "WARNING", "ERROR"]
        assert entries[1]["data"]["key"] == "value"

    def test_hash_chaining(self, audit_logger: AuditLogger) -> None:
        audit_logger.info("Message 1")
        audit_logger.info("Message 2")
        audit_logger.info("Message 3")

        entries = read_entries(audit_logger.json_log_path)
        assert entries[0]["previous_hash"] is None
        assert entries[1]["previous_hash"] == entries[0]["entry_hash"]
        assert entries[2]["previous_hash"] == entries[1]["entry_hash"]
        assert [e["sequence"] for e in entries] == [0, 1, 2]

    def test_text_log_written(self, audit_logger: AuditLogger, temp_log_dir: Path) -> None:
        audit_logger.info("Human readable line")
        audit_logger.close()

        text_log = temp_log_dir / f"{audit_logger.journal_id}.log"
        assert "Human readable line" in text_log.read_text()

    def test_get_log_summary(self, audit_logger: AuditLogger) -> None:
        audit_logger.info("Message 1")
        audit_logger.info("Message 2")

        summary = audit_logger.get_log_summary()
        assert summary["entry_count"] == 2
        assert summary["last_hash"] is not None
        assert summary["journal_id"] == "test_journal"


class TestLogIntegrityVerification:
    """Tests for journal integrity verification."""

    def test_verify_valid_log(self, audit_logger: AuditLogger) -> None:
        audit_logger.info("Message 1")
        audit_logger.log_event("debt_minted", {"user": "alice"})

        is_valid, errors = verify_log_integrity(audit_logger.json_log_path)
        assert is_valid is True
        assert errors == []

    def test_detect_tampered_data(self, audit_logger: AuditLogger) -> None:
        audit_logger.log_event("debt_minted", {"amount": "100"})
        audit_logger.info("Message 2")

        path = audit_logger.json_log_path
        lines = path.read_text().splitlines()
        entry = json.loads(lines[0])
        entry["data"]["amount"] = "1000000"
        path.write_text(json.dumps(entry) + "\n" + lines[1] + "\n")

        is_valid, errors = verify_log_integrity(path)
        assert is_valid is False
        assert any("Entry hash mismatch" in e for e in errors)

    def test_detect_removed_entry(self, audit_logger: AuditLogger) -> None:
        audit_logger.info("Message 1")
        audit_logger.info("Message 2")
        audit_logger.info("Message 3")

        path = audit_logger.json_log_path
        lines = path.read_text().splitlines()
        path.write_text(lines[0] + "\n" + lines[2] + "\n")

        is_valid, errors = verify_log_integrity(path)
        assert is_valid is False
        assert any("Hash chain broken" in e for e in errors)

    def test_detect_garbage_line(self, audit_logger: AuditLogger) -> None:
        audit_logger.info("Message 1")
        path = audit_logger.json_log_path
        with open(path, "a") as f:
            f.write("not json\n")

        is_valid, errors = verify_log_integrity(path)
        assert is_valid is False
        assert any("Parse error" in e for e in errors)
