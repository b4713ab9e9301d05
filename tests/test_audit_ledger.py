"""Tests for the audit ledger"""
import logging
from datetime import timedelta
from unittest.mock import Mock

from services.audit_ledger import AuditLedger
from models.audit_entry import AuditEntry, AuditQuery, STAGE_SUMMARIZED, STAGE_COMPLETED


def test_append_writes_entry(ledger, fake_db):
    stored = ledger.append(AuditEntry.success(STAGE_SUMMARIZED, "Summary created", user_id="user-1",
                                              raw_event_id="event-1"))

    assert stored is True
    [row] = fake_db.audit_log
    assert row["stage"] == "summarized"
    assert row["status"] == "success"
    assert row["raw_event_id"] == "event-1"


def test_append_never_raises(caplog):
    db = Mock()
    db.insert_audit_entry.side_effect = RuntimeError("connection lost")
    ledger = AuditLedger(db=db)

    with caplog.at_level(logging.ERROR, logger="audit.fallback"):
        stored = ledger.append(AuditEntry.failed(STAGE_COMPLETED, "could not mark processed", raw_event_id="event-9"))

    assert stored is False
    [record] = [r for r in caplog.records if r.name == "audit.fallback"]
    assert "event-9" in record.getMessage()
    assert "could not mark processed" in record.getMessage()


def test_query_filters(ledger, fake_db):
    ledger.append(AuditEntry.success(STAGE_SUMMARIZED, "ok", user_id="user-1", raw_event_id="event-1"))
    ledger.append(AuditEntry.failed(STAGE_SUMMARIZED, "empty", user_id="user-1", raw_event_id="event-2"))
    ledger.append(AuditEntry.success(STAGE_COMPLETED, "done", user_id="user-2", raw_event_id="event-3"))

    assert [e.raw_event_id for e in ledger.query(AuditQuery(status="failed"))] == ["event-2"]
    assert {e.raw_event_id for e in ledger.query(AuditQuery(user_id="user-1"))} == {"event-1", "event-2"}
    assert [e.stage for e in ledger.query(AuditQuery(raw_event_id="event-3"))] == ["completed"]
    assert len(ledger.query()) == 3
    assert len(ledger.query(AuditQuery(limit=2))) == 2


def test_query_since(ledger, fake_db):
    ledger.append(AuditEntry.success(STAGE_SUMMARIZED, "ok"))

    assert len(ledger.query(AuditQuery(since=fake_db.now() - timedelta(minutes=1)))) == 1
    assert ledger.query(AuditQuery(since=fake_db.now() + timedelta(minutes=1))) == []
