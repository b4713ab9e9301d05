"""
AuditLedger: append-only record of every stage attempt.

Writes are fire-and-forget. A failed write is reported on the
`audit.fallback` logger with the full entry and never reaches the stage
that asked for it.
"""

from services.database import DatabaseService
from models.audit_entry import AuditEntry, AuditQuery
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
fallback_logger = logging.getLogger("audit.fallback")


class AuditLedger:
    def __init__(self, db: Optional[DatabaseService] = None):
        self.db = db or DatabaseService()

    def append(self, entry: AuditEntry) -> bool:
        """Write one audit entry

        Returns:
            True if the entry was stored, False if it only reached the fallback log
        """
        data = entry.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
        try:
            self.db.insert_audit_entry(data)
            logger.debug(f"Audit: {entry.stage}/{entry.status} event={entry.raw_event_id} - {entry.message}")
            return True
        except Exception as e:
            fallback_logger.error(f"Audit write failed ({e}); entry={data}")
            return False

    def query(self, audit_query: Optional[AuditQuery] = None) -> List[AuditEntry]:
        """Read entries for observability tooling. Errors propagate to the caller."""
        return self.db.query_audit_entries(audit_query or AuditQuery())
