"""Shared fixtures: environment defaults and an in-memory DatabaseService"""
import os

# Settings are read at import time; seed the required values first
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["CRON_API_KEY"] = "test-cron-key"
os.environ["ENVIRONMENT"] = "test"

import itertools
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from models.raw_event import RawEvent
from models.summary import Summary, ActionSuggestion
from models.action import Action
from models.scheduled_task import ScheduledTask
from models.audit_entry import AuditEntry, AuditQuery
from services.audit_ledger import AuditLedger


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class FakeDatabase:
    """In-memory stand-in for DatabaseService

    Conditional updates hold a lock, so the compare-and-swap behaviour
    matches PostgREST's "update ... where status = X returning *".
    """

    def __init__(self):
        self.raw_events = {}
        self.summaries = {}
        self.suggestions = {}
        self.actions = {}
        self.scheduled_tasks = {}
        self.processed_updates = {}
        self.audit_log = []
        self.integrations = []
        self.cron_jobs = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _new_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    # Test helpers
    def add_raw_event(self, content, source="gmail", user_id="user-1", status="raw", created_at=None):
        event_id = self._new_id("event")
        self.raw_events[event_id] = {
            "id": event_id,
            "user_id": user_id,
            "source": source,
            "content": content,
            "status": status,
            "created_at": created_at or datetime.now(timezone.utc) + timedelta(microseconds=len(self.raw_events)),
        }
        return event_id

    def add_integration(self, user_id, integration_type, access_token="token-123", is_active=True):
        self.integrations.append({
            "id": self._new_id("integration"),
            "user_id": user_id,
            "integration_type": integration_type,
            "access_token": access_token,
            "is_active": is_active,
        })

    def add_scheduled_task(self, task_type, metadata, scheduled_for=None, user_id="user-1", title="Task", **extra):
        task = self.create_scheduled_task({
            "user_id": user_id,
            "task_type": task_type,
            "title": title,
            "scheduled_for": (scheduled_for or datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat(),
            "is_completed": False,
            "metadata": metadata,
            **extra,
        })
        return task.id

    def audit_entries(self, stage=None, status=None, raw_event_id=None):
        return [
            entry for entry in self.audit_log
            if (stage is None or entry["stage"] == stage)
            and (status is None or entry["status"] == status)
            and (raw_event_id is None or entry.get("raw_event_id") == raw_event_id)
        ]

    # Raw Events
    def get_raw_events(self, limit=20):
        rows = sorted(
            (row for row in self.raw_events.values() if row["status"] == "raw"),
            key=lambda row: row["created_at"],
        )
        return [RawEvent(**row) for row in rows[:limit]]

    def get_event_by_id(self, event_id):
        row = self.raw_events.get(event_id)
        return RawEvent(**row) if row else None

    def claim_event(self, event_id):
        return self.transition_event_status(event_id, "raw", "processing")

    def transition_event_status(self, event_id, from_status, to_status):
        with self._lock:
            row = self.raw_events.get(event_id)
            if not row or row["status"] != from_status:
                return False
            row["status"] = to_status
            return True

    def create_raw_event(self, event_data):
        return self.add_raw_event(**event_data)

    # Summaries
    def create_summary(self, summary_data):
        row = {"id": self._new_id("summary"), "is_viewed": False, **summary_data}
        self.summaries[row["id"]] = row
        return Summary(**row)

    # Suggestions
    def create_suggestions(self, suggestions):
        stored = []
        for data in suggestions:
            row = {"id": self._new_id("suggestion"), **data}
            self.suggestions[row["id"]] = row
            stored.append(ActionSuggestion(**row))
        return stored

    def get_suggestion_by_id(self, suggestion_id):
        row = self.suggestions.get(suggestion_id)
        return ActionSuggestion(**row) if row else None

    # Actions
    def create_action(self, action_data):
        row = {"id": self._new_id("action"), "created_at": self.now(), **action_data}
        self.actions[row["id"]] = row
        return Action(**row)

    def get_action(self, action_id, user_id=None):
        row = self.actions.get(action_id)
        if not row or (user_id and row["user_id"] != user_id):
            return None
        return Action(**row)

    def transition_action_status(self, action_id, from_status, to_status, updates=None, user_id=None):
        with self._lock:
            row = self.actions.get(action_id)
            if not row or row["status"] != from_status or (user_id and row["user_id"] != user_id):
                return None
            row.update(updates or {})
            row["status"] = to_status
            return Action(**row)

    # Scheduled Tasks
    def get_due_tasks(self, now):
        rows = [
            row for row in self.scheduled_tasks.values()
            if not row.get("is_completed") and _as_datetime(row["scheduled_for"]) <= now
        ]
        return [dict(row) for row in sorted(rows, key=lambda row: _as_datetime(row["scheduled_for"]))]

    def create_scheduled_task(self, task_data):
        row = {"id": self._new_id("task"), "created_at": self.now(), **task_data}
        self.scheduled_tasks[row["id"]] = row
        return ScheduledTask(**row)

    def mark_task_completed(self, task_id):
        with self._lock:
            row = self.scheduled_tasks.get(task_id)
            if not row or row.get("is_completed"):
                return False
            row["is_completed"] = True
            return True

    # Processed Updates
    def create_processed_update(self, update_data):
        update_id = self._new_id("update")
        self.processed_updates[update_id] = {"id": update_id, **update_data}
        return update_id

    # Audit Log
    def insert_audit_entry(self, entry_data):
        with self._lock:
            self.audit_log.append({"id": self._new_id("audit"), "created_at": self.now(), **entry_data})

    def query_audit_entries(self, audit_query):
        rows = [
            row for row in self.audit_log
            if (not audit_query.raw_event_id or row.get("raw_event_id") == audit_query.raw_event_id)
            and (not audit_query.user_id or row.get("user_id") == audit_query.user_id)
            and (not audit_query.stage or row["stage"] == audit_query.stage)
            and (not audit_query.status or row["status"] == audit_query.status)
            and (not audit_query.since or row["created_at"] >= audit_query.since)
        ]
        rows = sorted(rows, key=lambda row: row["created_at"], reverse=True)
        return [AuditEntry(**row) for row in rows[:audit_query.limit]]

    # Integrations
    def get_active_integration(self, user_id, integration_type):
        for row in self.integrations:
            if row["user_id"] == user_id and row["integration_type"] == integration_type and row["is_active"]:
                return row
        return None

    # Cron configuration
    def get_cron_jobs(self):
        return list(self.cron_jobs)

    @staticmethod
    def now():
        return datetime.now(timezone.utc)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def ledger(fake_db):
    return AuditLedger(db=fake_db)


@pytest.fixture
def mock_completion():
    """Completion collaborator that is configured; set complete_json per test"""
    completion = Mock()
    completion.available = True
    completion.model = "claude-test"
    return completion


@pytest.fixture
def unavailable_completion():
    completion = Mock()
    completion.available = False
    completion.model = "claude-test"
    return completion
