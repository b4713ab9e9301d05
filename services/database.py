from supabase import create_client, Client
from config import settings
from typing import List, Optional, Dict, Any
from models.raw_event import RawEvent
from models.summary import Summary, ActionSuggestion
from models.action import Action
from models.scheduled_task import ScheduledTask
from models.audit_entry import AuditEntry, AuditQuery
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class DatabaseService:
    """Supabase gateway for the five core tables plus the read-only
    integration and cron configuration tables.

    Every status change goes through a conditional update (filtered on the
    expected current status). PostgREST returns the updated rows, so an
    empty result means another worker got there first.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
            )
        return self._client

    # Raw Events
    def get_raw_events(self, limit: int = 20) -> List[RawEvent]:
        """Fetch unclaimed events, oldest first"""
        response = (
            self.client.table("raw_events")
            .select("*")
            .eq("status", "raw")
            .order("created_at", desc=False)
            .limit(limit)
            .execute()
        )

        return [RawEvent(**event) for event in response.data]

    def get_event_by_id(self, event_id: str) -> Optional[RawEvent]:
        """Get event by ID"""
        response = (
            self.client.table("raw_events")
            .select("*")
            .eq("id", event_id)
            .limit(1)
            .execute()
        )
        return RawEvent(**response.data[0]) if response.data else None

    def claim_event(self, event_id: str) -> bool:
        """Atomically move an event from 'raw' to 'processing'

        Returns:
            True if this caller now owns the event
        """
        return self.transition_event_status(event_id, "raw", "processing")

    def transition_event_status(self, event_id: str, from_status: str, to_status: str) -> bool:
        """Compare-and-swap on raw_events.status"""
        response = (
            self.client.table("raw_events")
            .update({"status": to_status})
            .eq("id", event_id)
            .eq("status", from_status)
            .execute()
        )
        return bool(response.data)

    def create_raw_event(self, event_data: dict) -> str:
        """Create a new raw event (collectors and tests)"""
        response = self.client.table("raw_events").insert(event_data).execute()
        return response.data[0]["id"]

    # Summaries
    def create_summary(self, summary_data: dict) -> Summary:
        """Create summary, return the stored row"""
        response = self.client.table("summaries").insert(summary_data).execute()
        return Summary(**response.data[0])

    # Suggestions
    def create_suggestions(self, suggestions: List[dict]) -> List[ActionSuggestion]:
        """Bulk insert suggestions for one summary"""
        if not suggestions:
            return []
        response = self.client.table("llm_suggestions").insert(suggestions).execute()
        return [ActionSuggestion(**s) for s in response.data]

    def get_suggestion_by_id(self, suggestion_id: str) -> Optional[ActionSuggestion]:
        """Get suggestion by ID"""
        response = (
            self.client.table("llm_suggestions")
            .select("*")
            .eq("id", suggestion_id)
            .limit(1)
            .execute()
        )
        return ActionSuggestion(**response.data[0]) if response.data else None

    # Actions
    def create_action(self, action_data: dict) -> Action:
        """Create action, return the stored row"""
        response = self.client.table("actions").insert(action_data).execute()
        return Action(**response.data[0])

    def get_action(self, action_id: str, user_id: Optional[str] = None) -> Optional[Action]:
        """Get action by ID, optionally scoped to its owner"""
        query = self.client.table("actions").select("*").eq("id", action_id)
        if user_id:
            query = query.eq("user_id", user_id)
        response = query.limit(1).execute()
        return Action(**response.data[0]) if response.data else None

    def transition_action_status(
        self,
        action_id: str,
        from_status: str,
        to_status: str,
        updates: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Action]:
        """Compare-and-swap on actions.status

        Returns:
            The updated Action, or None if the action was not in from_status
        """
        query = (
            self.client.table("actions")
            .update({**(updates or {}), "status": to_status})
            .eq("id", action_id)
            .eq("status", from_status)
        )
        if user_id:
            query = query.eq("user_id", user_id)
        response = query.execute()
        return Action(**response.data[0]) if response.data else None

    # Scheduled Tasks
    def get_due_tasks(self, now: datetime) -> List[Dict[str, Any]]:
        """Fetch incomplete tasks due at or before now, oldest first

        Rows are returned raw so the scheduler can reject malformed ones
        individually instead of failing the whole poll.
        """
        response = (
            self.client.table("scheduled_tasks")
            .select("*")
            .eq("is_completed", False)
            .lte("scheduled_for", now.isoformat())
            .order("scheduled_for", desc=False)
            .execute()
        )
        return response.data or []

    def create_scheduled_task(self, task_data: dict) -> ScheduledTask:
        """Create scheduled task, return the stored row"""
        response = self.client.table("scheduled_tasks").insert(task_data).execute()
        return ScheduledTask(**response.data[0])

    def mark_task_completed(self, task_id: str) -> bool:
        """Flip is_completed; False if the task was already completed"""
        response = (
            self.client.table("scheduled_tasks")
            .update({"is_completed": True, "updated_at": self.now().isoformat()})
            .eq("id", task_id)
            .eq("is_completed", False)
            .execute()
        )
        return bool(response.data)

    # Processed Updates (user-visible reminders and notifications)
    def create_processed_update(self, update_data: dict) -> str:
        """Create processed update, return ID"""
        response = self.client.table("processed_updates").insert(update_data).execute()
        return response.data[0]["id"]

    # Audit Log
    def insert_audit_entry(self, entry_data: dict):
        """Append one row to the audit log"""
        self.client.table("event_audit_log").insert(entry_data).execute()

    def query_audit_entries(self, audit_query: AuditQuery) -> List[AuditEntry]:
        """Read audit rows, newest first"""
        query = self.client.table("event_audit_log").select("*")

        if audit_query.raw_event_id:
            query = query.eq("raw_event_id", audit_query.raw_event_id)
        if audit_query.user_id:
            query = query.eq("user_id", audit_query.user_id)
        if audit_query.stage:
            query = query.eq("stage", audit_query.stage)
        if audit_query.status:
            query = query.eq("status", audit_query.status)
        if audit_query.since:
            query = query.gte("created_at", audit_query.since.isoformat())

        response = query.order("created_at", desc=True).limit(audit_query.limit).execute()
        return [AuditEntry(**row) for row in response.data] if response.data else []

    # Integrations (tokens are acquired and refreshed elsewhere)
    def get_active_integration(self, user_id: str, integration_type: str) -> Optional[Dict[str, Any]]:
        """Get the user's active integration row for a provider"""
        response = (
            self.client.table("user_integrations")
            .select("id, user_id, integration_type, access_token")
            .eq("user_id", user_id)
            .eq("integration_type", integration_type)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    # Cron configuration
    def get_cron_jobs(self) -> List[Dict[str, Any]]:
        """Read the periodic job configuration table"""
        response = self.client.table("cron_jobs").select("*").execute()
        return response.data or []

    @staticmethod
    def now() -> datetime:
        """Return current timestamp (UTC)"""
        return datetime.now(timezone.utc)
