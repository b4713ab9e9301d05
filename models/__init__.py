# Models module - Pydantic models for all database tables
from models.raw_event import RawEvent
from models.summary import Summary, SummaryDraft, ActionSuggestion, SuggestionDraft
from models.action import Action, ActionOutcome, ExecutionResult
from models.scheduled_task import ScheduledTask, TaskOutcome, SchedulerRunResult
from models.audit_entry import AuditEntry, AuditQuery
from models.pipeline import EventOutcome, BatchResult
from models.result import Ok, Err, Result

__all__ = [
    "RawEvent",
    "Summary",
    "SummaryDraft",
    "ActionSuggestion",
    "SuggestionDraft",
    "Action",
    "ActionOutcome",
    "ExecutionResult",
    "ScheduledTask",
    "TaskOutcome",
    "SchedulerRunResult",
    "AuditEntry",
    "AuditQuery",
    "EventOutcome",
    "BatchResult",
    "Ok",
    "Err",
    "Result",
]
