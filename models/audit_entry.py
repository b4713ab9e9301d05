from pydantic import BaseModel
from typing import Optional
from datetime import datetime


# Stages written to the audit ledger
STAGE_SUMMARIZED = "summarized"
STAGE_ACTION_SUGGESTED = "action_suggested"
STAGE_COMPLETED = "completed"
STAGE_ACTION_CREATED = "action_created"
STAGE_ACTION_CANCELLED = "action_cancelled"
STAGE_ACTION_EXECUTED = "action_executed"
STAGE_TASK_EXECUTED = "task_executed"


class AuditEntry(BaseModel):
    id: Optional[str] = None
    raw_event_id: Optional[str] = None
    user_id: Optional[str] = None
    stage: str
    status: str  # 'success' or 'failed'
    message: str = ""
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def success(cls, stage: str, message: str, user_id: str = None, raw_event_id: str = None) -> "AuditEntry":
        return cls(stage=stage, status="success", message=message, user_id=user_id, raw_event_id=raw_event_id)

    @classmethod
    def failed(cls, stage: str, message: str, user_id: str = None, raw_event_id: str = None) -> "AuditEntry":
        return cls(stage=stage, status="failed", message=message, user_id=user_id, raw_event_id=raw_event_id)


class AuditQuery(BaseModel):
    raw_event_id: Optional[str] = None
    user_id: Optional[str] = None
    stage: Optional[str] = None
    status: Optional[str] = None
    since: Optional[datetime] = None
    limit: int = 100
