from pydantic import BaseModel, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime


class ScheduledTask(BaseModel):
    id: str
    user_id: str
    task_type: str  # 'email', 'chat_message', 'reminder', 'notification'
    title: str
    description: Optional[str] = None
    scheduled_for: datetime
    is_completed: bool = False
    metadata: Optional[Dict[str, Any]] = {}  # Nullable column
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, value):
        return {} if value is None else value

    class Config:
        from_attributes = True


class TaskOutcome(BaseModel):
    task_id: str
    task_type: str
    status: str  # 'completed', 'failed', 'invalid'
    message: str


class SchedulerRunResult(BaseModel):
    processed_count: int = 0
    completed: int = 0
    failed: int = 0
    outcomes: List[TaskOutcome] = []
