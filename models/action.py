from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class Action(BaseModel):
    id: str
    user_id: str
    type: str  # See models.payloads.ACTION_PAYLOAD_MODELS
    payload: Dict[str, Any] = {}
    status: str = "pending"  # 'pending' -> 'confirmed' -> 'executed' | 'failed', or 'pending' -> 'cancelled'
    confirmation_prompt: Optional[str] = None
    requires_confirmation: bool = True
    suggestion_id: Optional[str] = None
    created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExecutionResult(BaseModel):
    """Structured outcome of one Action Executor call"""
    success: bool
    message: str
    provider_id: Optional[str] = None  # Gmail message id, Slack ts, Calendar event id, task id
    data: Dict[str, Any] = {}
    error: Optional[str] = None


class ActionOutcome(BaseModel):
    """What the caller (chat/voice surface) sees after a lifecycle operation"""
    success: bool
    action_id: str
    status: str
    message: str
    confirmation_prompt: Optional[str] = None
    execution: Optional[ExecutionResult] = None
