from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


IMPORTANCE_LEVELS = ("low", "medium", "high")
SUMMARY_MAX_CHARS = 200
FALLBACK_MODEL = "fallback"


class SummaryDraft(BaseModel):
    """Output of the Summarization Stage, before it is persisted"""
    summary: str = Field(max_length=SUMMARY_MAX_CHARS)
    topic: str
    entities: List[str] = []
    importance: str = "low"  # 'low', 'medium', 'high'
    llm_model_used: str
    model_version: str

    @property
    def is_fallback(self) -> bool:
        return self.llm_model_used == FALLBACK_MODEL


class Summary(BaseModel):
    id: str
    raw_event_id: Optional[str] = None
    user_id: str
    summary: str
    topic: Optional[str] = None
    entities: List[str] = []
    importance: str = "low"
    llm_model_used: Optional[str] = None
    model_version: Optional[str] = None
    is_viewed: bool = False  # Owned by the consuming surface
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SuggestionDraft(BaseModel):
    """A proposed next step produced by the Action-Suggestion Stage"""
    prompt: str
    type: Optional[str] = None  # Action type hint, e.g. 'send_email'
    confidence_score: Optional[float] = None
    requires_confirmation: bool = True
    payload: Optional[Dict[str, Any]] = None


class ActionSuggestion(BaseModel):
    id: str
    summary_id: str
    user_id: Optional[str] = None
    prompt: str
    type: Optional[str] = None
    confidence_score: Optional[float] = None
    requires_confirmation: Optional[bool] = True
    payload: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @property
    def prompt_text(self) -> str:
        return self.prompt

    class Config:
        from_attributes = True
