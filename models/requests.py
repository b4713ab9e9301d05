"""
Request bodies for the HTTP surface.
"""

from pydantic import BaseModel
from typing import Any, Dict, Optional


class PipelineRunRequest(BaseModel):
    limit: Optional[int] = None


class ActionConfirmationRequest(BaseModel):
    """Request from a chat/voice surface answering a confirmation prompt"""
    action_id: str
    user_id: str
    confirmed: bool


class CreateActionRequest(BaseModel):
    user_id: str
    type: str
    payload: Dict[str, Any]
    requires_confirmation: bool = True
    confirmation_prompt: Optional[str] = None


class MaterializeSuggestionRequest(BaseModel):
    user_id: str
