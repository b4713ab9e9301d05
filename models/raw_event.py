from pydantic import BaseModel, field_validator
from typing import Any, Optional
from datetime import datetime
import json


class RawEvent(BaseModel):
    id: str
    user_id: str
    source: str  # 'gmail', 'calendar', 'slack', 'notion', ...
    content: Any = None  # Opaque payload; stored as a JSON string by the collectors
    status: str = "raw"  # 'raw' -> 'processing' -> 'processed' | 'failed'
    event_type: Optional[str] = None
    integration_id: Optional[str] = None
    created_at: datetime

    @field_validator("content", mode="before")
    @classmethod
    def decode_content(cls, value):
        """Collectors store content as JSON text; plain strings are kept as-is"""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    class Config:
        from_attributes = True
