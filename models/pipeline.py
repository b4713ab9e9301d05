from pydantic import BaseModel
from typing import List, Optional


class EventOutcome(BaseModel):
    """Result of driving one RawEvent through the pipeline"""
    event_id: str
    status: str  # 'processed', 'failed', 'skipped' (claimed by another run)
    summary_id: Optional[str] = None
    suggestions_created: int = 0
    fallback_summary: bool = False
    error: Optional[str] = None


class BatchResult(BaseModel):
    processed_count: int = 0  # Events this run claimed
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: List[EventOutcome] = []
