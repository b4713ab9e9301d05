from services.database import DatabaseService
from services.audit_ledger import AuditLedger
from processors.summarizer import Summarizer
from processors.action_suggester import ActionSuggester
from models.raw_event import RawEvent
from models.summary import Summary
from models.pipeline import EventOutcome, BatchResult
from models.audit_entry import (
    AuditEntry,
    STAGE_SUMMARIZED,
    STAGE_ACTION_SUGGESTED,
    STAGE_COMPLETED,
)
from models.errors import ValidationFailed
from config import settings
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import logging
import time

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Drives raw events through summarization and action suggestion.

    Each event is claimed with a conditional update (raw -> processing)
    before any work happens, so overlapping runs never process the same
    event twice. Failures are isolated per event and recorded in the audit
    ledger; a batch only fails as a whole if the initial fetch fails.
    """

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        summarizer: Optional[Summarizer] = None,
        suggester: Optional[ActionSuggester] = None,
        ledger: Optional[AuditLedger] = None,
        max_workers: Optional[int] = None,
    ):
        self.db = db or DatabaseService()
        self.summarizer = summarizer or Summarizer()
        self.suggester = suggester or ActionSuggester()
        self.ledger = ledger or AuditLedger(db=self.db)
        self.max_workers = max_workers or settings.PIPELINE_MAX_WORKERS

        logger.info("PipelineOrchestrator initialized")

    def run_batch(self, limit: Optional[int] = None) -> BatchResult:
        """Process up to `limit` raw events, oldest first

        Raises:
            ValidationFailed: limit outside 1..PIPELINE_MAX_BATCH_LIMIT
        """
        limit = settings.PIPELINE_BATCH_LIMIT if limit is None else limit
        if not 1 <= limit <= settings.PIPELINE_MAX_BATCH_LIMIT:
            raise ValidationFailed(f"limit must be between 1 and {settings.PIPELINE_MAX_BATCH_LIMIT}")

        logger.info(f"Fetching up to {limit} raw events")
        events = self.db.get_raw_events(limit=limit)

        if not events:
            logger.info("No raw events to process")
            return BatchResult()

        logger.info(f"Processing batch of {len(events)} events")
        start_time = time.time()

        workers = max(1, min(self.max_workers, len(events)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipeline") as pool:
            outcomes = list(pool.map(self._claim_and_process, events))

        result = BatchResult(
            processed_count=sum(1 for o in outcomes if o.status != "skipped"),
            succeeded=sum(1 for o in outcomes if o.status == "processed"),
            failed=sum(1 for o in outcomes if o.status == "failed"),
            skipped=sum(1 for o in outcomes if o.status == "skipped"),
            outcomes=outcomes,
        )

        logger.info(
            f"Batch complete in {time.time() - start_time:.2f}s: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    def process_event(self, event_id: str) -> Optional[EventOutcome]:
        """Claim and process one specific event (on-demand trigger)

        Returns:
            The outcome, or None if the event does not exist
        """
        event = self.db.get_event_by_id(event_id)
        if not event:
            logger.warning(f"Event {event_id} not found")
            return None

        if event.status != "raw":
            logger.info(f"Event {event_id} is {event.status}, skipping")
            return EventOutcome(event_id=event_id, status="skipped", error=f"Event is {event.status}")

        return self._claim_and_process(event)

    def _claim_and_process(self, event: RawEvent) -> EventOutcome:
        try:
            claimed = self.db.claim_event(event.id)
        except Exception as e:
            logger.error(f"Could not claim event {event.id}: {e}", exc_info=True)
            return EventOutcome(event_id=event.id, status="skipped", error=f"Claim failed: {e}")

        if not claimed:
            logger.info(f"Event {event.id} already claimed by another run")
            return EventOutcome(event_id=event.id, status="skipped")

        try:
            return self._process_claimed(event)
        except Exception as e:
            # Steps after the summary audit handle their own failures
            logger.error(f"Unexpected error processing event {event.id}: {e}", exc_info=True)
            self._mark_failed(event, STAGE_SUMMARIZED, f"Unexpected error: {e}")
            return EventOutcome(event_id=event.id, status="failed", error=str(e))

    def _process_claimed(self, event: RawEvent) -> EventOutcome:
        logger.info(f"Processing event {event.id} from {event.source}")

        # Step 1: Summarize and persist
        result = self.summarizer.summarize(
            event.content,
            event.source,
            metadata={"event_type": event.event_type} if event.event_type else None,
        )
        if not result.ok:
            self._mark_failed(event, STAGE_SUMMARIZED, result.detail)
            return EventOutcome(event_id=event.id, status="failed", error=result.detail)

        draft = result.value
        try:
            summary = self.db.create_summary({
                "raw_event_id": event.id,
                "user_id": event.user_id,
                **draft.model_dump(),
                "processed_at": self.db.now().isoformat(),
            })
        except Exception as e:
            logger.error(f"Failed to store summary for event {event.id}: {e}", exc_info=True)
            self._mark_failed(event, STAGE_SUMMARIZED, f"Failed to store summary: {e}")
            return EventOutcome(event_id=event.id, status="failed", error=str(e))

        self.ledger.append(AuditEntry.success(
            STAGE_SUMMARIZED,
            f"Summary {summary.id} created ({draft.importance}, model={draft.llm_model_used})",
            user_id=event.user_id,
            raw_event_id=event.id,
        ))

        # Step 2: Suggest actions (never fatal)
        suggestions_created = self._suggest(event, summary)

        # Step 3: Mark processed
        try:
            marked = self.db.transition_event_status(event.id, "processing", "processed")
        except Exception as e:
            logger.error(f"Failed to mark event {event.id} processed: {e}", exc_info=True)
            self._mark_failed(event, STAGE_COMPLETED, f"Failed to mark processed: {e}")
            return EventOutcome(event_id=event.id, status="failed", summary_id=summary.id,
                                suggestions_created=suggestions_created, error=str(e))

        if not marked:
            message = "Event left 'processing' before it could be marked processed"
            logger.warning(f"Event {event.id}: {message}")
            self.ledger.append(AuditEntry.failed(
                STAGE_COMPLETED, message, user_id=event.user_id, raw_event_id=event.id,
            ))
            return EventOutcome(event_id=event.id, status="failed", summary_id=summary.id,
                                suggestions_created=suggestions_created, error=message)

        self.ledger.append(AuditEntry.success(
            STAGE_COMPLETED,
            f"Processed with {suggestions_created} suggestion(s)",
            user_id=event.user_id,
            raw_event_id=event.id,
        ))
        logger.info(f"Event {event.id} processed: summary {summary.id}, {suggestions_created} suggestions")

        return EventOutcome(
            event_id=event.id,
            status="processed",
            summary_id=summary.id,
            suggestions_created=suggestions_created,
            fallback_summary=draft.is_fallback,
        )

    def _suggest(self, event: RawEvent, summary: Summary) -> int:
        """Run the suggestion stage; returns the number of stored suggestions"""
        try:
            result = self.suggester.suggest_actions(summary, event.content, source=event.source)
            if result.ok:
                stored = self.db.create_suggestions([
                    {"summary_id": summary.id, "user_id": event.user_id, **draft.model_dump(exclude_none=True)}
                    for draft in result.value
                ])
            error = None if result.ok else (result.detail or result.kind)
        except Exception as e:
            logger.error(f"Storing suggestions failed for event {event.id}: {e}", exc_info=True)
            error = str(e) or type(e).__name__

        if error:
            logger.warning(f"Action suggestion failed for event {event.id}: {error}")
            self.ledger.append(AuditEntry.failed(
                STAGE_ACTION_SUGGESTED, error, user_id=event.user_id, raw_event_id=event.id,
            ))
            return 0

        self.ledger.append(AuditEntry.success(
            STAGE_ACTION_SUGGESTED,
            f"{len(stored)} suggestion(s) created",
            user_id=event.user_id,
            raw_event_id=event.id,
        ))
        return len(stored)

    def _mark_failed(self, event: RawEvent, stage: str, message: str):
        """Best effort: the failed status and its audit entry"""
        try:
            self.db.transition_event_status(event.id, "processing", "failed")
        except Exception as e:
            logger.error(f"Could not mark event {event.id} failed: {e}")

        self.ledger.append(AuditEntry.failed(
            stage, message, user_id=event.user_id, raw_event_id=event.id,
        ))
