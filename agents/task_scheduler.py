from services.database import DatabaseService
from services.audit_ledger import AuditLedger
from services.senders import MailSender, ChatSender
from models.scheduled_task import ScheduledTask, TaskOutcome, SchedulerRunResult
from models.payloads import parse_task_metadata, normalize_task_type, EmailPayload, ChatMessagePayload
from models.audit_entry import AuditEntry, STAGE_TASK_EXECUTED
from models.errors import ChiefError, ValidationFailed
from pydantic import ValidationError
from datetime import datetime
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

REMINDER_ACTION_SUGGESTIONS = ["Mark as complete", "Dismiss reminder"]


class TaskScheduler:
    """
    Dispatches ScheduledTasks whose time has come.

    Delivery is at-least-once: is_completed is only set after a successful
    dispatch, so a failed send is retried on the next run, and a send whose
    completion write fails may be repeated.
    """

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        mail_sender: Optional[MailSender] = None,
        chat_sender: Optional[ChatSender] = None,
        ledger: Optional[AuditLedger] = None,
    ):
        self.db = db or DatabaseService()
        self.mail_sender = mail_sender or MailSender(db=self.db)
        self.chat_sender = chat_sender or ChatSender(db=self.db)
        self.ledger = ledger or AuditLedger(db=self.db)

    def run_due_tasks(self, now: Optional[datetime] = None) -> SchedulerRunResult:
        """Process every incomplete task due at or before `now`"""
        now = now or self.db.now()
        rows = self.db.get_due_tasks(now)

        if not rows:
            logger.info("No scheduled tasks due")
            return SchedulerRunResult()

        logger.info(f"Processing {len(rows)} due scheduled tasks")

        outcomes = [self._run_task(row) for row in rows]
        result = SchedulerRunResult(
            processed_count=len(outcomes),
            completed=sum(1 for o in outcomes if o.status == "completed"),
            failed=sum(1 for o in outcomes if o.status != "completed"),
            outcomes=outcomes,
        )

        logger.info(f"Scheduler run complete: {result.completed} completed, {result.failed} failed")
        return result

    def _run_task(self, row: Dict[str, Any]) -> TaskOutcome:
        task_id = str(row.get("id", ""))
        task_type = normalize_task_type(str(row.get("task_type", "")))

        # Malformed rows and unknown types can never succeed; retire them
        try:
            task = ScheduledTask(**{**row, "task_type": task_type})
            metadata = parse_task_metadata(task_type, task.metadata)
        except (ValidationError, ValidationFailed) as e:
            message = e.message if isinstance(e, ValidationFailed) else f"Malformed task row: {e.error_count()} error(s)"
            logger.warning(f"Task {task_id} ({task_type}) is invalid: {message}")
            self._audit(row.get("user_id"), False, f"Task {task_id} ({task_type}) invalid: {message}")
            self._complete(task_id)
            return TaskOutcome(task_id=task_id, task_type=task_type, status="invalid", message=message)

        try:
            message = self._dispatch(task, metadata)
        except ChiefError as e:
            logger.warning(f"Task {task.id} ({task_type}) failed, will retry: {e.message}")
            self._audit(task.user_id, False, f"Task {task.id} ({task_type}) failed: {e.message}")
            return TaskOutcome(task_id=task.id, task_type=task_type, status="failed", message=e.message)
        except Exception as e:
            logger.error(f"Unexpected error running task {task.id}: {e}", exc_info=True)
            self._audit(task.user_id, False, f"Task {task.id} ({task_type}) failed: {e}")
            return TaskOutcome(task_id=task.id, task_type=task_type, status="failed", message=str(e))

        if not self._complete(task.id):
            logger.warning(f"Task {task.id} was dispatched but could not be marked completed")

        self._audit(task.user_id, True, f"Task {task.id} ({task_type}): {message}")
        return TaskOutcome(task_id=task.id, task_type=task_type, status="completed", message=message)

    def _dispatch(self, task: ScheduledTask, metadata) -> str:
        if isinstance(metadata, EmailPayload):
            message_id = self.mail_sender.send(task.user_id, metadata)
            return f"Email sent to {', '.join(metadata.to)} ({message_id})"

        if isinstance(metadata, ChatMessagePayload):
            ts = self.chat_sender.send(task.user_id, metadata)
            return f"Message sent to {metadata.channel or metadata.user} ({ts})"

        # reminder / notification
        update_id = self.db.create_processed_update({
            "user_id": task.user_id,
            "source": "scheduled_task",
            "source_id": task.id,
            "content": {
                "title": task.title,
                "description": task.description,
                "task_type": task.task_type,
                "scheduled_for": task.scheduled_for.isoformat(),
            },
            "summary": f"Reminder: {task.title}",
            "action_suggestions": REMINDER_ACTION_SUGGESTIONS,
            "priority": metadata.priority,
        })
        return f"Reminder delivered as update {update_id}"

    def _complete(self, task_id: str) -> bool:
        try:
            return self.db.mark_task_completed(task_id)
        except Exception as e:
            logger.error(f"Failed to mark task {task_id} completed: {e}")
            return False

    def _audit(self, user_id: Optional[str], success: bool, message: str):
        entry = AuditEntry.success if success else AuditEntry.failed
        self.ledger.append(entry(STAGE_TASK_EXECUTED, message, user_id=user_id))
