from services.database import DatabaseService
from services.senders import MailSender, ChatSender, CalendarClient
from models.action import Action, ExecutionResult
from models.payloads import (
    parse_action_payload,
    EmailPayload,
    ChatMessagePayload,
    CalendarEventPayload,
    ReminderPayload,
)
from models.errors import ChiefError
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ActionExecutor:
    """
    Turns a confirmed Action into exactly one external effect.

    send_email        -> Gmail send (or a deferred 'email' ScheduledTask)
    send_chat_message -> Slack post (or a deferred 'chat_message' ScheduledTask)
    create_event      -> Google Calendar insert
    create_reminder   -> 'reminder' ScheduledTask

    Stateless. Never retries and never raises: every failure comes back as
    an ExecutionResult with success=False.
    """

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        mail_sender: Optional[MailSender] = None,
        chat_sender: Optional[ChatSender] = None,
        calendar_client: Optional[CalendarClient] = None,
    ):
        self.db = db or DatabaseService()
        self.mail_sender = mail_sender or MailSender(db=self.db)
        self.chat_sender = chat_sender or ChatSender(db=self.db)
        self.calendar_client = calendar_client or CalendarClient(db=self.db)

    def execute(self, action: Action) -> ExecutionResult:
        logger.info(f"Executing action {action.id} ({action.type}) for user {action.user_id}")

        try:
            payload = parse_action_payload(action.type, action.payload)

            if isinstance(payload, EmailPayload):
                return self._send_email(action, payload)
            if isinstance(payload, ChatMessagePayload):
                return self._send_chat_message(action, payload)
            if isinstance(payload, CalendarEventPayload):
                return self._create_event(action, payload)
            if isinstance(payload, ReminderPayload):
                return self._create_reminder(action, payload)

            return ExecutionResult(success=False, message=f"No executor for action type {action.type}",
                                   error="unsupported_type")

        except ChiefError as e:
            logger.warning(f"Action {action.id} failed ({e.kind}): {e.message}")
            return ExecutionResult(success=False, message=f"Failed to execute {action.type}",
                                   error=e.message, data={"kind": e.kind})
        except Exception as e:
            logger.error(f"Unexpected error executing action {action.id}: {e}", exc_info=True)
            return ExecutionResult(success=False, message=f"Failed to execute {action.type}",
                                   error=str(e), data={"kind": "internal"})

    def _send_email(self, action: Action, payload: EmailPayload) -> ExecutionResult:
        if payload.scheduled_for:
            return self._defer(action, "email", f"Send email: {payload.subject}", payload)

        message_id = self.mail_sender.send(action.user_id, payload)
        return ExecutionResult(
            success=True,
            message=f"Email sent to {', '.join(payload.to)}",
            provider_id=message_id,
        )

    def _send_chat_message(self, action: Action, payload: ChatMessagePayload) -> ExecutionResult:
        if payload.scheduled_for:
            target = payload.channel or payload.user
            return self._defer(action, "chat_message", f"Send Slack message to {target}", payload)

        ts = self.chat_sender.send(action.user_id, payload)
        return ExecutionResult(
            success=True,
            message=f"Message sent to {payload.channel or payload.user}",
            provider_id=ts,
        )

    def _create_event(self, action: Action, payload: CalendarEventPayload) -> ExecutionResult:
        event_id = self.calendar_client.create_event(action.user_id, payload)
        return ExecutionResult(
            success=True,
            message=f"Calendar event '{payload.title}' created",
            provider_id=event_id,
            data={"start_time": payload.start_time.isoformat(), "end_time": payload.end_time.isoformat()},
        )

    def _create_reminder(self, action: Action, payload: ReminderPayload) -> ExecutionResult:
        task = self.db.create_scheduled_task({
            "user_id": action.user_id,
            "task_type": "reminder",
            "title": payload.title,
            "description": payload.description,
            "scheduled_for": payload.remind_at.isoformat(),
            "is_completed": False,
            "metadata": {"priority": 2, "created_by": "action", "action_id": action.id},
        })
        return ExecutionResult(
            success=True,
            message=f"Reminder '{payload.title}' set for {payload.remind_at.isoformat()}",
            provider_id=task.id,
        )

    def _defer(self, action: Action, task_type: str, title: str, payload) -> ExecutionResult:
        """Store a deferred send as a ScheduledTask; the Task Scheduler sends it when due"""
        scheduled_for = payload.scheduled_for
        metadata = payload.model_dump(mode="json", exclude={"scheduled_for"}, exclude_none=True)

        task = self.db.create_scheduled_task({
            "user_id": action.user_id,
            "task_type": task_type,
            "title": title,
            "description": f"Scheduled from action {action.id}",
            "scheduled_for": scheduled_for.isoformat(),
            "is_completed": False,
            "metadata": metadata,
        })
        logger.info(f"Deferred {task_type} for action {action.id} until {scheduled_for.isoformat()} (task {task.id})")
        return ExecutionResult(
            success=True,
            message=f"Scheduled {task_type.replace('_', ' ')} for {scheduled_for.isoformat()}",
            provider_id=task.id,
            data={"scheduled": True},
        )
