"""
Typed payloads for Actions and ScheduledTasks.

Actions carry a `type` and an opaque `payload`; scheduled tasks carry a
`task_type` and `metadata`. Both are validated here against a closed set of
models before anything is dispatched to an external service.
"""

from pydantic import BaseModel, ValidationError, field_validator, model_validator
from typing import Any, Dict, List, Optional, Type
from datetime import datetime, timedelta
from models.errors import ValidationFailed


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class EmailPayload(BaseModel):
    to: List[str]
    subject: str
    body: str
    cc: List[str] = []
    bcc: List[str] = []
    is_html: bool = False
    scheduled_for: Optional[datetime] = None  # Deferred send

    @field_validator("to", "cc", "bcc", mode="before")
    @classmethod
    def listify_recipients(cls, value):
        return _as_list(value)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_keys(cls, data):
        # Scheduled email metadata was written with camelCase keys and 'html'
        if isinstance(data, dict):
            data = dict(data)
            if "body" not in data and "html" in data:
                data["body"] = data.pop("html")
                data.setdefault("is_html", True)
            if "isHtml" in data:
                data.setdefault("is_html", data.pop("isHtml"))
            if "scheduledFor" in data:
                data.setdefault("scheduled_for", data.pop("scheduledFor"))
        return data

    @field_validator("to")
    @classmethod
    def require_recipient(cls, value):
        if not value:
            raise ValueError("at least one recipient is required")
        return value


class ChatMessagePayload(BaseModel):
    text: str
    channel: Optional[str] = None
    user: Optional[str] = None  # Opens a DM when no channel is given
    thread_ts: Optional[str] = None
    scheduled_for: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_keys(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if "text" not in data and "message" in data:
                data["text"] = data.pop("message")
            if "threadTs" in data:
                data.setdefault("thread_ts", data.pop("threadTs"))
            if "scheduledFor" in data:
                data.setdefault("scheduled_for", data.pop("scheduledFor"))
        return data

    @model_validator(mode="after")
    def require_target(self):
        if not self.channel and not self.user:
            raise ValueError("either channel or user must be specified")
        return self


class CalendarEventPayload(BaseModel):
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    attendees: List[str] = []
    description: str = ""

    @field_validator("attendees", mode="before")
    @classmethod
    def listify_attendees(cls, value):
        return _as_list(value)

    @model_validator(mode="after")
    def default_end_time(self):
        if self.end_time is None:
            self.end_time = self.start_time + timedelta(hours=1)
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ReminderPayload(BaseModel):
    title: str
    remind_at: datetime
    description: str = ""


class NotificationMetadata(BaseModel):
    """Metadata for reminder and notification tasks. Extra keys are kept."""
    priority: int = 2
    created_by: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, value):
        return 2 if value is None else value

    class Config:
        extra = "allow"


ACTION_PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    "send_email": EmailPayload,
    "send_slack": ChatMessagePayload,
    "send_chat_message": ChatMessagePayload,
    "schedule_meeting": CalendarEventPayload,
    "create_event": CalendarEventPayload,
    "create_reminder": ReminderPayload,
}

TASK_METADATA_MODELS: Dict[str, Type[BaseModel]] = {
    "email": EmailPayload,
    "chat_message": ChatMessagePayload,
    "reminder": NotificationMetadata,
    "notification": NotificationMetadata,
}

# Legacy task type mapping (older rows were written with the provider name)
LEGACY_TASK_TYPE_MAPPING = {
    "slack_message": "chat_message",
}


def normalize_task_type(task_type: str) -> str:
    return LEGACY_TASK_TYPE_MAPPING.get(task_type, task_type)


def _validate(models: Dict[str, Type[BaseModel]], kind: str, tag: str, data: Any) -> BaseModel:
    model = models.get(tag)
    if model is None:
        raise ValidationFailed(f"Unsupported {kind}: {tag}")
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or kind}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationFailed(f"Invalid payload for {tag}: {errors}") from e


def parse_action_payload(action_type: str, payload: Any) -> BaseModel:
    """Validate an action payload against the model registered for its type"""
    return _validate(ACTION_PAYLOAD_MODELS, "action type", action_type, payload)


def parse_task_metadata(task_type: str, metadata: Any) -> BaseModel:
    """Validate scheduled task metadata against the model for its task type"""
    return _validate(TASK_METADATA_MODELS, "task type", normalize_task_type(task_type), metadata)
