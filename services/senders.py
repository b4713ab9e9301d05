"""
Outbound senders for the external services Chief acts on.

Each sender makes exactly one provider call per invocation (plus the DM
channel lookup Slack needs), with a bounded timeout and no retries. Access
tokens are read from user_integrations; acquiring and refreshing them is
handled elsewhere.
"""

from services.database import DatabaseService
from models.payloads import EmailPayload, ChatMessagePayload, CalendarEventPayload
from models.errors import SenderError, IntegrationNotFound
from config import settings
from email.message import EmailMessage
from typing import Dict, Optional
import base64
import logging
import requests

logger = logging.getLogger(__name__)

GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
SLACK_OPEN_CONVERSATION_URL = "https://slack.com/api/conversations.open"
CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"


class BaseSender:
    integration_type: str = ""

    def __init__(self, db: Optional[DatabaseService] = None, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.db = db or DatabaseService()
        self.session = session or requests.Session()
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS

    def _access_token(self, user_id: str) -> str:
        integration = self.db.get_active_integration(user_id, self.integration_type)
        if not integration or not integration.get("access_token"):
            raise IntegrationNotFound(f"{self.integration_type} integration not found or inactive for user {user_id}")
        return integration["access_token"]

    def _post(self, url: str, token: str, body: Dict) -> Dict:
        try:
            response = self.session.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SenderError(f"{self.integration_type} request failed: {e}") from e

        if not response.ok:
            raise SenderError(
                f"{self.integration_type} API error {response.status_code}: {response.text[:300]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SenderError(f"{self.integration_type} returned a non-JSON response") from e


class MailSender(BaseSender):
    integration_type = "gmail"

    def send(self, user_id: str, request: EmailPayload) -> str:
        """Send an email through Gmail

        Returns:
            Gmail message id
        """
        token = self._access_token(user_id)

        message = EmailMessage()
        message["To"] = ", ".join(request.to)
        if request.cc:
            message["Cc"] = ", ".join(request.cc)
        if request.bcc:
            message["Bcc"] = ", ".join(request.bcc)
        message["Subject"] = request.subject
        message.set_content(request.body, subtype="html" if request.is_html else "plain")

        raw = base64.urlsafe_b64encode(message.as_bytes()).decode().rstrip("=")
        result = self._post(GMAIL_SEND_URL, token, {"raw": raw})

        logger.info(f"Email sent for user {user_id} to {', '.join(request.to)}")
        return result.get("id", "")


class ChatSender(BaseSender):
    integration_type = "slack"

    def send(self, user_id: str, request: ChatMessagePayload) -> str:
        """Post a Slack message, opening a DM when only a user is given

        Returns:
            Slack message timestamp (its message id)
        """
        token = self._access_token(user_id)

        channel = request.channel
        if not channel:
            dm = self._slack_call(SLACK_OPEN_CONVERSATION_URL, token, {"users": request.user})
            channel = dm["channel"]["id"]

        body = {"channel": channel, "text": request.text}
        if request.thread_ts:
            body["thread_ts"] = request.thread_ts

        result = self._slack_call(SLACK_POST_MESSAGE_URL, token, body)
        logger.info(f"Slack message sent for user {user_id} to {channel}: {result.get('ts')}")
        return result.get("ts", "")

    def _slack_call(self, url: str, token: str, body: Dict) -> Dict:
        # Slack reports failures with HTTP 200 and ok=false
        result = self._post(url, token, body)
        if not result.get("ok"):
            raise SenderError(f"Slack API error: {result.get('error', 'unknown_error')}")
        return result


class CalendarClient(BaseSender):
    integration_type = "calendar"

    def create_event(self, user_id: str, request: CalendarEventPayload) -> str:
        """Create an event in the user's primary Google Calendar

        Returns:
            Calendar event id
        """
        token = self._access_token(user_id)

        body = {
            "summary": request.title,
            "description": request.description,
            "start": {"dateTime": request.start_time.isoformat()},
            "end": {"dateTime": request.end_time.isoformat()},
        }
        if request.attendees:
            body["attendees"] = [{"email": email} for email in request.attendees]

        result = self._post(CALENDAR_EVENTS_URL, token, body)
        logger.info(f"Calendar event '{request.title}' created for user {user_id}")
        return result.get("id", "")
