from anthropic import Anthropic
from config import settings
from typing import Any, Optional
import json
import logging

logger = logging.getLogger(__name__)


class CompletionUnavailable(Exception):
    """The generative-text collaborator is not configured or the call failed"""


class CompletionService:
    """Thin wrapper around Claude: prompt in, parsed JSON out"""

    def __init__(self, client=None, model: Optional[str] = None):
        self.model = model or settings.LLM_MODEL
        self.client = client
        if self.client is None and settings.ANTHROPIC_API_KEY:
            try:
                self.client = Anthropic(
                    api_key=settings.ANTHROPIC_API_KEY,
                    timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
                    max_retries=0,
                )
            except Exception as e:
                logger.warning(f"Anthropic client not available: {e}")
        elif self.client is None:
            logger.warning("ANTHROPIC_API_KEY not configured - completions disabled")

    @property
    def available(self) -> bool:
        return self.client is not None

    def complete_json(self, prompt: str, max_tokens: int = 500, temperature: float = 0.2) -> Any:
        """Send a prompt and parse the reply as JSON

        Raises:
            CompletionUnavailable: no client, API error, or unparseable reply
        """
        if not self.client:
            raise CompletionUnavailable("Completion client not configured")

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
            content = response.content[0].text.strip()
        except Exception as e:
            logger.error(f"Error calling Claude: {e}")
            raise CompletionUnavailable(str(e)) from e

        # Strip markdown if present
        if content.startswith("```"):
            lines = content.split("\n")
            content = "\n".join(lines[1:-1]) if len(lines) > 2 else content
            content = content.replace("```json", "").replace("```", "").strip()

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"JSON parsing error: {e}")
            logger.error(f"Raw content that failed to parse: {content[:1000]}")
            raise CompletionUnavailable(f"Unparseable completion: {e}") from e
