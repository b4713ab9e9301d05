from services.completion import CompletionService, CompletionUnavailable
from prompts.prompt_manager import PromptManager, prompt_manager as default_prompt_manager
from utils.replyability import is_replyable
from models.summary import Summary, SuggestionDraft
from models.result import Ok, Err, Result
from config import settings
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ActionSuggester:
    """Action-Suggestion Stage: proposes follow-up steps for a summary.

    Suggestions are natural-language prompts with an optional typed
    payload. They are not Actions; a surface decides whether to
    materialize one.
    """

    def __init__(
        self,
        completion: Optional[CompletionService] = None,
        prompts: Optional[PromptManager] = None,
        max_suggestions: Optional[int] = None,
    ):
        self.completion = completion or CompletionService()
        self.prompts = prompts or default_prompt_manager
        self.max_suggestions = max_suggestions or settings.MAX_SUGGESTIONS

    def suggest_actions(
        self,
        summary: Summary,
        original_content: Any,
        user_context: Optional[Dict] = None,
        source: str = "",
    ) -> Result:
        """Generate suggestions for one summary

        Returns:
            Ok(list of SuggestionDraft), possibly empty, or Err('transient')
            when the LLM call fails
        """
        if not is_replyable(original_content):
            logger.info(f"Summary {summary.id}: automated/no-reply content, no suggestions")
            return Ok([])

        if not self.completion.available:
            logger.info("Completion collaborator not configured - skipping action suggestions")
            return Ok([])

        try:
            prompt = self.prompts.build_suggest_actions_prompt(
                summary=summary.summary,
                topic=summary.topic or "",
                source=source,
                original_content=original_content,
                user_context=user_context,
                max_suggestions=self.max_suggestions,
            )
            result = self.completion.complete_json(prompt, max_tokens=500, temperature=0.3)
        except (CompletionUnavailable, FileNotFoundError) as e:
            return Err(kind="transient", detail=f"Action suggestion failed: {e}")

        if isinstance(result, dict):
            # Tolerate {"suggestions": [...]} wrappers
            result = result.get("suggestions", [])
        if not isinstance(result, list):
            return Err(kind="transient", detail=f"Unexpected suggestion format: {type(result).__name__}")

        suggestions = self._sanitize(result)
        logger.info(f"Generated {len(suggestions)} action suggestions for summary {summary.id}")
        return Ok(suggestions[: self.max_suggestions])

    def _sanitize(self, items: List[Any]) -> List[SuggestionDraft]:
        """Drop entries without a prompt; clamp confidence into [0.1, 1.0]"""
        suggestions = []
        for item in items:
            if not isinstance(item, dict):
                continue
            prompt = str(item.get("prompt") or "").strip()
            if not prompt:
                continue

            confidence = item.get("confidence_score")
            if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
                confidence = max(0.1, min(1.0, float(confidence)))
            else:
                confidence = None

            payload = item.get("payload")
            suggestions.append(SuggestionDraft(
                prompt=prompt,
                type=str(item["type"]).strip() if item.get("type") else None,
                confidence_score=confidence,
                requires_confirmation=item.get("requires_confirmation") is not False,
                payload=payload if isinstance(payload, dict) else None,
            ))
        return suggestions
