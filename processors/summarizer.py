from services.completion import CompletionService, CompletionUnavailable
from prompts.prompt_manager import PromptManager, prompt_manager as default_prompt_manager
from utils.text_cleaner import TextCleaner
from models.summary import SummaryDraft, IMPORTANCE_LEVELS, SUMMARY_MAX_CHARS, FALLBACK_MODEL
from models.result import Ok, Err, Result
from config import settings
from typing import Any, Dict, List, Optional
import logging
import yaml

logger = logging.getLogger(__name__)


class Summarizer:
    """Summarization Stage: one raw event in, one structured summary out.

    Never fails because the LLM is down. Any collaborator problem yields a
    deterministic fallback summary marked with model 'fallback' and
    importance 'low'.
    """

    def __init__(
        self,
        completion: Optional[CompletionService] = None,
        prompts: Optional[PromptManager] = None,
    ):
        self.completion = completion or CompletionService()
        self.prompts = prompts or default_prompt_manager
        self.text_cleaner = TextCleaner()

    def summarize(self, content: Any, source: str, metadata: Optional[Dict] = None) -> Result:
        """Summarize event content

        Args:
            content: Decoded RawEvent content (dict, list or str)
            source: Event source name
            metadata: Optional extra context passed to the LLM

        Returns:
            Ok(SummaryDraft), or Err('validation') when there is nothing to summarize
        """
        flat_text = self.text_cleaner.flatten(content)
        if not flat_text or flat_text in ("{}", "[]", "null"):
            return Err(kind="validation", detail=f"Empty {source} content, nothing to summarize")

        if not self.completion.available:
            logger.warning("Completion collaborator not configured - using fallback summary")
            return Ok(self.fallback_summary(content, source))

        try:
            prompt = self.prompts.build_summarize_prompt(content, source, metadata)
            result = self.completion.complete_json(prompt, max_tokens=300, temperature=0.2)
        except (CompletionUnavailable, FileNotFoundError, yaml.YAMLError, KeyError, ValueError) as e:
            logger.warning(f"Summarization degraded to fallback for {source} content: {e}")
            return Ok(self.fallback_summary(content, source))

        if not isinstance(result, dict):
            logger.warning(f"Unexpected completion shape {type(result).__name__} - using fallback summary")
            return Ok(self.fallback_summary(content, source))

        return Ok(self._to_draft(result, source))

    def fallback_summary(self, content: Any, source: str) -> SummaryDraft:
        """Deterministic summary used whenever the LLM cannot be used"""
        text = self.text_cleaner.flatten(content)
        return SummaryDraft(
            summary=self.text_cleaner.truncate(f"{source} update: {text}", SUMMARY_MAX_CHARS),
            topic=f"{source.replace('_', ' ').title()} Update",
            entities=[],
            importance="low",
            llm_model_used=FALLBACK_MODEL,
            model_version=settings.LLM_MODEL_VERSION,
        )

    def _to_draft(self, result: Dict, source: str) -> SummaryDraft:
        summary_text = self.text_cleaner.clean(str(result.get("summary") or f"{source} update"))
        topic = str(result.get("topic") or f"{source.replace('_', ' ').title()} Update").strip()

        return SummaryDraft(
            summary=self.text_cleaner.truncate(summary_text, SUMMARY_MAX_CHARS),
            topic=topic,
            entities=self.normalize_entities(result.get("entities")),
            importance=self.normalize_importance(result.get("importance")),
            llm_model_used=self.completion.model,
            model_version=settings.LLM_MODEL_VERSION,
        )

    @staticmethod
    def normalize_importance(value: Any) -> str:
        """Anything outside low/medium/high is treated as low"""
        if isinstance(value, str) and value.strip().lower() in IMPORTANCE_LEVELS:
            return value.strip().lower()
        return "low"

    @staticmethod
    def normalize_entities(value: Any) -> List[str]:
        """Ordered, de-duplicated list of non-empty strings"""
        if not isinstance(value, list):
            return []
        seen = set()
        entities = []
        for item in value:
            name = str(item).strip() if item is not None else ""
            if name and name.lower() not in seen:
                seen.add(name.lower())
                entities.append(name)
        return entities
