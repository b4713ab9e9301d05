import yaml
import os
import json
from pathlib import Path
from typing import Dict, Any, List, Optional
import logging

logger = logging.getLogger(__name__)


class PromptManager:
    """
    Manages prompt templates with hot-reload support

    Loads prompts from YAML files and builds the summarization and
    action-suggestion prompts with the event content injected.
    """

    def __init__(self, prompts_dir: Optional[str] = None):
        if prompts_dir is None:
            # Default to prompts/ directory in the same location as this file
            prompts_dir = Path(__file__).parent

        self.prompts_dir = Path(prompts_dir)
        self.cache: Dict[str, Dict[str, Any]] = {}
        logger.info(f"PromptManager initialized with directory: {self.prompts_dir}")

    def get_prompt_config(self, prompt_name: str) -> Dict[str, Any]:
        """
        Load prompt configuration from YAML file with hot-reload support

        Args:
            prompt_name: Name of the prompt file (without .yaml extension)

        Returns:
            Dictionary containing the prompt configuration
        """
        filepath = self.prompts_dir / f"{prompt_name}.yaml"

        if not filepath.exists():
            raise FileNotFoundError(f"Prompt file not found: {filepath}")

        # Get file modification time for hot-reload
        mtime = os.path.getmtime(filepath)

        cache_key = prompt_name

        # Check if we need to reload (file changed or not in cache)
        if cache_key not in self.cache or self.cache[cache_key].get('mtime') != mtime:
            logger.info(f"Loading/reloading prompt: {prompt_name}")
            with open(filepath, 'r') as f:
                config = yaml.safe_load(f)

            self.cache[cache_key] = {
                'data': config,
                'mtime': mtime
            }

        return self.cache[cache_key]['data']

    def build_summarize_prompt(self, content: Any, source: str, metadata: Optional[Dict] = None) -> str:
        """
        Build the summarization prompt

        Args:
            content: Decoded event content
            source: Event source ('gmail', 'slack', ...)
            metadata: Optional extra context about the event

        Returns:
            Complete prompt string ready for Claude
        """
        config = self.get_prompt_config("summarize")

        sections = [config['system_role'].format(source=source)]
        sections.append(f"\nContent: {self._to_text(content, config.get('max_content_chars', 6000))}")
        sections.append(f"Metadata: {json.dumps(metadata or {}, default=str)}")

        sections.extend(self._build_list("Focus on:", config.get('focus', []), numbered=True))
        sections.append(f"\n{config['response_format']}")
        sections.extend(self._build_list("Guidelines for importance:", config.get('importance_guidelines', [])))

        return "\n".join(sections)

    def build_suggest_actions_prompt(
        self,
        summary: str,
        topic: str,
        source: str,
        original_content: Any,
        user_context: Optional[Dict] = None,
        max_suggestions: int = 3
    ) -> str:
        """Build the action-suggestion prompt for one summary"""
        config = self.get_prompt_config("suggest_actions")

        sections = [config['system_role']]
        sections.append(f"\nSummary: {summary}")
        sections.append(f"Topic: {topic}")
        sections.append(f"Source: {source}")
        sections.append(f"Original Content: {self._to_text(original_content, config.get('max_content_chars', 6000))}")
        sections.append(f"User Context: {json.dumps(user_context or {}, default=str)}")

        sections.append(f"\n{config['task'].format(max_suggestions=max_suggestions)}")
        sections.extend(self._build_list("Common action types:", config.get('action_types', [])))
        sections.append(f"\n{config['response_format']}")
        sections.extend(self._build_list("Guidelines:", config.get('guidelines', [])))

        return "\n".join(sections)

    def _build_list(self, header: str, items: List[str], numbered: bool = False) -> List[str]:
        if not items:
            return []
        lines = [f"\n{header}"]
        for i, item in enumerate(items, 1):
            lines.append(f"{i}. {item}" if numbered else f"- {item}")
        return lines

    @staticmethod
    def _to_text(value: Any, max_chars: int) -> str:
        text = value if isinstance(value, str) else json.dumps(value, default=str)
        return text[:max_chars]


# Singleton instance
prompt_manager = PromptManager()
