from typing import Any
import json
import re


class TextCleaner:
    @staticmethod
    def clean(text: str) -> str:
        """Clean and normalize text"""
        # Strip HTML tags left over from email bodies
        text = re.sub(r"<[^>]+>", " ", text)

        # Remove excessive whitespace
        text = re.sub(r"\s+", " ", text)

        # Remove markdown artifacts
        text = re.sub(r"\*\*", "", text)
        text = re.sub(r"__", "", text)

        # Normalize quotes
        text = text.replace("“", '"').replace("”", '"')
        text = text.replace("‘", "'").replace("’", "'")

        # Strip leading/trailing whitespace
        text = text.strip()

        return text

    @classmethod
    def flatten(cls, content: Any) -> str:
        """Render structured event content as one line of readable text

        Prefers the human-readable fields collectors put in the payload
        (subject, snippet, body, text, ...) over a raw JSON dump.
        """
        if content is None:
            return ""
        if isinstance(content, str):
            return cls.clean(content)
        if isinstance(content, dict):
            parts = []
            for key in ("subject", "title", "summary", "snippet", "body", "text", "description"):
                value = content.get(key)
                if isinstance(value, str) and value.strip():
                    parts.append(value)
            if parts:
                return cls.clean(" - ".join(parts))
        return cls.clean(json.dumps(content, default=str))

    @staticmethod
    def truncate(text: str, max_chars: int, suffix: str = "...") -> str:
        if len(text) <= max_chars:
            return text
        return text[: max_chars - len(suffix)].rstrip() + suffix
