"""Best-effort derivation of conversation titles and follow-up suggestions.

Both calls run in the background after a turn; a failure never reaches the
user. Titles fall back to the caller's temporary title, suggestions to
DEFAULT_SUGGESTION_CHIPS.
"""

import json
import logging

from murmur.exceptions import BackgroundTaskError
from murmur.services.backends import AssistantBackend

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

DEFAULT_SUGGESTION_CHIPS = [
    "Tell me a fun fact 🤓",
    "What can you help me with? 🤔",
    "Tell me a joke 😄",
]

SUGGESTIONS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "suggestions": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
        }
    },
    "required": ["suggestions"],
}

_QUOTE_CHARS = "\"'`“”‘’*"


def clean_title(raw: str) -> str:
    """Strip whitespace and quoting artifacts from a model-written title."""
    title = raw.strip().replace('"', "")
    return title.strip(_QUOTE_CHARS + " \n\t")


class SuggestionEngine:
    """Title and suggestion calls against the assistant backend."""

    def __init__(self, backend: AssistantBackend | None):
        self.backend = backend

    async def derive_title(self, first_prompt: str) -> str | None:
        """Ask for a 3-5 word title. Returns None on any failure."""
        if self.backend is None:
            return None

        prompt = (
            "Generate a very short, concise title (3-5 words) for a conversation "
            f'that starts with this message: "{first_prompt}"'
        )
        try:
            title = clean_title(await self.backend.generate(prompt))
        except Exception as e:
            logger.error(f"Failed to generate title: {e}")
            return None

        return title or None

    async def derive_suggestions(self, last_assistant_text: str) -> list[str]:
        """Ask for up to three follow-up prompts.

        Returns:
            Cleaned suggestions, possibly empty

        Raises:
            BackgroundTaskError: The call failed or the result did not match the schema

        """
        if self.backend is None:
            raise BackgroundTaskError("No assistant backend configured")

        prompt = (
            f'Based on this statement: "{last_assistant_text}", generate 3 short, '
            "relevant, and engaging follow-up suggestions for a user to continue the "
            "conversation. Include an emoji in each suggestion."
        )
        try:
            raw = await self.backend.generate(prompt, response_schema=SUGGESTIONS_SCHEMA)
            payload = json.loads(raw)
        except Exception as e:
            raise BackgroundTaskError(f"Suggestion request failed: {e}") from e

        suggestions = payload.get("suggestions") if isinstance(payload, dict) else None
        if not isinstance(suggestions, list):
            raise BackgroundTaskError("Suggestion response did not match the schema")

        cleaned = [s.strip() for s in suggestions if isinstance(s, str) and s.strip()]
        return cleaned[:MAX_SUGGESTIONS]
