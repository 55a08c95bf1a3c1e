"""Mock assistant backend for offline use and fast testing without API calls.

Responses are canned and streamed word by word, so the streaming path of the
orchestrator behaves exactly as with a real backend.
"""

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from typing import Any, AsyncIterator

from murmur.exceptions import CapabilityUnavailable
from murmur.services.backends import Turn

logger = logging.getLogger(__name__)

# Pattern detection for different intents
GREETING_PATTERNS = [
    r"^(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))[\s!.,]*$",
]

JOKE_PATTERNS = [
    r"\bjoke\b",
    r"\bmake me laugh\b",
]

MOCK_SUGGESTIONS = [
    "Tell me more 🔍",
    "Give me an example 💡",
    "Summarize that 📝",
]


class MockAssistantBackend:
    """Provides predictable mock responses."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay

    @staticmethod
    def _detect_intent(prompt: str) -> str:
        """Detect user intent from prompt."""
        lower_prompt = prompt.lower().strip()

        for pattern in GREETING_PATTERNS:
            if re.search(pattern, lower_prompt, re.IGNORECASE):
                return "greeting"

        for pattern in JOKE_PATTERNS:
            if re.search(pattern, lower_prompt, re.IGNORECASE):
                return "joke"

        return "general"

    @classmethod
    def reply_for(cls, prompt: str, history: Sequence[Turn] = ()) -> str:
        intent = cls._detect_intent(prompt)
        if intent == "greeting":
            return "Hello! It's lovely to hear from you. What's on your mind today?"
        if intent == "joke":
            return "Why did the microphone blush? Because it picked up every word you said!"

        truncated = prompt[:100] + "..." if len(prompt) > 100 else prompt
        turns = len(history) // 2
        return f"I understood your message. Here's my response to: {truncated} (turn {turns + 1})"

    async def stream_chat(
        self,
        system_instruction: str,
        history: Sequence[Turn],
        prompt: str,
    ) -> AsyncIterator[str]:
        text = self.reply_for(prompt, history)
        logger.info(f"Mock assistant: streaming {len(text)} chars")
        words = text.split(" ")
        for index, word in enumerate(words):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield word if index == len(words) - 1 else f"{word} "

    async def generate(self, prompt: str, response_schema: dict[str, Any] | None = None) -> str:
        if response_schema is not None:
            return json.dumps({"suggestions": MOCK_SUGGESTIONS})
        # Title requests quote the first message; echo its first few words
        quoted = re.search(r'"(.*)"', prompt, re.DOTALL)
        source = quoted.group(1) if quoted else prompt
        return " ".join(source.split()[:4]).title()

    async def generate_images(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        number_of_images: int = 1,
    ) -> list[str]:
        raise CapabilityUnavailable("Image generation", "the mock backend has no image model")
