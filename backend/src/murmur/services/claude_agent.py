"""Assistant backend using the Claude Agent SDK."""

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, AsyncGenerator

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
    query,
)

from murmur.config import settings
from murmur.exceptions import CapabilityUnavailable, StreamError
from murmur.services.backends import Turn

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def format_conversation_history(history: Sequence[Turn]) -> str:
    """Format conversation history for inclusion in prompt."""
    lines = []
    for turn in history:
        role = "User" if turn.role == "user" else "Assistant"
        lines.append(f"{role}: {turn.text}")
    return "\n\n".join(lines)


def build_context_prompt(history: Sequence[Turn], new_message: str) -> str:
    """Build a single prompt carrying the prior turns and the new message.

    The SDK takes one prompt per query, so earlier turns are inlined.
    """
    if not history:
        return new_message

    return f"""Continue this conversation naturally, taking into account the full context above.

[Recent conversation]
{format_conversation_history(history)}

User: {new_message}

Respond to the user's latest message."""


class ClaudeAgentBackend:
    """Chat and completion calls through ``claude_agent_sdk.query``."""

    def __init__(self, model: str | None = None):
        self.model = model or settings.claude_model

    def _options(self, system_prompt: str | None = None) -> ClaudeAgentOptions:
        # Plain conversation: no tools, single turn
        return ClaudeAgentOptions(
            model=self.model,
            system_prompt=system_prompt,
            allowed_tools=[],
            max_turns=1,
        )

    async def stream_chat(
        self,
        system_instruction: str,
        history: Sequence[Turn],
        prompt: str,
    ) -> AsyncGenerator[str, None]:
        """Yield each text block as it arrives."""
        options = self._options(system_instruction)
        try:
            async for msg in query(prompt=build_context_prompt(history, prompt), options=options):
                if isinstance(msg, AssistantMessage):
                    for block in msg.content:
                        if isinstance(block, TextBlock) and block.text:
                            yield block.text
                elif isinstance(msg, ResultMessage):
                    if msg.is_error:
                        raise StreamError(f"Claude error: {msg.result or 'Unknown error'}")
        except StreamError:
            raise
        except Exception as e:
            logger.error(f"Claude Agent SDK error: {e}")
            raise StreamError(str(e)) from e

    async def generate(self, prompt: str, response_schema: dict[str, Any] | None = None) -> str:
        if response_schema is not None:
            prompt = (
                f"{prompt}\n\nRespond only with JSON matching this schema, "
                f"with no surrounding text:\n{json.dumps(response_schema)}"
            )

        collected_text: list[str] = []
        async for msg in query(prompt=prompt, options=self._options()):
            if isinstance(msg, AssistantMessage):
                for block in msg.content:
                    if isinstance(block, TextBlock):
                        collected_text.append(block.text)
            elif isinstance(msg, ResultMessage):
                if msg.is_error:
                    raise RuntimeError(f"Claude error: {msg.result or 'Unknown error'}")

        text = "\n".join(collected_text).strip()
        if response_schema is not None:
            text = _CODE_FENCE.sub("", text)
        return text

    async def generate_images(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        number_of_images: int = 1,
    ) -> list[str]:
        raise CapabilityUnavailable("Image generation", "the Claude backend has no image model")
