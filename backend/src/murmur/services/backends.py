"""
Pluggable assistant backends.

Every backend satisfies :class:`AssistantBackend`: a streaming chat call, a
single-shot (optionally JSON-schema constrained) completion and an image call.

Usage:
    from murmur.services.backends import create_backend

    backend = create_backend()          # picks settings.assistant_backend
    async for delta in backend.stream_chat(system, history, "Hello"):
        ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol, runtime_checkable

from murmur.config import Settings, settings as default_settings
from murmur.exceptions import CONFIGURATION_ERROR_MESSAGE, ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["AssistantBackend", "Turn", "create_backend"]


@dataclass(frozen=True)
class Turn:
    """One prior turn in the remote conversation history."""

    role: Literal["user", "model"]
    text: str


@runtime_checkable
class AssistantBackend(Protocol):
    """Structural interface for a remote generative assistant."""

    def stream_chat(
        self,
        system_instruction: str,
        history: Sequence[Turn],
        prompt: str,
    ) -> AsyncIterator[str]:
        """Yield incremental text fragments for ``prompt`` given ``history``."""
        ...

    async def generate(self, prompt: str, response_schema: dict[str, Any] | None = None) -> str:
        """Return a single completion; JSON text when a schema is given."""
        ...

    async def generate_images(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        number_of_images: int = 1,
    ) -> list[str]:
        """Return base64-encoded PNG images."""
        ...


def create_backend(config: Settings | None = None) -> AssistantBackend:
    """Create the backend selected by ``assistant_backend``.

    Raises:
        ConfigurationError: The Gemini backend is selected without an API key.

    """
    config = config or default_settings

    if config.assistant_backend == "mock":
        from murmur.services.assistant_mock import MockAssistantBackend

        logger.info("Using mock assistant backend")
        return MockAssistantBackend()

    if config.assistant_backend == "claude":
        from murmur.services.claude_agent import ClaudeAgentBackend

        logger.info(f"Using Claude Agent SDK backend (model={config.claude_model})")
        return ClaudeAgentBackend(model=config.claude_model)

    if not config.gemini_api_key:
        raise ConfigurationError(CONFIGURATION_ERROR_MESSAGE)

    from murmur.services.gemini_client import GeminiClient

    logger.info(f"Using Gemini backend (model={config.gemini_model})")
    return GeminiClient(
        api_key=config.gemini_api_key,
        base_url=config.gemini_base_url,
        model=config.gemini_model,
        image_model=config.image_model,
        timeout=config.request_timeout,
    )
