"""Live assistant chat bound to one conversation."""

import logging
from collections.abc import Sequence
from typing import AsyncGenerator

from murmur_models import Conversation, Message, MessageAuthor, Mood

from murmur.exceptions import StreamError
from murmur.services.backends import AssistantBackend, Turn

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are Murmur, a warm and upbeat personal voice companion. Your replies may be "
    "read aloud by a text-to-speech engine, so prefer short, natural sentences and "
    "avoid markdown symbols. The user may speak instead of typing; speech-to-text "
    "can introduce errors, so ask for clarification when a message does not make sense."
)


def mood_note(mood: Mood | None) -> str:
    """Prefix telling the assistant the user's detected mood."""
    if mood is None:
        return ""
    return f"[System Note: The user's current detected mood is {mood}.] "


def build_history(messages: Sequence[Message]) -> list[Turn]:
    """Map stored messages to remote turns.

    Empty placeholder messages are skipped and the leading assistant greeting
    is stripped, since the remote history must start with a user turn.
    """
    history = [
        Turn(role="user" if msg.author == MessageAuthor.USER else "model", text=msg.text)
        for msg in messages
        if msg.text
    ]
    if history and history[0].role == "model":
        history.pop(0)
    return history


class AssistantSession:
    """One remote chat scoped to a single conversation.

    Rebuilt (never patched) whenever the active conversation changes. After a
    fully consumed stream the finished turn is appended to the local history.
    """

    def __init__(
        self,
        conversation_id: str,
        backend: AssistantBackend,
        history: list[Turn] | None = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ):
        self.conversation_id = conversation_id
        self.backend = backend
        self.history: list[Turn] = list(history or [])
        self.system_instruction = system_instruction

    @classmethod
    def for_conversation(
        cls,
        conversation: Conversation,
        backend: AssistantBackend,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ) -> "AssistantSession":
        return cls(
            conversation_id=conversation.id,
            backend=backend,
            history=build_history(conversation.messages),
            system_instruction=system_instruction,
        )

    async def send_stream(
        self,
        prompt: str,
        mood: Mood | None = None,
    ) -> AsyncGenerator[str, None]:
        """Send ``prompt`` and yield the reply as text deltas.

        Raises:
            StreamError: The backend failed before the stream was exhausted

        """
        collected: list[str] = []
        try:
            async for delta in self.backend.stream_chat(
                self.system_instruction,
                tuple(self.history),
                mood_note(mood) + prompt,
            ):
                collected.append(delta)
                yield delta
        except StreamError:
            raise
        except Exception as e:
            logger.error(f"Assistant stream failed for {self.conversation_id}: {e}")
            raise StreamError(str(e)) from e

        self.history.append(Turn(role="user", text=prompt))
        self.history.append(Turn(role="model", text="".join(collected)))
