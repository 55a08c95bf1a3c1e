"""Conversation and message models."""

import uuid
from enum import Enum

from pydantic import BaseModel, Field

NEW_CHAT_TITLE = "New Chat"
GREETING_TEXT = (
    "Hello! I'm Murmur, your personal voice companion. How can I help you today?"
)


def _conversation_id() -> str:
    return f"convo-{uuid.uuid4()}"


class MessageAuthor(str, Enum):
    """Who wrote a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single message in a conversation."""

    author: MessageAuthor = Field(..., description="Message author")
    text: str = Field("", description="Message text, empty while a reply is streaming")


class Conversation(BaseModel):
    """A conversation thread."""

    id: str = Field(default_factory=_conversation_id, description="Unique conversation ID")
    title: str = Field(NEW_CHAT_TITLE, description="Conversation title")
    messages: list[Message] = Field(default_factory=list, description="Ordered messages")

    @classmethod
    def with_greeting(cls) -> "Conversation":
        """Create a fresh conversation seeded with the assistant greeting."""
        return cls(messages=[Message(author=MessageAuthor.ASSISTANT, text=GREETING_TEXT)])

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None
