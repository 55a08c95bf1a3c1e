"""In-memory conversation collection and active-conversation pointer.

Pure data and mutation, no I/O. Every mutation replaces the collection list
rather than editing it, so callers holding an earlier snapshot never see it
change underneath them, and untouched conversations keep their identity.
"""

import logging
from typing import Callable

from murmur_models import Conversation

logger = logging.getLogger(__name__)


class ConversationStore:
    """Ordered (newest first) collection of conversations."""

    def __init__(
        self,
        conversations: list[Conversation] | None = None,
        active_id: str | None = None,
    ):
        self._conversations: list[Conversation] = list(conversations or [])
        self._active_id = active_id

    def __len__(self) -> int:
        return len(self._conversations)

    @property
    def conversations(self) -> list[Conversation]:
        """Snapshot of the collection in display order."""
        return list(self._conversations)

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active(self) -> Conversation | None:
        if self._active_id is None:
            return None
        return self.get(self._active_id)

    def get(self, conversation_id: str) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def index_of(self, conversation_id: str) -> int:
        for index, conversation in enumerate(self._conversations):
            if conversation.id == conversation_id:
                return index
        return -1

    def create_conversation(self) -> Conversation:
        """Create a greeting-seeded conversation, prepend it and make it active."""
        conversation = Conversation.with_greeting()
        self._conversations = [conversation, *self._conversations]
        self._active_id = conversation.id
        logger.debug(f"Created conversation {conversation.id}")
        return conversation

    def update(
        self,
        conversation_id: str,
        transform: Callable[[Conversation], Conversation],
    ) -> Conversation | None:
        """Replace the matching conversation with ``transform(conversation)``.

        Returns the new conversation, or None when no conversation has that id
        (for example it was deleted while a background call was running).
        """
        updated: Conversation | None = None
        replaced: list[Conversation] = []
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                updated = transform(conversation)
                replaced.append(updated)
            else:
                replaced.append(conversation)
        if updated is None:
            return None
        self._conversations = replaced
        return updated

    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation and reassign the active pointer if needed.

        The new active conversation is the one just before the deleted one,
        else the first survivor, else a freshly created conversation.
        """
        index = self.index_of(conversation_id)
        if index < 0:
            return False

        self._conversations = [c for c in self._conversations if c.id != conversation_id]
        logger.debug(f"Deleted conversation {conversation_id}")

        if self._active_id == conversation_id:
            if self._conversations:
                self._active_id = self._conversations[max(0, index - 1)].id
            else:
                self.create_conversation()
        return True

    def select(self, conversation_id: str) -> bool:
        """Make an existing conversation active."""
        if self.get(conversation_id) is None:
            return False
        self._active_id = conversation_id
        return True

    def replace_all(
        self,
        conversations: list[Conversation],
        active_id: str | None = None,
    ) -> None:
        """Load a whole collection, e.g. from persistence."""
        self._conversations = list(conversations)
        if active_id is None and self._conversations:
            active_id = self._conversations[0].id
        self._active_id = active_id

    def clear(self) -> None:
        """Drop every conversation and the active pointer (logout)."""
        self._conversations = []
        self._active_id = None
