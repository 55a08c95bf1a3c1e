"""Load and save the user record, settings and conversations as JSON blobs."""

import logging

from pydantic import TypeAdapter, ValidationError

from murmur_models import Conversation, User, UserSettings

from murmur.db.blob_store import BlobStore

logger = logging.getLogger(__name__)

_conversation_list = TypeAdapter(list[Conversation])

# Undecodable bytes and unreadable files count as corrupt, like invalid JSON
_UNREADABLE = (ValidationError, UnicodeDecodeError, OSError)


class PersistenceGateway:
    """Typed access to the blob store.

    Loads are best-effort: missing or corrupt blobs are logged and treated as
    absent so startup always succeeds.
    """

    def __init__(self, store: BlobStore, key_prefix: str = "murmur"):
        self.store = store
        self.user_key = f"{key_prefix}-user"
        self.settings_key = f"{key_prefix}-settings"
        self.conversations_key = f"{key_prefix}-conversations"

    async def load_user(self) -> User | None:
        try:
            raw = await self.store.get(self.user_key)
            return User.model_validate_json(raw) if raw else None
        except _UNREADABLE as e:
            logger.error(f"Failed to parse stored user: {e}")
            return None

    async def save_user(self, user: User) -> None:
        await self.store.set(self.user_key, user.model_dump_json())

    async def clear_user(self) -> None:
        await self.store.delete(self.user_key)

    async def load_settings(self) -> UserSettings:
        try:
            raw = await self.store.get(self.settings_key)
            return UserSettings.model_validate_json(raw) if raw else UserSettings()
        except _UNREADABLE as e:
            logger.error(f"Failed to parse settings, using defaults: {e}")
            return UserSettings()

    async def save_settings(self, settings: UserSettings) -> None:
        await self.store.set(self.settings_key, settings.model_dump_json(by_alias=True))

    async def load_conversations(self) -> list[Conversation]:
        try:
            raw = await self.store.get(self.conversations_key)
            return _conversation_list.validate_json(raw) if raw else []
        except _UNREADABLE as e:
            logger.error(f"Failed to load conversations from storage: {e}")
            return []

    async def save_conversations(self, conversations: list[Conversation]) -> None:
        await self.store.set(
            self.conversations_key,
            _conversation_list.dump_json(conversations).decode("utf-8"),
        )

    async def clear_conversations(self) -> None:
        await self.store.delete(self.conversations_key)
