"""Shared Pydantic models for murmur."""

from murmur_models.conversation import (
    GREETING_TEXT,
    NEW_CHAT_TITLE,
    Conversation,
    Message,
    MessageAuthor,
)
from murmur_models.events import (
    RecognitionEnded,
    RecognitionError,
    SpeechEvent,
    TranscriptUpdated,
    UtteranceEnded,
    VoicesChanged,
)
from murmur_models.image import ArtisticStyle, AspectRatio, GeneratedImage
from murmur_models.settings import MAX_SPEECH_RATE, MIN_SPEECH_RATE, UserSettings, Voice
from murmur_models.user import Mood, User

__all__ = [
    # Conversations
    "Conversation",
    "Message",
    "MessageAuthor",
    "GREETING_TEXT",
    "NEW_CHAT_TITLE",
    # Settings and voices
    "UserSettings",
    "Voice",
    "MIN_SPEECH_RATE",
    "MAX_SPEECH_RATE",
    "User",
    "Mood",
    # Speech events
    "TranscriptUpdated",
    "RecognitionError",
    "RecognitionEnded",
    "VoicesChanged",
    "UtteranceEnded",
    "SpeechEvent",
    # Images
    "GeneratedImage",
    "AspectRatio",
    "ArtisticStyle",
]
