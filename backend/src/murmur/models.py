"""API-specific request and response models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from murmur_models import (
    ArtisticStyle,
    AspectRatio,
    Conversation,
    Mood,
    User,
    UserSettings,
    Voice,
)


class SessionSnapshot(BaseModel):
    """Everything a client needs to render the chat screen."""

    user: User | None = None
    conversations: list[Conversation] = Field(default_factory=list)
    active_conversation_id: str | None = None
    input: str = ""
    error: str | None = None
    is_sending: bool = False
    is_initializing: bool = False
    is_recording: bool = False
    is_speaking: bool = False
    speech_enabled: bool = True
    speech_input_supported: bool = False
    speech_output_supported: bool = False
    suggestion_chips: list[str] = Field(default_factory=list)
    mood: Mood | None = None
    settings: UserSettings = Field(default_factory=UserSettings)


class ConversationListResponse(BaseModel):
    """Response model for list of conversations."""

    conversations: list[Conversation]
    active_conversation_id: str | None = None
    total: int


class ChatRequest(BaseModel):
    """Request model for sending a message."""

    message: str = Field(..., description="User message")


class InputRequest(BaseModel):
    """Replace the text in the compose box."""

    text: str = Field("", description="Compose box text")


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields are left unchanged."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    voice_id: str | None = None
    rate: float | None = None
    sound_enabled: bool | None = None


class VoiceListResponse(BaseModel):
    voices: list[Voice]
    selected_voice_id: str | None = None


class MoodRequest(BaseModel):
    mood: Mood | None = Field(None, description="Detected mood, or null to turn mood context off")


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class SignUpRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class AvatarRequest(BaseModel):
    avatar: str = Field(..., description="Avatar URL or data URI")


class ImageRequest(BaseModel):
    """Request model for the image studio."""

    prompt: str = Field(..., description="What to draw")
    negative_prompt: str = Field("", description="What to avoid")
    style: ArtisticStyle = "photorealistic"
    aspect_ratio: AspectRatio = "1:1"
