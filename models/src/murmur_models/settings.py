"""User settings and speech voice models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MIN_SPEECH_RATE = 0.5
MAX_SPEECH_RATE = 2.0


class Voice(BaseModel):
    """A text-to-speech voice offered by the synthesis capability."""

    id: str = Field(..., description="Stable voice identifier")
    name: str = Field(..., description="Display name")
    lang: str = Field("", description="BCP 47 language tag, e.g. en-US")


class UserSettings(BaseModel):
    """Persisted speech and sound preferences."""

    # Stored as {"voiceId", "rate", "soundEnabled"}
    model_config = ConfigDict(
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    voice_id: str | None = Field(None, description="Selected voice identifier")
    rate: float = Field(1.0, description="Speech rate")
    sound_enabled: bool = Field(True, description="Interface sounds on/off")

    @field_validator("rate", mode="before")
    @classmethod
    def clamp_rate(cls, value):
        # Stored rates outside the slider range (or 0/None) fall back into range
        if not value:
            return 1.0
        return min(MAX_SPEECH_RATE, max(MIN_SPEECH_RATE, float(value)))
