"""Typed events emitted by the speech capabilities."""

from typing import Literal, Union

from pydantic import BaseModel, Field

from murmur_models.settings import Voice


class TranscriptUpdated(BaseModel):
    """Speech recognition produced a new (possibly interim) transcript."""

    type: Literal["transcript_updated"] = "transcript_updated"
    transcript: str = Field(..., description="Full transcript so far")


class RecognitionError(BaseModel):
    """Speech recognition failed."""

    type: Literal["recognition_error"] = "recognition_error"
    error: str = Field(..., description="Error code reported by the recognizer")


class RecognitionEnded(BaseModel):
    """Speech recognition stopped listening."""

    type: Literal["recognition_ended"] = "recognition_ended"


class VoicesChanged(BaseModel):
    """The set of available synthesis voices changed."""

    type: Literal["voices_changed"] = "voices_changed"
    voices: list[Voice] = Field(default_factory=list)


class UtteranceEnded(BaseModel):
    """Speech synthesis finished (or dropped) the current utterance."""

    type: Literal["utterance_ended"] = "utterance_ended"


SpeechEvent = Union[
    TranscriptUpdated,
    RecognitionError,
    RecognitionEnded,
    VoicesChanged,
    UtteranceEnded,
]
