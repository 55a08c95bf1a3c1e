"""Voice output: speak the finished assistant reply, at most one utterance at a time."""

import logging
from enum import Enum
from typing import Protocol, runtime_checkable

from murmur_models import Conversation, MessageAuthor, UserSettings, Voice

logger = logging.getLogger(__name__)

PREFERRED_VOICE_NAMES = [
    "Google US English",
    "Samantha",
    "Microsoft Zira Desktop - English (United States)",
]


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """Text-to-speech capability provided by the platform.

    When an utterance ends the platform posts ``UtteranceEnded`` to the
    orchestrator, which returns the controller to idle.
    """

    def voices(self) -> list[Voice]: ...

    def speak(self, text: str, voice_id: str | None, rate: float) -> None: ...

    def cancel(self) -> None: ...


class SpeechState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


def choose_voice(voices: list[Voice], saved_voice_id: str | None = None) -> Voice | None:
    """Pick the saved voice if still offered, else a pleasant US English default."""
    if not voices:
        return None
    for voice in voices:
        if saved_voice_id and voice.id == saved_voice_id:
            return voice

    en_us = [v for v in voices if v.lang.startswith("en-US")]
    return (
        next((v for v in voices if v.name in PREFERRED_VOICE_NAMES), None)
        or next((v for v in en_us if "female" in v.name.lower()), None)
        or (en_us[0] if en_us else None)
        or voices[0]
    )


class SpeechOutputController:
    """Decides when to vocalize and owns cancellation.

    Speech starts only on the transition of a send from in flight to
    completed, never on other state changes.
    """

    def __init__(self, synthesizer: SpeechSynthesizer | None = None):
        self.synthesizer = synthesizer
        self.state = SpeechState.IDLE
        self._was_sending = False

    @property
    def available(self) -> bool:
        return self.synthesizer is not None

    def voices(self) -> list[Voice]:
        if self.synthesizer is None:
            return []
        try:
            return list(self.synthesizer.voices())
        except Exception as e:
            logger.warning(f"Could not list synthesis voices: {e}")
            return []

    def cancel(self) -> None:
        if self.synthesizer is None:
            return
        self.synthesizer.cancel()
        self.state = SpeechState.IDLE

    def speak(self, text: str, voice_id: str | None, rate: float) -> bool:
        """Cancel any current utterance, then speak ``text``."""
        if self.synthesizer is None or not text:
            return False
        self.cancel()
        try:
            self.synthesizer.speak(text, voice_id, rate)
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
            return False
        self.state = SpeechState.SPEAKING
        return True

    def finished(self) -> None:
        """The platform reported the utterance ended."""
        self.state = SpeechState.IDLE

    def observe_sending(
        self,
        sending: bool,
        *,
        completed: bool = False,
        enabled: bool = True,
        conversation: Conversation | None = None,
        settings: UserSettings | None = None,
    ) -> bool:
        """Track the send flag; speak the last reply on the completion edge.

        Returns True when an utterance was started.
        """
        was_sending, self._was_sending = self._was_sending, sending
        if not was_sending or sending or not completed:
            return False
        if not enabled or not self.available or conversation is None:
            return False

        last = conversation.last_message
        if last is None or last.author != MessageAuthor.ASSISTANT or not last.text:
            return False

        settings = settings or UserSettings()
        return self.speak(last.text, settings.voice_id, settings.rate)
