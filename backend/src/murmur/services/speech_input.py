"""Voice input: wraps the platform speech-to-text capability.

The recognizer reports results through the controller's ``on_*`` callbacks,
which may run on another thread; the controller turns them into typed events
and hands them to ``emit``.
"""

import logging
from typing import Callable, Protocol, runtime_checkable

from murmur_models import RecognitionEnded, RecognitionError, SpeechEvent, TranscriptUpdated

from murmur.exceptions import CapabilityUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class SpeechRecognizer(Protocol):
    """Speech-to-text capability provided by the platform."""

    def bind(self, listener: "SpeechInputController") -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class SpeechInputController:
    """Start/stop capture and translate recognizer callbacks into events."""

    def __init__(
        self,
        recognizer: SpeechRecognizer | None = None,
        emit: Callable[[SpeechEvent], None] | None = None,
    ):
        self.recognizer = recognizer
        self.emit = emit
        self.is_recording = False
        if recognizer is not None:
            recognizer.bind(self)

    @property
    def available(self) -> bool:
        return self.recognizer is not None

    def start(self) -> None:
        if self.recognizer is None:
            raise CapabilityUnavailable("Speech recognition")
        self.recognizer.start()
        self.is_recording = True

    def stop(self) -> None:
        if self.recognizer is None or not self.is_recording:
            return
        self.recognizer.stop()
        self.is_recording = False

    def _emit(self, event: SpeechEvent) -> None:
        if self.emit is None:
            logger.debug(f"Dropping speech event with no listener: {event.type}")
            return
        self.emit(event)

    # Recognizer callbacks

    def on_result(self, transcripts: list[str]) -> None:
        """Interim or final results; the transcript is their concatenation."""
        self._emit(TranscriptUpdated(transcript="".join(transcripts)))

    def on_error(self, error: str) -> None:
        logger.error(f"Speech recognition error: {error}")
        self.is_recording = False
        self._emit(RecognitionError(error=error))

    def on_end(self) -> None:
        self.is_recording = False
        self._emit(RecognitionEnded())
