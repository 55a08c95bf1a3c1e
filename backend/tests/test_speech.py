"""Tests for the speech input and output controllers."""

import pytest
from fakes import VOICES, FakeRecognizer, FakeSynthesizer

from murmur_models import (
    Conversation,
    Message,
    MessageAuthor,
    RecognitionEnded,
    RecognitionError,
    TranscriptUpdated,
    UserSettings,
    Voice,
)

from murmur.exceptions import CapabilityUnavailable
from murmur.services.speech_input import SpeechInputController
from murmur.services.speech_output import SpeechOutputController, SpeechState, choose_voice


def _conversation(last_author: MessageAuthor, last_text: str) -> Conversation:
    return Conversation(
        messages=[
            Message(author=MessageAuthor.USER, text="Hello"),
            Message(author=last_author, text=last_text),
        ]
    )


class TestChooseVoice:
    """Default voice heuristic."""

    def test_saved_voice_wins(self):
        assert choose_voice(VOICES, "v-alex").id == "v-alex"

    def test_preferred_name(self):
        assert choose_voice(VOICES, None).id == "v-sam"

    def test_female_en_us(self):
        voices = [
            Voice(id="a", name="Daniel", lang="en-GB"),
            Voice(id="b", name="Robot Male", lang="en-US"),
            Voice(id="c", name="Nova Female", lang="en-US"),
        ]
        assert choose_voice(voices).id == "c"

    def test_any_en_us_then_first(self):
        assert choose_voice([Voice(id="x", name="Thomas", lang="fr-FR"), Voice(id="y", name="Fred", lang="en-US")]).id == "y"
        assert choose_voice([Voice(id="x", name="Thomas", lang="fr-FR")]).id == "x"

    def test_unknown_saved_voice_falls_back(self):
        assert choose_voice(VOICES, "v-gone").id == "v-sam"

    def test_no_voices(self):
        assert choose_voice([], "v-sam") is None


class TestSpeechOutputController:
    """Speaking on the completion edge only."""

    def test_speaks_on_completion_edge(self):
        """Speech starts when sending goes from true to false after a completed turn."""
        synthesizer = FakeSynthesizer()
        controller = SpeechOutputController(synthesizer)
        settings = UserSettings(voice_id="v-sam", rate=1.2)

        assert controller.observe_sending(True) is False
        spoke = controller.observe_sending(
            False,
            completed=True,
            conversation=_conversation(MessageAuthor.ASSISTANT, "Hi there!"),
            settings=settings,
        )

        assert spoke is True
        assert synthesizer.spoken == [("Hi there!", "v-sam", 1.2)]
        assert controller.state == SpeechState.SPEAKING

    def test_no_speech_without_edge(self):
        """Staying idle never speaks, even with a finished reply."""
        synthesizer = FakeSynthesizer()
        controller = SpeechOutputController(synthesizer)
        conversation = _conversation(MessageAuthor.ASSISTANT, "Hi")

        assert controller.observe_sending(False, completed=True, conversation=conversation) is False
        assert synthesizer.spoken == []

    def test_no_speech_after_failure_or_when_disabled(self):
        synthesizer = FakeSynthesizer()
        controller = SpeechOutputController(synthesizer)
        conversation = _conversation(MessageAuthor.ASSISTANT, "Hi")

        controller.observe_sending(True)
        assert controller.observe_sending(False, completed=False, conversation=conversation) is False
        controller.observe_sending(True)
        assert (
            controller.observe_sending(False, completed=True, enabled=False, conversation=conversation)
            is False
        )
        assert synthesizer.spoken == []

    def test_no_speech_for_user_or_empty_last_message(self):
        synthesizer = FakeSynthesizer()
        controller = SpeechOutputController(synthesizer)

        controller.observe_sending(True)
        controller.observe_sending(False, completed=True, conversation=_conversation(MessageAuthor.USER, "Hi"))
        controller.observe_sending(True)
        controller.observe_sending(False, completed=True, conversation=_conversation(MessageAuthor.ASSISTANT, ""))

        assert synthesizer.spoken == []

    def test_speak_cancels_previous_utterance(self):
        """At most one utterance plays at a time."""
        synthesizer = FakeSynthesizer()
        controller = SpeechOutputController(synthesizer)

        controller.speak("one", None, 1.0)
        controller.speak("two", None, 1.0)

        assert synthesizer.cancel_count == 2
        assert [text for text, _, _ in synthesizer.spoken] == ["one", "two"]
        controller.finished()
        assert controller.state == SpeechState.IDLE

    def test_unavailable(self):
        """Without a synthesizer everything is a quiet no-op."""
        controller = SpeechOutputController()

        assert controller.available is False
        assert controller.voices() == []
        assert controller.speak("Hi", None, 1.0) is False
        controller.cancel()


class TestSpeechInputController:
    """Capture control and event translation."""

    def test_callbacks_emit_events(self):
        recognizer = FakeRecognizer()
        events = []
        controller = SpeechInputController(recognizer, emit=events.append)

        controller.start()
        assert controller.is_recording is True
        recognizer.listener.on_result(["What is ", "the weather"])
        recognizer.listener.on_error("network")
        recognizer.listener.on_end()

        assert events == [
            TranscriptUpdated(transcript="What is the weather"),
            RecognitionError(error="network"),
            RecognitionEnded(),
        ]
        assert controller.is_recording is False

    def test_stop_only_when_recording(self):
        recognizer = FakeRecognizer()
        controller = SpeechInputController(recognizer)

        controller.stop()
        assert recognizer.stopped == 0

        controller.start()
        controller.stop()
        assert recognizer.stopped == 1
        assert controller.is_recording is False

    def test_start_without_recognizer(self):
        controller = SpeechInputController()

        assert controller.available is False
        with pytest.raises(CapabilityUnavailable, match="Speech recognition"):
            controller.start()

    def test_events_without_listener_are_dropped(self):
        recognizer = FakeRecognizer()
        SpeechInputController(recognizer)

        recognizer.listener.on_result(["ignored"])
