"""Tests for the per-conversation assistant session."""

import pytest
from fakes import FakeBackend

from murmur_models import Conversation, Message, MessageAuthor

from murmur.exceptions import StreamError
from murmur.services.assistant_session import (
    SYSTEM_INSTRUCTION,
    AssistantSession,
    build_history,
    mood_note,
)
from murmur.services.backends import Turn


class TestBuildHistory:
    """Mapping stored messages to remote turns."""

    def test_strips_greeting_and_empty_messages(self):
        """The leading greeting and empty placeholders are not sent."""
        messages = [
            Message(author=MessageAuthor.ASSISTANT, text="Hello!"),
            Message(author=MessageAuthor.USER, text="Hi"),
            Message(author=MessageAuthor.ASSISTANT, text="How can I help?"),
            Message(author=MessageAuthor.USER, text="Tell me a joke"),
            Message(author=MessageAuthor.ASSISTANT, text=""),
        ]

        history = build_history(messages)

        assert history == [
            Turn(role="user", text="Hi"),
            Turn(role="model", text="How can I help?"),
            Turn(role="user", text="Tell me a joke"),
        ]

    def test_empty(self):
        assert build_history([]) == []


class TestMoodNote:
    def test_mood_note(self):
        assert mood_note("sad") == "[System Note: The user's current detected mood is sad.] "
        assert mood_note(None) == ""


class TestSendStream:
    """Streaming a turn."""

    @pytest.mark.asyncio
    async def test_streams_and_records_turn(self):
        """Deltas pass through and the finished turn joins the history."""
        backend = FakeBackend(deltas=["Hi", " there"])
        session = AssistantSession("convo-1", backend)

        deltas = [delta async for delta in session.send_stream("Hello")]

        assert deltas == ["Hi", " there"]
        assert session.history == [Turn(role="user", text="Hello"), Turn(role="model", text="Hi there")]
        system_instruction, history, prompt = backend.chat_calls[0]
        assert system_instruction == SYSTEM_INSTRUCTION
        assert history == []
        assert prompt == "Hello"

    @pytest.mark.asyncio
    async def test_backend_errors_become_stream_errors(self):
        """Any backend failure surfaces as StreamError and history is unchanged."""
        backend = FakeBackend(deltas=["Hi", " there"], fail_after=1)
        session = AssistantSession("convo-1", backend)
        received = []

        with pytest.raises(StreamError, match="connection reset"):
            async for delta in session.send_stream("Hello"):
                received.append(delta)

        assert received == ["Hi"]
        assert session.history == []

    @pytest.mark.asyncio
    async def test_for_conversation_seeds_history(self):
        """A session built from a conversation carries its prior turns."""
        conversation = Conversation(
            id="convo-seeded",
            messages=[
                Message(author=MessageAuthor.ASSISTANT, text="Hello!"),
                Message(author=MessageAuthor.USER, text="Hi"),
                Message(author=MessageAuthor.ASSISTANT, text="Hey"),
            ],
        )
        backend = FakeBackend()

        session = AssistantSession.for_conversation(conversation, backend, system_instruction="Be brief.")
        [_ async for _ in session.send_stream("Next", mood="happy")]

        system_instruction, history, prompt = backend.chat_calls[0]
        assert session.conversation_id == "convo-seeded"
        assert system_instruction == "Be brief."
        assert history == [Turn(role="user", text="Hi"), Turn(role="model", text="Hey")]
        assert prompt.endswith("Next")
        assert prompt.startswith("[System Note:")
        # The stored user turn has no mood prefix
        assert session.history[-2] == Turn(role="user", text="Next")
