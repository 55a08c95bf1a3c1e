"""Session orchestrator - owns the lifecycle of a chat turn.

A send goes through: speech cancelled, "sending" entered, user message and
empty assistant placeholder appended together, reply streamed into the
placeholder delta by delta, then either suggestions derived in the background
(success) or the two messages rolled back and the prompt restored (failure).

All state changes go through one asyncio loop. Capability callbacks arrive as
typed events via ``post_event`` and are applied by ``process_events``.
Background calls (title, suggestions) write back by conversation id, so a
result for a conversation that was deleted in the meantime is dropped.
"""

import asyncio
import logging
from typing import Any, Coroutine

from murmur_models import (
    Conversation,
    Message,
    MessageAuthor,
    Mood,
    RecognitionEnded,
    RecognitionError,
    SpeechEvent,
    TranscriptUpdated,
    User,
    UtteranceEnded,
    Voice,
    VoicesChanged,
)

from murmur.context import SessionContext
from murmur.exceptions import (
    SESSION_NOT_READY_MESSAGE,
    STREAM_ERROR_MESSAGE,
    BackgroundTaskError,
    CapabilityUnavailable,
    SessionNotReady,
    StreamError,
)
from murmur.models import SessionSnapshot
from murmur.services.assistant_session import SYSTEM_INSTRUCTION, AssistantSession
from murmur.services.backends import AssistantBackend
from murmur.services.conversation_store import ConversationStore
from murmur.services.persistence import PersistenceGateway
from murmur.services.speech_input import SpeechInputController
from murmur.services.speech_output import SpeechOutputController, SpeechState, choose_voice
from murmur.services.suggestions import DEFAULT_SUGGESTION_CHIPS, SuggestionEngine
from murmur.sse import EventBus, EventType, SSEEvent

logger = logging.getLogger(__name__)

# Length of the temporary title taken from the first prompt
TEMPORARY_TITLE_LENGTH = 40


class SessionOrchestrator:
    """Coordinates the store, the assistant session, speech and suggestions."""

    def __init__(
        self,
        context: SessionContext,
        persistence: PersistenceGateway,
        backend: AssistantBackend | None,
        *,
        speech_output: SpeechOutputController | None = None,
        speech_input: SpeechInputController | None = None,
        suggestions: SuggestionEngine | None = None,
        events: EventBus | None = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
        config_error: str | None = None,
    ):
        self.context = context
        self.persistence = persistence
        self.backend = backend
        self.speech_output = speech_output or SpeechOutputController()
        self.speech_input = speech_input or SpeechInputController()
        if self.speech_input.emit is None:
            self.speech_input.emit = self.post_event
        self.suggestions = suggestions or SuggestionEngine(backend)
        self.events = events or EventBus()
        self.system_instruction = system_instruction
        self.config_error = config_error

        self.input_text = ""
        self.error: str | None = config_error
        self.is_sending = False
        self.is_initializing = True
        self.suggestion_chips: list[str] = list(DEFAULT_SUGGESTION_CHIPS)

        self._session: AssistantSession | None = None
        self._background: set[asyncio.Task] = set()
        # Bumped on every chip reset; stale suggestion results are dropped
        self._chip_epoch = 0
        self._inbox: asyncio.Queue[SpeechEvent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def store(self) -> ConversationStore:
        return self.context.store

    @property
    def session(self) -> AssistantSession | None:
        return self._session

    # ============= Lifecycle =============

    async def initialize(self) -> None:
        """Load settings, voices, the user and (if logged in) their conversations."""
        self._loop = asyncio.get_running_loop()
        self.context.settings = await self.persistence.load_settings()
        await self._apply_voices(self.speech_output.voices())

        self.context.user = await self.persistence.load_user()
        if self.context.logged_in:
            await self._load_conversations()
        await self._publish_state()

    async def _load_conversations(self) -> None:
        self.is_initializing = True
        conversations = await self.persistence.load_conversations()
        if conversations:
            # Most recent chat first
            self.store.replace_all(conversations, active_id=conversations[0].id)
            self.rebind_session(conversations[0].id)
            self.is_initializing = False
            await self._publish_conversations()
        else:
            self.is_initializing = False
            await self.new_chat()

    def rebind_session(self, conversation_id: str | None) -> AssistantSession | None:
        """Rebuild the assistant session for the given (newly active) conversation."""
        conversation = self.store.get(conversation_id) if conversation_id else None
        if conversation is None or self.backend is None:
            self._session = None
        else:
            self._session = AssistantSession.for_conversation(
                conversation,
                self.backend,
                system_instruction=self.system_instruction,
            )
        return self._session

    async def drain_background(self) -> None:
        """Wait for outstanding title/suggestion calls (used on shutdown and in tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ============= Sending =============

    async def send_message(self, prompt: str) -> None:
        """Send one prompt and stream the reply into the active conversation.

        No-op when the prompt is blank, a send is already in flight, or there
        is no active conversation.
        """
        conversation = self.store.active
        if not prompt.strip() or self.is_sending or conversation is None:
            return
        if self.config_error:
            await self._report_error(self.config_error)
            return

        conversation_id = conversation.id
        is_first_exchange = len(conversation.messages) == 1

        # Capture and playback are mutually exclusive with sending
        self.speech_output.cancel()
        self.speech_input.stop()

        self.is_sending = True
        self.speech_output.observe_sending(True)
        self.error = None

        appended = completed = False
        try:
            session = self._require_session(conversation_id)
            await self._set_chips([])

            self._append_turn(conversation_id, prompt)
            appended = True
            if is_first_exchange:
                self._set_title(conversation_id, prompt[:TEMPORARY_TITLE_LENGTH])
                self._spawn(self._derive_title(conversation_id, prompt))
            self.input_text = ""
            await self._publish_conversation(conversation_id)
            await self._publish_state()

            accumulated = ""
            async for delta in session.send_stream(prompt, mood=self.context.mood):
                accumulated += delta
                self._set_reply_text(conversation_id, accumulated)
                await self._publish_conversation(conversation_id)

            completed = True
            self._spawn(self._derive_suggestions(accumulated, self._chip_epoch))
        except SessionNotReady as e:
            logger.warning(f"Send aborted, no session: {e}")
            await self._report_error(SESSION_NOT_READY_MESSAGE)
        except StreamError as e:
            logger.error(f"Assistant stream failed: {e}")
            await self._recover_failed_turn(conversation_id, prompt)
            await self._report_error(STREAM_ERROR_MESSAGE)
        except asyncio.CancelledError:
            if appended:
                await self._recover_failed_turn(conversation_id, prompt)
            raise
        finally:
            self.is_sending = False
            self.speech_output.observe_sending(
                False,
                completed=completed,
                enabled=self.context.speech_enabled,
                # Only the reply on screen is read out
                conversation=self.store.active if self.store.active_id == conversation_id else None,
                settings=self.context.settings,
            )
            await self._save_conversations()
            await self._publish_state()

    def _require_session(self, conversation_id: str) -> AssistantSession:
        session = self._session
        if session is None or session.conversation_id != conversation_id:
            raise SessionNotReady(f"No assistant session for {conversation_id}")
        return session

    def _append_turn(self, conversation_id: str, prompt: str) -> None:
        # The only place two messages are added at once; rollback removes exactly these
        user_message = Message(author=MessageAuthor.USER, text=prompt)
        placeholder = Message(author=MessageAuthor.ASSISTANT, text="")
        self.store.update(
            conversation_id,
            lambda c: c.model_copy(update={"messages": [*c.messages, user_message, placeholder]}),
        )

    def _set_reply_text(self, conversation_id: str, text: str) -> None:
        def overwrite_last(conversation: Conversation) -> Conversation:
            if not conversation.messages:
                return conversation
            messages = list(conversation.messages)
            messages[-1] = messages[-1].model_copy(update={"text": text})
            return conversation.model_copy(update={"messages": messages})

        self.store.update(conversation_id, overwrite_last)

    def _set_title(self, conversation_id: str, title: str) -> Conversation | None:
        return self.store.update(conversation_id, lambda c: c.model_copy(update={"title": title}))

    async def _recover_failed_turn(self, conversation_id: str, prompt: str) -> None:
        """Remove the user message and partial reply, give the prompt back."""
        self.store.update(
            conversation_id,
            lambda c: c.model_copy(update={"messages": c.messages[:-2]}),
        )
        self.input_text = prompt
        await self._set_chips(DEFAULT_SUGGESTION_CHIPS)
        await self._publish_conversation(conversation_id)

    # ============= Background calls =============

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Fire-and-forget a background call, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}")

    async def _derive_title(self, conversation_id: str, prompt: str) -> None:
        title = await self.suggestions.derive_title(prompt)
        if not title:
            return
        if self._set_title(conversation_id, title) is None:
            logger.debug(f"Dropping title for deleted conversation {conversation_id}")
            return
        await self._publish_conversation(conversation_id)
        await self._save_conversations()

    async def _derive_suggestions(self, reply_text: str, epoch: int) -> None:
        try:
            chips = await self.suggestions.derive_suggestions(reply_text)
        except BackgroundTaskError as e:
            logger.error(f"Failed to get dynamic suggestions: {e}")
            chips = []

        if epoch != self._chip_epoch:
            # A newer turn or chat reset the chips while we were waiting
            return
        await self._set_chips(chips or DEFAULT_SUGGESTION_CHIPS)

    async def _set_chips(self, chips: list[str]) -> None:
        self._chip_epoch += 1
        self.suggestion_chips = list(chips)
        await self._publish(EventType.SUGGESTIONS_UPDATED, {"suggestions": self.suggestion_chips})

    # ============= Conversations =============

    async def new_chat(self) -> Conversation:
        """Start a fresh conversation and make it active."""
        self.speech_output.cancel()
        conversation = self.store.create_conversation()
        self.rebind_session(conversation.id)
        await self._reset_compose_state()
        await self._save_conversations()
        await self._publish_conversations()
        await self._publish_state()
        return conversation

    async def select_chat(self, conversation_id: str) -> bool:
        if conversation_id == self.store.active_id:
            return True
        if not self.store.select(conversation_id):
            return False
        self.rebind_session(conversation_id)
        await self._publish_conversations()
        await self._publish_state()
        return True

    async def delete_chat(self, conversation_id: str) -> bool:
        """Delete a conversation; the store picks the next active one."""
        was_active = conversation_id == self.store.active_id
        was_last = len(self.store) == 1
        if not self.store.delete(conversation_id):
            return False

        if was_last:
            # The store created a fresh chat; reset as for a new chat
            self.speech_output.cancel()
            await self._reset_compose_state()
        if was_active:
            self.rebind_session(self.store.active_id)

        await self._save_conversations()
        await self._publish_conversations()
        await self._publish_state()
        return True

    async def _reset_compose_state(self) -> None:
        self.input_text = ""
        self.error = self.config_error
        await self._set_chips(DEFAULT_SUGGESTION_CHIPS)

    # ============= Input, voice and settings =============

    async def set_input(self, text: str) -> None:
        """The user typed into the compose box."""
        self.speech_output.cancel()
        self.input_text = text
        if self.error and self.error != self.config_error:
            self.error = None
        await self._publish_state()

    async def toggle_recording(self) -> bool:
        """Start or stop voice capture. Returns whether capture is now active."""
        if not self.speech_input.available:
            raise CapabilityUnavailable("Speech recognition")
        self.speech_output.cancel()
        if self.speech_input.is_recording:
            self.speech_input.stop()
        else:
            self.input_text = ""
            self.speech_input.start()
        await self._publish_state()
        return self.speech_input.is_recording

    async def toggle_speech_output(self) -> bool:
        self.context.speech_enabled = not self.context.speech_enabled
        if not self.context.speech_enabled:
            self.speech_output.cancel()
        await self._publish_state()
        return self.context.speech_enabled

    async def set_voice(self, voice_id: str) -> bool:
        """Select one of the currently offered voices. Unknown ids are ignored."""
        if not any(voice.id == voice_id for voice in self.context.voices):
            return False
        self.context.settings.voice_id = voice_id
        await self._save_settings()
        await self._publish_state()
        return True

    async def set_rate(self, rate: float) -> float:
        # Clamped to the allowed range by the settings model
        self.context.settings.rate = rate
        await self._save_settings()
        await self._publish_state()
        return self.context.settings.rate

    async def set_sound_enabled(self, enabled: bool) -> None:
        self.context.settings.sound_enabled = enabled
        await self._save_settings()
        await self._publish_state()

    async def set_mood(self, mood: Mood | None) -> None:
        self.context.mood = mood
        await self._publish_state()

    async def _apply_voices(self, voices: list[Voice]) -> None:
        self.context.voices = list(voices)
        chosen = choose_voice(self.context.voices, self.context.settings.voice_id)
        if chosen is not None and chosen.id != self.context.settings.voice_id:
            self.context.settings.voice_id = chosen.id
            await self._save_settings()

    # ============= Capability events =============

    def post_event(self, event: SpeechEvent) -> None:
        """Queue a capability event. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._inbox.put_nowait(event)
        else:
            loop.call_soon_threadsafe(self._inbox.put_nowait, event)

    async def process_events(self) -> None:
        """Apply queued capability events forever, one at a time."""
        while True:
            event = await self._inbox.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error(f"Failed to handle {event.type} event: {e}")

    async def process_pending_events(self) -> int:
        """Apply whatever is queued right now and return how many events ran."""
        handled = 0
        while not self._inbox.empty():
            await self.handle_event(self._inbox.get_nowait())
            handled += 1
        return handled

    async def handle_event(self, event: SpeechEvent) -> None:
        if isinstance(event, TranscriptUpdated):
            self.input_text = event.transcript
        elif isinstance(event, RecognitionError):
            await self._report_error(f"Speech recognition error: {event.error}")
        elif isinstance(event, RecognitionEnded):
            logger.debug("Speech recognition ended")
        elif isinstance(event, VoicesChanged):
            await self._apply_voices(event.voices)
        elif isinstance(event, UtteranceEnded):
            self.speech_output.finished()
        await self._publish_state()

    # ============= Auth =============

    async def login(self, user: User) -> None:
        self.context.user = user
        await self._save_user()
        await self._load_conversations()
        await self._publish_state()

    async def logout(self) -> None:
        """Forget the user and their conversations, in memory and in storage."""
        self.speech_output.cancel()
        self.speech_input.stop()
        self.context.reset()
        self._session = None
        self.is_initializing = True
        await self._reset_compose_state()
        await self._clear_storage()
        await self._publish_conversations()
        await self._publish_state()

    async def update_avatar(self, avatar: str) -> User | None:
        if self.context.user is None:
            return None
        self.context.user = self.context.user.model_copy(update={"avatar": avatar})
        await self._save_user()
        await self._publish_state()
        return self.context.user

    # ============= Persistence and projection =============

    async def _save_conversations(self) -> None:
        if not self.context.logged_in or self.is_initializing or not len(self.store):
            return
        try:
            await self.persistence.save_conversations(self.store.conversations)
        except Exception as e:
            logger.error(f"Failed to save conversations: {e}")

    async def _save_settings(self) -> None:
        try:
            await self.persistence.save_settings(self.context.settings)
        except Exception as e:
            logger.error(f"Failed to save settings: {e}")

    async def _save_user(self) -> None:
        try:
            await self.persistence.save_user(self.context.user)
        except Exception as e:
            logger.error(f"Failed to save user: {e}")

    async def _clear_storage(self) -> None:
        for clear in (self.persistence.clear_user, self.persistence.clear_conversations):
            try:
                await clear()
            except Exception as e:
                logger.error(f"Failed to clear stored session: {e}")

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            user=self.context.user,
            conversations=self.store.conversations,
            active_conversation_id=self.store.active_id,
            input=self.input_text,
            error=self.error,
            is_sending=self.is_sending,
            is_initializing=self.is_initializing,
            is_recording=self.speech_input.is_recording,
            is_speaking=self.speech_output.state == SpeechState.SPEAKING,
            speech_enabled=self.context.speech_enabled,
            speech_input_supported=self.speech_input.available,
            speech_output_supported=self.speech_output.available,
            suggestion_chips=self.suggestion_chips,
            mood=self.context.mood,
            settings=self.context.settings,
        )

    async def _report_error(self, message: str) -> None:
        self.error = message
        await self._publish(EventType.ERROR, {"message": message})

    async def _publish(self, event_type: EventType, data: dict[str, Any]) -> None:
        await self.events.publish(SSEEvent(event=event_type, data=data))

    async def _publish_conversation(self, conversation_id: str) -> None:
        conversation = self.store.get(conversation_id)
        if conversation is None:
            return
        await self._publish(EventType.CONVERSATION_UPDATED, conversation.model_dump(mode="json"))

    async def _publish_conversations(self) -> None:
        await self._publish(
            EventType.CONVERSATIONS_CHANGED,
            {
                "conversations": [c.model_dump(mode="json") for c in self.store.conversations],
                "active_conversation_id": self.store.active_id,
            },
        )

    async def _publish_state(self) -> None:
        state = self.snapshot().model_dump(mode="json", exclude={"conversations"})
        await self._publish(EventType.STATE_CHANGED, state)
