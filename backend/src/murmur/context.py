"""Process-scoped session state shared by the orchestrator and its collaborators."""

from dataclasses import dataclass, field

from murmur_models import Mood, User, UserSettings, Voice

from murmur.services.conversation_store import ConversationStore


@dataclass
class SessionContext:
    """Current user, conversations, settings and runtime toggles.

    Built empty, filled by ``SessionOrchestrator.initialize()`` from
    persistence, and torn down by ``reset()`` on logout.
    """

    store: ConversationStore = field(default_factory=ConversationStore)
    user: User | None = None
    settings: UserSettings = field(default_factory=UserSettings)
    voices: list[Voice] = field(default_factory=list)
    speech_enabled: bool = True
    mood: Mood | None = None

    @property
    def logged_in(self) -> bool:
        return self.user is not None

    def reset(self) -> None:
        """Forget the user and their conversations. Settings are kept."""
        self.user = None
        self.store.clear()
        self.mood = None
