"""FastAPI application exposing the voice chat session."""

import asyncio
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from murmur_models import GeneratedImage, User

from murmur.config import Settings, settings
from murmur.context import SessionContext
from murmur.db import create_blob_store
from murmur.exceptions import (
    CapabilityUnavailable,
    ConfigurationError,
    ImageGenerationError,
)
from murmur.models import (
    AvatarRequest,
    ChatRequest,
    ConversationListResponse,
    ImageRequest,
    InputRequest,
    LoginRequest,
    MoodRequest,
    SessionSnapshot,
    SettingsUpdate,
    SignUpRequest,
    VoiceListResponse,
)
from murmur.services import auth
from murmur.services.backends import create_backend
from murmur.services.image_studio import ImageStudio
from murmur.services.orchestrator import SessionOrchestrator
from murmur.services.persistence import PersistenceGateway
from murmur.sse import EventType, SSEEvent, create_sse_response, event_stream

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def build_orchestrator(config: Settings | None = None) -> SessionOrchestrator:
    """Wire a session from configuration.

    A missing API key does not stop the app from starting; the error is
    surfaced in the session state and blocks sends.
    """
    config = config or settings

    config_error = None
    try:
        backend = create_backend(config)
    except ConfigurationError as e:
        logger.error(f"Assistant backend unavailable: {e}")
        backend = None
        config_error = str(e)

    persistence = PersistenceGateway(
        create_blob_store(config),
        key_prefix=config.storage_key_prefix,
    )
    return SessionOrchestrator(
        SessionContext(),
        persistence,
        backend,
        config_error=config_error,
    )


def create_app(orchestrator: SessionOrchestrator | None = None) -> FastAPI:
    """Create the API around one session orchestrator."""
    if orchestrator is None:
        orchestrator = build_orchestrator()
    session = orchestrator
    studio = ImageStudio(session.backend)

    app = FastAPI(
        title="Murmur API",
        description="Voice chat companion with streamed replies",
        version=VERSION,
    )
    app.state.orchestrator = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        """Connect storage, load the session and start the event loop task."""
        store = session.persistence.store
        if hasattr(store, "connect"):
            await store.connect()
            await store.ensure_tables_exist()

        await session.initialize()
        app.state.event_task = asyncio.create_task(session.process_events())

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean up on shutdown."""
        task = getattr(app.state, "event_task", None)
        if task is not None:
            task.cancel()
        await session.drain_background()

        store = session.persistence.store
        if hasattr(store, "disconnect"):
            await store.disconnect()

    # ============= Health & State =============

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "assistant": "unavailable" if session.config_error else "ready",
        }

    @app.get("/state", response_model=SessionSnapshot)
    async def get_state():
        """Full session snapshot."""
        return session.snapshot()

    # ============= Conversations =============

    @app.get("/conversations", response_model=ConversationListResponse)
    async def list_conversations():
        conversations = session.store.conversations
        return ConversationListResponse(
            conversations=conversations,
            active_conversation_id=session.store.active_id,
            total=len(conversations),
        )

    @app.post("/conversations", response_model=SessionSnapshot)
    async def new_conversation():
        """Start a new chat and make it active."""
        _require_login(session)
        await session.new_chat()
        return session.snapshot()

    @app.post("/conversations/{conversation_id}/select", response_model=SessionSnapshot)
    async def select_conversation(conversation_id: str):
        if not await session.select_chat(conversation_id):
            raise HTTPException(status_code=404, detail="Conversation not found")
        return session.snapshot()

    @app.delete("/conversations/{conversation_id}", response_model=SessionSnapshot)
    async def delete_conversation(conversation_id: str):
        if not await session.delete_chat(conversation_id):
            raise HTTPException(status_code=404, detail="Conversation not found")
        return session.snapshot()

    # ============= Chat =============

    @app.post("/chat", response_model=SessionSnapshot)
    async def chat(request: ChatRequest):
        """Send a message; returns once the reply has finished streaming.

        Deltas are pushed to /events subscribers while the turn runs.
        """
        _require_login(session)
        await session.send_message(request.message)
        if session.config_error:
            raise HTTPException(status_code=503, detail=session.config_error)
        return session.snapshot()

    @app.put("/input", response_model=SessionSnapshot)
    async def set_input(request: InputRequest):
        await session.set_input(request.text)
        return session.snapshot()

    @app.get("/suggestions")
    async def get_suggestions():
        return {"suggestions": session.suggestion_chips}

    # ============= Voice & Settings =============

    @app.get("/settings")
    async def get_settings():
        return session.context.settings.model_dump(by_alias=True)

    @app.patch("/settings")
    async def update_settings(update: SettingsUpdate):
        """Apply a partial settings update."""
        if update.voice_id is not None and not await session.set_voice(update.voice_id):
            raise HTTPException(status_code=400, detail=f"Unknown voice: {update.voice_id}")
        if update.rate is not None:
            await session.set_rate(update.rate)
        if update.sound_enabled is not None:
            await session.set_sound_enabled(update.sound_enabled)
        return session.context.settings.model_dump(by_alias=True)

    @app.get("/voices", response_model=VoiceListResponse)
    async def list_voices():
        return VoiceListResponse(
            voices=session.context.voices,
            selected_voice_id=session.context.settings.voice_id,
        )

    @app.post("/speech/toggle")
    async def toggle_speech():
        """Turn spoken replies on or off."""
        return {"speech_enabled": await session.toggle_speech_output()}

    @app.post("/recording/toggle")
    async def toggle_recording():
        """Start or stop voice capture."""
        try:
            recording = await session.toggle_recording()
        except CapabilityUnavailable as e:
            raise HTTPException(status_code=501, detail=str(e))
        return {"is_recording": recording}

    @app.put("/mood")
    async def set_mood(request: MoodRequest):
        await session.set_mood(request.mood)
        return {"mood": session.context.mood}

    # ============= Auth =============

    @app.post("/auth/login", response_model=SessionSnapshot)
    async def login(request: LoginRequest):
        user = _authenticate(lambda: auth.login(request.email, request.password))
        await session.login(user)
        return session.snapshot()

    @app.post("/auth/signup", response_model=SessionSnapshot)
    async def signup(request: SignUpRequest):
        user = _authenticate(lambda: auth.sign_up(request.name, request.email, request.password))
        await session.login(user)
        return session.snapshot()

    @app.post("/auth/social/{provider}", response_model=SessionSnapshot)
    async def social_login(provider: str):
        user = _authenticate(lambda: auth.social_login(provider))
        await session.login(user)
        return session.snapshot()

    @app.post("/auth/logout", response_model=SessionSnapshot)
    async def logout():
        await session.logout()
        return session.snapshot()

    @app.put("/profile/avatar", response_model=User)
    async def update_avatar(request: AvatarRequest):
        user = await session.update_avatar(request.avatar)
        if user is None:
            raise HTTPException(status_code=401, detail="Not logged in")
        return user

    # ============= Images =============

    @app.post("/images", response_model=GeneratedImage)
    async def generate_image(request: ImageRequest):
        """Generate one image from a prompt, style and aspect ratio."""
        try:
            return await studio.generate(
                request.prompt,
                negative_prompt=request.negative_prompt,
                style=request.style,
                aspect_ratio=request.aspect_ratio,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except CapabilityUnavailable as e:
            raise HTTPException(status_code=501, detail=str(e))
        except ImageGenerationError as e:
            raise HTTPException(status_code=502, detail=str(e))

    # ============= Events =============

    @app.get("/events")
    async def events(request: Request):
        """SSE stream of session updates."""
        snapshot = SSEEvent(
            event=EventType.STATE_CHANGED,
            data=session.snapshot().model_dump(mode="json"),
        )
        return create_sse_response(event_stream(session.events, request, initial=snapshot))

    return app


def _require_login(session: SessionOrchestrator) -> None:
    if not session.context.logged_in:
        raise HTTPException(status_code=401, detail="Not logged in")


def _authenticate(attempt) -> User:
    try:
        return attempt()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


app = create_app()


def main():
    """Run the API with uvicorn."""
    import uvicorn

    logging.basicConfig(level=settings.log_level)
    uvicorn.run(
        "murmur.api:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
