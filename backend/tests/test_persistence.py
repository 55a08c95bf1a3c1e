"""Tests for the blob stores and the persistence gateway."""

import json
import tempfile
from pathlib import Path

import pytest

from murmur_models import Conversation, User, UserSettings

from murmur.config import Settings
from murmur.db import create_blob_store
from murmur.db.blob_store import FileBlobStore, InMemoryBlobStore
from murmur.services.persistence import PersistenceGateway


class TestFileBlobStore:
    """JSON files in a data directory."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileBlobStore(Path(tmpdir) / "data")

            assert await store.get("murmur-user") is None
            await store.set("murmur-user", '{"name": "Jane"}')
            assert await store.get("murmur-user") == '{"name": "Jane"}'
            assert (Path(tmpdir) / "data" / "murmur-user.json").exists()

            await store.delete("murmur-user")
            assert await store.get("murmur-user") is None
            # Deleting twice is fine
            await store.delete("murmur-user")

    @pytest.mark.asyncio
    async def test_rejects_path_like_keys(self):
        store = FileBlobStore(Path("/tmp/murmur-test"))
        with pytest.raises(ValueError, match="Invalid storage key"):
            await store.get("../etc/passwd")


class TestCreateBlobStore:
    def test_memory_and_file(self):
        assert isinstance(create_blob_store(Settings(storage_backend="memory")), InMemoryBlobStore)

        store = create_blob_store(Settings(storage_backend="file", data_dir=Path("/tmp/murmur")))
        assert isinstance(store, FileBlobStore)
        assert store.data_dir == Path("/tmp/murmur")


class TestPersistenceGateway:
    """Typed load/save with corrupt-blob tolerance."""

    @pytest.mark.asyncio
    async def test_user_round_trip_and_clear(self):
        gateway = PersistenceGateway(InMemoryBlobStore())
        user = User(name="Jane Doe", email="jane@example.com")

        await gateway.save_user(user)
        assert await gateway.load_user() == user

        await gateway.clear_user()
        assert await gateway.load_user() is None

    @pytest.mark.asyncio
    async def test_settings_use_camel_case_keys(self):
        """Settings are stored as voiceId/rate/soundEnabled."""
        store = InMemoryBlobStore()
        gateway = PersistenceGateway(store)

        await gateway.save_settings(UserSettings(voice_id="v1", rate=1.5, sound_enabled=False))

        assert json.loads(store.data["murmur-settings"]) == {
            "voiceId": "v1",
            "rate": 1.5,
            "soundEnabled": False,
        }

    @pytest.mark.asyncio
    async def test_stored_rate_is_clamped(self):
        store = InMemoryBlobStore({"murmur-settings": '{"voiceId": null, "rate": 5, "soundEnabled": true}'})
        settings = await PersistenceGateway(store).load_settings()
        assert settings.rate == 2.0

    @pytest.mark.asyncio
    async def test_corrupt_blobs_fall_back(self):
        """Unparseable blobs load as absent instead of failing startup."""
        store = InMemoryBlobStore(
            {
                "murmur-user": "{not json",
                "murmur-settings": "[]",
                "murmur-conversations": '{"oops": true}',
            }
        )
        gateway = PersistenceGateway(store)

        assert await gateway.load_user() is None
        assert await gateway.load_settings() == UserSettings()
        assert await gateway.load_conversations() == []

    @pytest.mark.asyncio
    async def test_undecodable_and_unreadable_files_fall_back(self):
        """Invalid UTF-8 or an unreadable blob file does not break loading."""
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = Path(tmpdir)
            (data_dir / "murmur-settings.json").write_bytes(b'{"rate": "\xff\xfe"}')
            (data_dir / "murmur-conversations.json").write_bytes(b"\x80\x81[]")
            # A directory where the file should be fails to read with an OSError
            (data_dir / "murmur-user.json").mkdir()
            gateway = PersistenceGateway(FileBlobStore(data_dir))

            assert await gateway.load_settings() == UserSettings()
            assert await gateway.load_conversations() == []
            assert await gateway.load_user() is None

    @pytest.mark.asyncio
    async def test_conversations_round_trip(self):
        store = InMemoryBlobStore()
        gateway = PersistenceGateway(store, key_prefix="test")
        conversations = [Conversation.with_greeting(), Conversation(title="Empty")]

        await gateway.save_conversations(conversations)

        assert "test-conversations" in store.data
        assert await gateway.load_conversations() == conversations
        await gateway.clear_conversations()
        assert await gateway.load_conversations() == []
