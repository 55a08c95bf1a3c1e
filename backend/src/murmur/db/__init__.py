"""Blob store backends."""

from murmur.config import Settings, settings as default_settings
from murmur.db.blob_store import BlobStore, FileBlobStore, InMemoryBlobStore

__all__ = ["BlobStore", "FileBlobStore", "InMemoryBlobStore", "create_blob_store"]


def create_blob_store(config: Settings | None = None) -> BlobStore:
    """Build the blob store selected by ``storage_backend``.

    The Postgres store still needs ``connect()`` and ``ensure_tables_exist()``
    before use; the API does this on startup.
    """
    config = config or default_settings
    if config.storage_backend == "memory":
        return InMemoryBlobStore()
    if config.storage_backend == "postgres":
        from murmur.db.postgres import PostgresBlobStore

        return PostgresBlobStore(config.database_url)
    return FileBlobStore(config.data_dir)
