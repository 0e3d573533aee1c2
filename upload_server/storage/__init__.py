from upload_server.config import ServerConfig
from upload_server.storage.base import (
    BlobNotFoundError,
    BlobReader,
    Capability,
    OperationNotSupportedError,
    StorageBackend,
    StorageError,
    StorageIOError,
    WriteError,
)
from upload_server.storage.disk_store import DiskStore
from upload_server.storage.webhook_store import WebhookError, WebhookStore


def create_backend(server_config: ServerConfig) -> StorageBackend:
    """Pick the backend for a configuration; a webhook URL wins over the document root."""
    if server_config.webhook_url:
        return WebhookStore(server_config.webhook_url, timeout=server_config.webhook_timeout)
    return DiskStore(server_config.document_root)


__all__ = [
    "BlobNotFoundError",
    "BlobReader",
    "Capability",
    "DiskStore",
    "OperationNotSupportedError",
    "StorageBackend",
    "StorageError",
    "StorageIOError",
    "WebhookError",
    "WebhookStore",
    "WriteError",
    "create_backend",
]
