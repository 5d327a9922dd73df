"""Build storage adapters from pipeline configuration."""

from __future__ import annotations

from lingobus_core.ports.collaborators import NotificationLedgerProtocol
from lingobus_core.ports.storage import BlobStoreProtocol
from lingobus_io.storage.filesystem import (
    FileSystemBlobStore,
    FileSystemNotificationLedger,
)
from lingobus_io.storage.memory import InMemoryBlobStore, InMemoryNotificationLedger
from lingobus_schemas.config import StorageConfig
from lingobus_schemas.primitives import BlobBackend


def build_blob_store(storage: StorageConfig) -> BlobStoreProtocol:
    """Build the blob store selected by configuration.

    Args:
        storage: Storage configuration.

    Returns:
        BlobStoreProtocol: Configured blob store.

    Raises:
        ValueError: If the backend is unsupported or lacks a root directory.
    """
    if storage.backend == BlobBackend.MEMORY:
        return InMemoryBlobStore()
    if storage.backend == BlobBackend.FILESYSTEM:
        if storage.root_dir is None:
            raise ValueError("root_dir is required for the filesystem backend")
        return FileSystemBlobStore(storage.root_dir)
    raise ValueError(f"Unsupported blob backend: {storage.backend}")


def build_notification_ledger(storage: StorageConfig) -> NotificationLedgerProtocol:
    """Build the notification ledger selected by configuration.

    A ``ledger_dir`` gives a ledger shared across processes; without one the
    ledger only lives as long as the current process.

    Returns:
        NotificationLedgerProtocol: Configured ledger.
    """
    if storage.ledger_dir is not None:
        return FileSystemNotificationLedger(storage.ledger_dir)
    return InMemoryNotificationLedger()
