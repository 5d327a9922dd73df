"""Storage adapters for artifacts, notification ledgers and logs."""

from lingobus_io.storage.factory import build_blob_store, build_notification_ledger
from lingobus_io.storage.filesystem import (
    FileSystemBlobStore,
    FileSystemLogStore,
    FileSystemNotificationLedger,
)
from lingobus_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    InMemoryLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)
from lingobus_io.storage.memory import InMemoryBlobStore, InMemoryNotificationLedger

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileSystemBlobStore",
    "FileSystemLogStore",
    "FileSystemNotificationLedger",
    "InMemoryBlobStore",
    "InMemoryLogSink",
    "InMemoryNotificationLedger",
    "NoopLogSink",
    "StorageLogSink",
    "build_blob_store",
    "build_log_sink",
    "build_notification_ledger",
]
