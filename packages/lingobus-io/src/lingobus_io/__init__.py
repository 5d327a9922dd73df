"""lingobus-io: Bus, storage and collaborator adapters."""

from lingobus_io.bus import InMemoryMessageBus
from lingobus_io.collaborators import (
    GoogleTranslateClient,
    GoogleVisionOcr,
    TwilioCallNotifier,
    TwilioSmsNotifier,
)
from lingobus_io.storage import (
    CompositeLogSink,
    ConsoleLogSink,
    FileSystemBlobStore,
    FileSystemLogStore,
    FileSystemNotificationLedger,
    InMemoryBlobStore,
    InMemoryLogSink,
    InMemoryNotificationLedger,
    NoopLogSink,
    StorageLogSink,
    build_blob_store,
    build_log_sink,
    build_notification_ledger,
)

__version__ = "0.1.0"

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileSystemBlobStore",
    "FileSystemLogStore",
    "FileSystemNotificationLedger",
    "GoogleTranslateClient",
    "GoogleVisionOcr",
    "InMemoryBlobStore",
    "InMemoryLogSink",
    "InMemoryMessageBus",
    "InMemoryNotificationLedger",
    "NoopLogSink",
    "StorageLogSink",
    "TwilioCallNotifier",
    "TwilioSmsNotifier",
    "build_blob_store",
    "build_log_sink",
    "build_notification_ledger",
]
