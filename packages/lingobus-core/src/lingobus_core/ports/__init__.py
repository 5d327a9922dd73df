"""Port interfaces and structured errors for lingobus collaborators."""

from lingobus_core.ports.bus import MessageBusProtocol, MessageHandler
from lingobus_core.ports.collaborators import (
    CallNotifierProtocol,
    LanguageDetectorProtocol,
    NotificationLedgerProtocol,
    OcrProtocol,
    SmsNotifierProtocol,
    TranslatorProtocol,
)
from lingobus_core.ports.errors import (
    CollaboratorError,
    NotificationError,
    RoutingError,
    StageError,
    StageErrorCode,
    StageErrorDetails,
    StageErrorInfo,
    ValidationError,
)
from lingobus_core.ports.logs import LogSinkProtocol
from lingobus_core.ports.storage import (
    BlobStoreProtocol,
    BlobWriteAck,
    LogStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)

__all__ = [
    "BlobStoreProtocol",
    "BlobWriteAck",
    "CallNotifierProtocol",
    "CollaboratorError",
    "LanguageDetectorProtocol",
    "LogSinkProtocol",
    "LogStoreProtocol",
    "MessageBusProtocol",
    "MessageHandler",
    "NotificationError",
    "NotificationLedgerProtocol",
    "OcrProtocol",
    "RoutingError",
    "SmsNotifierProtocol",
    "StageError",
    "StageErrorCode",
    "StageErrorDetails",
    "StageErrorInfo",
    "StorageError",
    "StorageErrorCode",
    "StorageErrorDetails",
    "StorageErrorInfo",
    "TranslatorProtocol",
    "ValidationError",
]
