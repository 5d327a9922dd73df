"""lingobus-core: Stage handlers and topic routing for lingobus pipelines."""

from lingobus_core.codec import (
    decode_payload,
    decode_upload_event,
    encode_message,
    encode_payload,
)
from lingobus_core.naming import artifact_name
from lingobus_core.ports import (
    BlobStoreProtocol,
    BlobWriteAck,
    CollaboratorError,
    MessageBusProtocol,
    NotificationError,
    RoutingError,
    StageError,
    StageErrorCode,
    StorageError,
    ValidationError,
)
from lingobus_core.router import PipelineRouter, StageDependencies
from lingobus_core.stages import (
    ExtractionStage,
    PersistenceStage,
    RetrievalStage,
    TranslationStage,
)
from lingobus_core.version import VERSION

__version__ = "0.1.0"

__all__ = [
    "VERSION",
    "BlobStoreProtocol",
    "BlobWriteAck",
    "CollaboratorError",
    "ExtractionStage",
    "MessageBusProtocol",
    "NotificationError",
    "PersistenceStage",
    "PipelineRouter",
    "RetrievalStage",
    "RoutingError",
    "StageDependencies",
    "StageError",
    "StageErrorCode",
    "StorageError",
    "TranslationStage",
    "ValidationError",
    "artifact_name",
    "decode_payload",
    "decode_upload_event",
    "encode_message",
    "encode_payload",
]
