"""Protocol definitions and errors for artifact and log storage."""

from __future__ import annotations

from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.primitives import BlobBackend
from lingobus_schemas.responses import ErrorDetails, ErrorResponse

CHECKSUM_PATTERN = r"^[a-f0-9]{64}$"


class StorageErrorCode(StrEnum):
    """Categorized error codes for storage operations."""

    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    INVALID_KEY = "invalid_key"


class StorageErrorDetails(BaseSchema):
    """Detailed storage error context."""

    operation: str | None = Field(None, description="Storage operation name")
    backend: BlobBackend | None = Field(None, description="Blob store backend")
    bucket: str | None = Field(None, description="Bucket name")
    key: str | None = Field(None, description="Object key")
    path: str | None = Field(None, description="Filesystem path")
    reason: str | None = Field(None, description="Additional error context")


class StorageErrorInfo(BaseSchema):
    """Structured storage error data."""

    code: StorageErrorCode = Field(..., description="Storage error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: StorageErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert storage error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None:
            details = ErrorDetails(
                field=self.details.operation,
                provided=self.details.key or self.details.path,
                valid_options=None,
            )
        code_value = getattr(self.code, "value", self.code)
        return ErrorResponse(
            code=str(code_value), message=self.message, details=details
        )


class StorageError(Exception):
    """Storage error with structured details."""

    def __init__(self, info: StorageErrorInfo) -> None:
        """Initialize the storage error.

        Args:
            info: Structured storage error information.
        """
        super().__init__(info.message)
        self.info = info

    @property
    def is_not_found(self) -> bool:
        """Return True when the object does not exist (yet)."""
        return self.info.code == StorageErrorCode.NOT_FOUND

    @property
    def is_invalid_key(self) -> bool:
        """Return True when the store refused the bucket or key outright."""
        return self.info.code == StorageErrorCode.INVALID_KEY


class BlobWriteAck(BaseSchema):
    """Acknowledgment returned once a blob write is durable."""

    bucket: str = Field(..., min_length=1, description="Bucket name")
    key: str = Field(..., min_length=1, description="Object key")
    size_bytes: int = Field(..., ge=0, description="Stored size in bytes")
    generation: int = Field(..., ge=1, description="Object generation number")
    checksum_sha256: str = Field(
        ..., pattern=CHECKSUM_PATTERN, description="SHA-256 of the stored bytes"
    )


@runtime_checkable
class BlobStoreProtocol(Protocol):
    """Protocol for a durable object store keyed by bucket and name."""

    async def write(self, bucket: str, key: str, content: str) -> BlobWriteAck:
        """Write text content, replacing any prior object at the key."""
        raise NotImplementedError

    def read_stream(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        """Stream the stored bytes in chunks; raises StorageError on failure."""
        raise NotImplementedError


@runtime_checkable
class LogStoreProtocol(Protocol):
    """Protocol for persisting JSONL log entries."""

    async def append_log(self, entry: LogEntry) -> None:
        """Append a log entry to storage."""
        raise NotImplementedError

    async def append_logs(self, entries: list[LogEntry]) -> None:
        """Append multiple log entries to storage."""
        raise NotImplementedError
