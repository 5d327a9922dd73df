"""In-memory blob store and notification ledger."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator

from lingobus_core.ports.collaborators import NotificationLedgerProtocol
from lingobus_core.ports.storage import (
    BlobStoreProtocol,
    BlobWriteAck,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from lingobus_schemas.primitives import BlobBackend

DEFAULT_CHUNK_SIZE = 64 * 1024


class InMemoryBlobStore(BlobStoreProtocol):
    """Blob store holding objects in process memory.

    Writes are visible to readers as soon as ``write`` returns.
    """

    def __init__(self, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize an empty store.

        Args:
            chunk_size: Size of the chunks yielded by ``read_stream``.

        Raises:
            ValueError: If chunk_size is not positive.
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._chunk_size = chunk_size
        self._objects: dict[tuple[str, str], tuple[bytes, int]] = {}

    async def write(self, bucket: str, key: str, content: str) -> BlobWriteAck:
        """Store text content as UTF-8, replacing any prior object.

        Returns:
            BlobWriteAck: Write acknowledgment.
        """
        payload = content.encode("utf-8")
        _, generation = self._objects.get((bucket, key), (b"", 0))
        generation += 1
        self._objects[(bucket, key)] = (payload, generation)
        return BlobWriteAck(
            bucket=bucket,
            key=key,
            size_bytes=len(payload),
            generation=generation,
            checksum_sha256=hashlib.sha256(payload).hexdigest(),
        )

    async def read_stream(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        """Yield the stored bytes in chunks.

        Yields:
            bytes: Consecutive chunks of the object.

        Raises:
            StorageError: If the object does not exist.
        """
        stored = self._objects.get((bucket, key))
        if stored is None:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.NOT_FOUND,
                    message=f"No such object: {bucket}/{key}",
                    details=StorageErrorDetails(
                        operation="read_stream",
                        backend=BlobBackend.MEMORY,
                        bucket=bucket,
                        key=key,
                    ),
                )
            )
        payload, _ = stored
        for offset in range(0, len(payload), self._chunk_size):
            yield payload[offset : offset + self._chunk_size]

    def keys(self, bucket: str) -> list[str]:
        """Return the sorted object keys stored in a bucket."""
        return sorted(
            key for stored_bucket, key in self._objects if stored_bucket == bucket
        )


class InMemoryNotificationLedger(NotificationLedgerProtocol):
    """Notification ledger held in process memory."""

    def __init__(self) -> None:
        """Initialize an empty ledger."""
        self._claimed: set[str] = set()
        self._lock = asyncio.Lock()

    async def claim(self, key: str) -> bool:
        """Record a key.

        Returns:
            bool: False if the key was already recorded.
        """
        async with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    async def release(self, key: str) -> None:
        """Forget a key."""
        async with self._lock:
            self._claimed.discard(key)

    def __contains__(self, key: object) -> bool:
        """Return True when a key is currently claimed."""
        return key in self._claimed
