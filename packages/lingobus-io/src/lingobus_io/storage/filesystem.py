"""Filesystem-backed storage adapters."""

from __future__ import annotations

import asyncio
import hashlib
import os
import uuid
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import anyio

from lingobus_core.ports.collaborators import NotificationLedgerProtocol
from lingobus_core.ports.storage import (
    BlobStoreProtocol,
    BlobWriteAck,
    LogStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from lingobus_schemas.base import BaseSchema
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.primitives import BlobBackend

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_LOG_FILENAME = "lingobus.jsonl"
_TMP_PREFIX = ".tmp-"


class FileSystemBlobStore(BlobStoreProtocol):
    """Blob store with one directory per bucket under a root directory.

    Writes go to a temporary file that is atomically renamed over the target,
    so readers see either the previous object or the complete new one.
    """

    def __init__(self, root_dir: str, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize the blob store.

        Args:
            root_dir: Directory holding one subdirectory per bucket.
            chunk_size: Size of the chunks yielded by ``read_stream``.

        Raises:
            ValueError: If chunk_size is not positive.
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._root_dir = Path(root_dir)
        self._chunk_size = chunk_size

    async def write(self, bucket: str, key: str, content: str) -> BlobWriteAck:
        """Write text content as UTF-8, replacing any prior object.

        Returns:
            BlobWriteAck: Write acknowledgment.

        Raises:
            StorageError: If the key is invalid or the write fails.
        """
        path = self._object_path(bucket, key, operation="write")
        payload = content.encode("utf-8")
        try:
            generation = await asyncio.to_thread(_write_atomic, path, payload)
        except OSError as exc:
            raise self._io_error("write", bucket, key, path, exc) from exc
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
            StorageError: If the object does not exist or cannot be read.
        """
        path = self._object_path(bucket, key, operation="read_stream")
        try:
            stream = await anyio.open_file(path, "rb")
        except FileNotFoundError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.NOT_FOUND,
                    message=f"No such object: {bucket}/{key}",
                    details=StorageErrorDetails(
                        operation="read_stream",
                        backend=BlobBackend.FILESYSTEM,
                        bucket=bucket,
                        key=key,
                        path=str(path),
                    ),
                )
            ) from exc
        except OSError as exc:
            raise self._io_error("read_stream", bucket, key, path, exc) from exc
        async with stream:
            while True:
                try:
                    chunk = await stream.read(self._chunk_size)
                except OSError as exc:
                    raise self._io_error("read_stream", bucket, key, path, exc) from exc
                if not chunk:
                    return
                yield chunk

    async def keys(self, bucket: str) -> list[str]:
        """Return the sorted object keys stored in a bucket.

        Returns:
            list[str]: Keys relative to the bucket directory.
        """
        bucket_dir = self._bucket_dir(bucket, operation="keys")
        return await asyncio.to_thread(_list_keys, bucket_dir)

    def _bucket_dir(self, bucket: str, *, operation: str) -> Path:
        if not _is_safe_segment(bucket):
            raise self._invalid_key(operation, bucket, None, "invalid bucket name")
        return self._root_dir / bucket

    def _object_path(self, bucket: str, key: str, *, operation: str) -> Path:
        bucket_dir = self._bucket_dir(bucket, operation=operation)
        segments = key.split("/")
        if not key or not all(_is_safe_segment(segment) for segment in segments):
            raise self._invalid_key(operation, bucket, key, "invalid object key")
        if segments[-1].startswith(_TMP_PREFIX):
            raise self._invalid_key(operation, bucket, key, "reserved object key")
        return bucket_dir.joinpath(*segments)

    def _invalid_key(
        self, operation: str, bucket: str, key: str | None, reason: str
    ) -> StorageError:
        return StorageError(
            StorageErrorInfo(
                code=StorageErrorCode.INVALID_KEY,
                message=f"Rejected {reason}: {bucket}/{key or ''}",
                details=StorageErrorDetails(
                    operation=operation,
                    backend=BlobBackend.FILESYSTEM,
                    bucket=bucket,
                    key=key,
                    reason=reason,
                ),
            )
        )

    def _io_error(
        self, operation: str, bucket: str, key: str, path: Path, exc: OSError
    ) -> StorageError:
        return StorageError(
            StorageErrorInfo(
                code=StorageErrorCode.IO_ERROR,
                message=str(exc) or type(exc).__name__,
                details=StorageErrorDetails(
                    operation=operation,
                    backend=BlobBackend.FILESYSTEM,
                    bucket=bucket,
                    key=key,
                    path=str(path),
                ),
            )
        )


class FileSystemNotificationLedger(NotificationLedgerProtocol):
    """Notification ledger storing one marker file per claimed key.

    Claims use exclusive file creation, so concurrent processes sharing the
    directory never both win the same key.
    """

    def __init__(self, ledger_dir: str) -> None:
        """Initialize the ledger."""
        self._ledger_dir = Path(ledger_dir)

    async def claim(self, key: str) -> bool:
        """Record a key.

        Returns:
            bool: False if the key was already recorded.

        Raises:
            StorageError: If the marker cannot be written.
        """
        path = self._marker_path(key)
        try:
            return await asyncio.to_thread(_create_exclusive, path)
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc) or type(exc).__name__,
                    details=StorageErrorDetails(
                        operation="claim",
                        backend=BlobBackend.FILESYSTEM,
                        key=key,
                        path=str(path),
                    ),
                )
            ) from exc

    async def release(self, key: str) -> None:
        """Forget a key.

        Raises:
            StorageError: If the marker cannot be removed.
        """
        path = self._marker_path(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc) or type(exc).__name__,
                    details=StorageErrorDetails(
                        operation="release",
                        backend=BlobBackend.FILESYSTEM,
                        key=key,
                        path=str(path),
                    ),
                )
            ) from exc

    def _marker_path(self, key: str) -> Path:
        # Keys are hex digests in practice; hash anything else into one.
        if not key.isalnum():
            key = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._ledger_dir / key


class FileSystemLogStore(LogStoreProtocol):
    """Filesystem-backed JSONL log store."""

    def __init__(self, logs_dir: str, filename: str = DEFAULT_LOG_FILENAME) -> None:
        """Initialize the log store."""
        self._path = Path(logs_dir) / filename

    @property
    def path(self) -> Path:
        """Return the JSONL file receiving log entries."""
        return self._path

    async def append_log(self, entry: LogEntry) -> None:
        """Append a single log entry.

        Raises:
            StorageError: If the log entry cannot be written.
        """
        await self.append_logs([entry])

    async def append_logs(self, entries: list[LogEntry]) -> None:
        """Append multiple log entries.

        Raises:
            StorageError: If the log entries cannot be written.
        """
        if not entries:
            return
        try:
            await asyncio.to_thread(
                _append_jsonl_many, self._path, entries, exclude_none=False
            )
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc) or type(exc).__name__,
                    details=StorageErrorDetails(
                        operation="append_logs",
                        backend=BlobBackend.FILESYSTEM,
                        path=str(self._path),
                    ),
                )
            ) from exc


def _is_safe_segment(segment: str) -> bool:
    return bool(segment) and segment not in {".", ".."} and "\\" not in segment


def _write_atomic(path: Path, payload: bytes) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{_TMP_PREFIX}{uuid.uuid4().hex}-{path.name}")
    try:
        with open(tmp_path, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
    return max(path.stat().st_mtime_ns, 1)


def _list_keys(bucket_dir: Path) -> list[str]:
    if not bucket_dir.exists():
        return []
    return sorted(
        path.relative_to(bucket_dir).as_posix()
        for path in bucket_dir.rglob("*")
        if path.is_file() and not path.name.startswith(_TMP_PREFIX)
    )


def _create_exclusive(path: Path) -> bool:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        return False
    os.close(fd)
    return True


def _append_jsonl_many(
    path: Path, payload: Sequence[BaseSchema], *, exclude_none: bool = True
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.writelines(
            item.model_dump_json(exclude_none=exclude_none) + "\n" for item in payload
        )
