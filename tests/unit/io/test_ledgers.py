"""Unit tests for notification ledgers."""

import asyncio
from pathlib import Path

import pytest

from lingobus_io.storage import (
    FileSystemNotificationLedger,
    InMemoryNotificationLedger,
    build_notification_ledger,
)
from lingobus_schemas.config import StorageConfig
from lingobus_schemas.primitives import BlobBackend

DIGEST = "ab" * 32


@pytest.mark.anyio
async def test_memory_ledger_claims_once() -> None:
    """Ensure a key can only be claimed once until released."""
    ledger = InMemoryNotificationLedger()

    assert await ledger.claim(DIGEST)
    assert not await ledger.claim(DIGEST)
    await ledger.release(DIGEST)
    assert await ledger.claim(DIGEST)


@pytest.mark.anyio
async def test_memory_ledger_concurrent_claims_have_one_winner() -> None:
    """Ensure racing claims for the same key yield a single winner."""
    ledger = InMemoryNotificationLedger()

    results = await asyncio.gather(*(ledger.claim(DIGEST) for _ in range(5)))

    assert results.count(True) == 1


@pytest.mark.anyio
async def test_filesystem_ledger_survives_new_instances(tmp_path: Path) -> None:
    """Ensure claims are shared through the ledger directory."""
    first = FileSystemNotificationLedger(str(tmp_path))
    second = FileSystemNotificationLedger(str(tmp_path))

    assert await first.claim(DIGEST)
    assert not await second.claim(DIGEST)
    assert (tmp_path / DIGEST).exists()

    await second.release(DIGEST)
    assert await first.claim(DIGEST)


@pytest.mark.anyio
async def test_filesystem_ledger_hashes_unsafe_keys(tmp_path: Path) -> None:
    """Ensure keys with path characters never become paths."""
    ledger = FileSystemNotificationLedger(str(tmp_path))

    assert await ledger.claim("../outside")
    assert not await ledger.claim("../outside")
    assert [path.parent for path in tmp_path.iterdir()] == [tmp_path]


def test_build_notification_ledger(tmp_path: Path) -> None:
    """Ensure a ledger directory selects the filesystem ledger."""
    shared = build_notification_ledger(
        StorageConfig(
            result_bucket="results",
            backend=BlobBackend.MEMORY,
            ledger_dir=str(tmp_path),
        )
    )
    local = build_notification_ledger(
        StorageConfig(result_bucket="results", backend=BlobBackend.MEMORY)
    )

    assert isinstance(shared, FileSystemNotificationLedger)
    assert isinstance(local, InMemoryNotificationLedger)
