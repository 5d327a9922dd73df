"""Unit tests for the retrieval stage."""

from pathlib import Path

import pytest

from lingobus_core.ports.errors import CollaboratorError, StageErrorCode
from lingobus_core.ports.storage import (
    StorageError,
    StorageErrorCode,
    StorageErrorInfo,
)
from lingobus_core.stages import RetrievalStage, notification_key
from lingobus_io.storage import (
    FileSystemBlobStore,
    InMemoryLogSink,
    InMemoryNotificationLedger,
)
from lingobus_schemas.config import NotificationConfig, RetryConfig
from lingobus_schemas.events import ArtifactEvent, NotificationEvent
from lingobus_schemas.primitives import NotificationChannel, StageStatus
from tests.helpers.stubs import (
    RESULT_BUCKET,
    RecordingSleep,
    ScriptedBlobStore,
    StubCall,
    StubSms,
    fixed_clock,
)

KEY = "a.jpg_to_en.txt"
WEBHOOK = "https://example.com/voice"


def _notifications(**overrides: object) -> NotificationConfig:
    values: dict = {
        "enabled": True,
        "sms_to": "+1",
        "sms_from": "+2",
        "call_to": "+1",
        "call_from": "+2",
        "call_webhook_url": WEBHOOK,
    }
    values.update(overrides)
    return NotificationConfig.model_validate(values, strict=False)


def _stage(
    store: ScriptedBlobStore | FileSystemBlobStore,
    *,
    sms: StubSms | None = None,
    call: StubCall | None = None,
    ledger: InMemoryNotificationLedger | None = None,
    notifications: NotificationConfig | None = None,
    retry: RetryConfig | None = None,
    sleep: RecordingSleep | None = None,
    log_sink: InMemoryLogSink | None = None,
) -> RetrievalStage:
    return RetrievalStage(
        blob_store=store,
        result_bucket=RESULT_BUCKET,
        notifications=notifications or _notifications(),
        retry=retry or RetryConfig(max_retries=3, backoff_s=0.5, max_backoff_s=1.5),
        sms_notifier=sms,
        call_notifier=call,
        ledger=ledger,
        log_sink=log_sink,
        clock=fixed_clock,
        sleep=sleep or RecordingSleep(),
    )


@pytest.mark.anyio
async def test_read_sends_content_by_sms_then_places_call(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure the full artifact is read across chunks and notified."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): "hello world".encode()})
    sms, call = StubSms(), StubCall()
    stage = _stage(store, sms=sms, call=call, log_sink=log_sink)

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.status == StageStatus.COMPLETED
    assert result.content == "hello world"
    assert result.artifact_key == KEY
    assert sms.bodies == ["hello world"]
    assert call.urls == [WEBHOOK]
    assert [outcome.channel for outcome in result.notifications] == [
        NotificationChannel.SMS,
        NotificationChannel.CALL,
    ]
    assert [outcome.reference for outcome in result.notifications] == ["SM1", "CA1"]
    assert log_sink.events().count(NotificationEvent.SENT) == 2
    assert log_sink.entries[-1].message == "File read."


@pytest.mark.anyio
async def test_empty_artifact_uses_placeholder_body() -> None:
    """Ensure an empty artifact is notified with the placeholder text."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b""})
    sms = StubSms()
    stage = _stage(store, sms=sms, call=StubCall())

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.content == ""
    assert sms.bodies == ["MESSAGE NOT FOUND"]


@pytest.mark.anyio
async def test_not_found_reads_back_off_until_visible(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure reads racing a write retry with doubling, capped delays."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"late"}, missing_reads=3)
    sleep = RecordingSleep()
    stage = _stage(store, sleep=sleep, log_sink=log_sink)

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.content == "late"
    assert store.reads == 4
    assert sleep.delays == [0.5, 1.0, 1.5]
    assert log_sink.events().count(ArtifactEvent.READ_RETRY) == 3
    read_entry = next(
        entry for entry in log_sink.entries if entry.event == ArtifactEvent.READ
    )
    assert read_entry.data is not None
    assert read_entry.data["attempt"] == 4


@pytest.mark.anyio
async def test_missing_artifact_fails_without_notifying() -> None:
    """Ensure exhausted retries raise and no notification is sent."""
    store = ScriptedBlobStore()
    sms, call = StubSms(), StubCall()
    sleep = RecordingSleep()
    stage = _stage(
        store,
        sms=sms,
        call=call,
        sleep=sleep,
        retry=RetryConfig(max_retries=2, backoff_s=1.0, max_backoff_s=10.0),
    )

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert exc_info.value.info.code == StageErrorCode.ARTIFACT_NOT_FOUND
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.key == KEY
    assert store.reads == 3
    assert sleep.delays == [1.0, 2.0]
    assert sms.bodies == []
    assert call.urls == []


@pytest.mark.anyio
async def test_storage_io_errors_are_not_retried_in_stage() -> None:
    """Ensure errors other than not-found fail the invocation at once."""
    error = StorageError(
        StorageErrorInfo(code=StorageErrorCode.IO_ERROR, message="disk on fire")
    )
    store = ScriptedBlobStore(read_error=error)
    sleep = RecordingSleep()
    stage = _stage(store, sleep=sleep)

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert exc_info.value.info.code == StageErrorCode.COLLABORATOR_FAILED
    assert store.reads == 1
    assert sleep.delays == []


@pytest.mark.anyio
async def test_notification_failures_do_not_fail_the_stage(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure a failed SMS still lets the call go out."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"hello"})
    call = StubCall()
    stage = _stage(
        store,
        sms=StubSms(error=ConnectionError("provider down")),
        call=call,
        log_sink=log_sink,
    )

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.status == StageStatus.COMPLETED
    assert [outcome.delivered for outcome in result.notifications] == [False, True]
    assert result.notifications[0].error_message == "provider down"
    assert call.urls == [WEBHOOK]
    assert NotificationEvent.FAILED in log_sink.events()


@pytest.mark.anyio
async def test_redelivered_read_skips_duplicate_notifications(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure the same content is only notified once."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"hello"})
    sms, call = StubSms(), StubCall()
    ledger = InMemoryNotificationLedger()
    stage = _stage(store, sms=sms, call=call, ledger=ledger, log_sink=log_sink)

    first = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})
    second = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert not first.notifications_skipped
    assert second.notifications_skipped
    assert second.notifications == []
    assert sms.bodies == ["hello"]
    assert call.urls == [WEBHOOK]
    assert notification_key(KEY, "hello") in ledger
    assert log_sink.events().count(NotificationEvent.SKIPPED) == 2


@pytest.mark.anyio
async def test_changed_content_is_notified_again() -> None:
    """Ensure dedup is keyed on content as well as the artifact."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"v1"})
    sms = StubSms()
    stage = _stage(store, sms=sms, ledger=InMemoryNotificationLedger())

    await stage.handle_payload({"filename": "a.jpg", "lang": "en"})
    store.objects[(RESULT_BUCKET, KEY)] = b"v2"
    await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert sms.bodies == ["v1", "v2"]


@pytest.mark.anyio
async def test_claim_is_released_when_every_notification_failed() -> None:
    """Ensure a later delivery may retry notifications nobody received."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"hello"})
    ledger = InMemoryNotificationLedger()
    stage = _stage(
        store,
        sms=StubSms(error=RuntimeError("down")),
        call=StubCall(error=RuntimeError("down")),
        ledger=ledger,
    )

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert not any(outcome.delivered for outcome in result.notifications)
    assert notification_key(KEY, "hello") not in ledger


@pytest.mark.anyio
async def test_disabled_notifications_only_read() -> None:
    """Ensure nothing is sent when notifications are off."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"hello"})
    sms = StubSms()
    stage = _stage(store, sms=sms, notifications=NotificationConfig(enabled=False))

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.content == "hello"
    assert result.notifications == []
    assert sms.bodies == []


def test_notification_key_separates_key_and_content() -> None:
    """Ensure different key/content splits never collide."""
    assert notification_key("ab", "c") != notification_key("a", "bc")
    assert len(notification_key("a", "b")) == 64


@pytest.mark.anyio
async def test_read_artifact_returns_text() -> None:
    """Ensure direct reads resolve the artifact name."""
    store = ScriptedBlobStore({(RESULT_BUCKET, "a.jpg_to_fr.txt"): "salut".encode()})
    stage = _stage(store, retry=RetryConfig(max_retries=0))

    assert await stage.read_artifact("a.jpg", "fr") == "salut"


@pytest.mark.anyio
async def test_no_notifier_leaves_ledger_untouched() -> None:
    """Ensure content is not marked notified when no channel is wired."""
    store = ScriptedBlobStore({(RESULT_BUCKET, KEY): b"hello"})
    ledger = InMemoryNotificationLedger()
    stage = _stage(store, ledger=ledger)

    result = await stage.handle_payload({"filename": "a.jpg", "lang": "en"})

    assert result.notifications == []
    assert not result.notifications_skipped
    assert notification_key(KEY, "hello") not in ledger


@pytest.mark.anyio
async def test_key_refused_by_storage_is_rejected_without_retrying(
    tmp_path: Path,
) -> None:
    """Ensure an unusable key is neither retried nor notified."""
    sms = StubSms()
    sleep = RecordingSleep()
    stage = _stage(FileSystemBlobStore(str(tmp_path)), sms=sms, sleep=sleep)

    result = await stage.handle_payload({"filename": "../a.jpg", "lang": "en"})

    assert result.status == StageStatus.REJECTED
    assert result.error is not None
    assert result.error.code == StageErrorCode.INVALID_PAYLOAD
    assert sleep.delays == []
    assert sms.bodies == []
