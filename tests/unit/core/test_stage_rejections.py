"""Unit tests for payloads every stage must reject without side effects."""

import pytest

from lingobus_core.ports.errors import StageErrorCode
from lingobus_core.stages import (
    ExtractionStage,
    PersistenceStage,
    RetrievalStage,
    TranslationStage,
)
from lingobus_io.storage import InMemoryLogSink, InMemoryNotificationLedger
from lingobus_schemas.config import NotificationConfig
from lingobus_schemas.events import StageEvent
from lingobus_schemas.primitives import StageStatus
from lingobus_schemas.results import StageResult
from tests.helpers.stubs import (
    RESULT_BUCKET,
    RecordingBus,
    RecordingSleep,
    ScriptedBlobStore,
    StubCall,
    StubDetector,
    StubOcr,
    StubSms,
    StubTranslator,
    build_topics,
    encode_json,
    fixed_clock,
)

TRANSLATABLE = {"text": "hola", "filename": "a.jpg", "lang": "en"}
READABLE = {"filename": "a.jpg", "lang": "en"}


def _without(payload: dict, field: str) -> dict:
    return {key: value for key, value in payload.items() if key != field}


def _with(payload: dict, field: str, value: object) -> dict:
    return {**payload, field: value}


def _assert_rejected(result: StageResult, field: str) -> None:
    assert result.status == StageStatus.REJECTED
    assert result.published_count == 0
    assert result.error is not None
    assert result.error.code == StageErrorCode.MISSING_FIELD
    assert result.error.details is not None
    assert result.error.details.field == field


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"name": "a.jpg"}, "bucket"),
        ({"bucket": "uploads"}, "name"),
        ({"bucket": "uploads", "name": None}, "name"),
        ({"bucket": "", "name": "a.jpg"}, "bucket"),
        ({"bucket": "uploads", "name": ""}, "name"),
    ],
)
async def test_extraction_rejects_incomplete_upload(
    payload: dict, field: str, log_sink: InMemoryLogSink
) -> None:
    """Ensure an upload without its location reaches no collaborator."""
    bus = RecordingBus()
    ocr = StubOcr("hello")
    detector = StubDetector("en")
    stage = ExtractionStage(
        bus=bus,
        ocr=ocr,
        language_detector=detector,
        topics=build_topics(),
        target_languages=["en", "fr"],
        log_sink=log_sink,
        clock=fixed_clock,
    )

    result = await stage.handle(encode_json(payload))

    _assert_rejected(result, field)
    assert ocr.images == []
    assert detector.texts == []
    assert bus.published == []
    assert log_sink.events() == [StageEvent.REJECTED]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        (_without(TRANSLATABLE, "text"), "text"),
        (_without(TRANSLATABLE, "filename"), "filename"),
        (_without(TRANSLATABLE, "lang"), "lang"),
        (_with(TRANSLATABLE, "text", None), "text"),
        (_with(TRANSLATABLE, "filename", None), "filename"),
        (_with(TRANSLATABLE, "filename", ""), "filename"),
        (_with(TRANSLATABLE, "lang", ""), "lang"),
    ],
)
async def test_translation_rejects_incomplete_request(
    payload: dict, field: str
) -> None:
    """Ensure an incomplete request is neither translated nor forwarded."""
    bus = RecordingBus()
    translator = StubTranslator()
    stage = TranslationStage(
        bus=bus, translator=translator, topics=build_topics(), clock=fixed_clock
    )

    result = await stage.handle(encode_json(payload))

    _assert_rejected(result, field)
    assert translator.calls == []
    assert bus.published == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        (_without(TRANSLATABLE, "text"), "text"),
        (_without(TRANSLATABLE, "filename"), "filename"),
        (_without(TRANSLATABLE, "lang"), "lang"),
        (_with(TRANSLATABLE, "text", None), "text"),
        (_with(TRANSLATABLE, "filename", ""), "filename"),
        (_with(TRANSLATABLE, "lang", None), "lang"),
    ],
)
async def test_persistence_rejects_incomplete_result(
    payload: dict, field: str
) -> None:
    """Ensure an incomplete result is neither stored nor read back."""
    bus = RecordingBus()
    store = ScriptedBlobStore()
    stage = PersistenceStage(
        bus=bus,
        blob_store=store,
        topics=build_topics(),
        result_bucket=RESULT_BUCKET,
        read_delay_s=3.0,
        clock=fixed_clock,
    )

    result = await stage.handle(encode_json(payload))

    _assert_rejected(result, field)
    assert store.writes == []
    assert bus.published == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        (_without(READABLE, "filename"), "filename"),
        (_without(READABLE, "lang"), "lang"),
        (_with(READABLE, "filename", None), "filename"),
        (_with(READABLE, "filename", ""), "filename"),
        (_with(READABLE, "lang", ""), "lang"),
    ],
)
async def test_retrieval_rejects_incomplete_read_request(
    payload: dict, field: str
) -> None:
    """Ensure an incomplete read request neither reads nor notifies."""
    store = ScriptedBlobStore({(RESULT_BUCKET, "a.jpg_to_en.txt"): b"hello"})
    sms, call = StubSms(), StubCall()
    ledger = InMemoryNotificationLedger()
    sleep = RecordingSleep()
    stage = RetrievalStage(
        blob_store=store,
        result_bucket=RESULT_BUCKET,
        notifications=NotificationConfig(
            enabled=True, call_webhook_url="https://example.com/voice"
        ),
        sms_notifier=sms,
        call_notifier=call,
        ledger=ledger,
        clock=fixed_clock,
        sleep=sleep,
    )

    result = await stage.handle(encode_json(payload))

    _assert_rejected(result, field)
    assert store.reads == 0
    assert sleep.delays == []
    assert sms.bodies == []
    assert call.urls == []
