"""Unit tests for the extraction stage."""

import pytest

from lingobus_core.ports.errors import CollaboratorError, StageErrorCode
from lingobus_core.stages import ExtractionStage, plan_fan_out
from lingobus_io.storage import InMemoryLogSink
from lingobus_schemas.events import MessageEvent, StageEvent
from lingobus_schemas.messages import (
    ExtractedText,
    TranslationRequest,
    TranslationResult,
)
from lingobus_schemas.primitives import StageStatus
from tests.helpers.stubs import (
    RESULT_TOPIC,
    TRANSLATE_TOPIC,
    RecordingBus,
    StubDetector,
    StubOcr,
    build_topics,
    encode_json,
    fixed_clock,
)


def _stage(
    bus: RecordingBus,
    *,
    ocr: StubOcr | None = None,
    language: str = "en",
    targets: tuple[str, ...] = ("en", "fr"),
    log_sink: InMemoryLogSink | None = None,
) -> ExtractionStage:
    return ExtractionStage(
        bus=bus,
        ocr=ocr or StubOcr("hello"),
        language_detector=StubDetector(language),
        topics=build_topics(),
        target_languages=targets,
        log_sink=log_sink,
        clock=fixed_clock,
    )


def test_plan_fan_out_routes_source_language_directly() -> None:
    """Ensure the detected language skips translation."""
    extracted = ExtractedText(filename="a.jpg", source_language="fr", text="salut")

    routes = plan_fan_out(extracted, ["en", "fr", "de"], build_topics())

    assert [route.lang for route in routes] == ["en", "fr", "de"]
    assert [route.direct for route in routes] == [False, True, False]
    assert routes[1].topic == RESULT_TOPIC
    assert isinstance(routes[1].payload, TranslationResult)
    assert routes[0].topic == TRANSLATE_TOPIC
    assert isinstance(routes[0].payload, TranslationRequest)
    assert routes[0].payload.from_lang == "fr"


@pytest.mark.anyio
async def test_upload_fans_out_one_message_per_target(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure one direct result and one translation request are published."""
    bus = RecordingBus()
    ocr = StubOcr("hello")
    stage = _stage(bus, ocr=ocr, log_sink=log_sink)

    result = await stage.handle(encode_json({"bucket": "uploads", "name": "a.jpg"}))

    assert result.status == StageStatus.COMPLETED
    assert result.published_count == 2
    assert ocr.images[0].uri == "gs://uploads/a.jpg"
    assert bus.payloads(RESULT_TOPIC) == [
        {"text": "hello", "filename": "a.jpg", "lang": "en"}
    ]
    assert bus.payloads(TRANSLATE_TOPIC) == [
        {"text": "hello", "filename": "a.jpg", "lang": "fr", "from": "en"}
    ]
    events = log_sink.events()
    assert events[0] == StageEvent.STARTED
    assert events.count(MessageEvent.PUBLISHED) == 2
    assert events[-1] == StageEvent.COMPLETED
    assert log_sink.entries[-1].message == "File a.jpg processed."


@pytest.mark.anyio
async def test_deletion_events_are_ignored(log_sink: InMemoryLogSink) -> None:
    """Ensure deletions publish nothing and never call OCR."""
    bus = RecordingBus()
    ocr = StubOcr("hello")
    stage = _stage(bus, ocr=ocr, log_sink=log_sink)

    result = await stage.handle_payload(
        {"bucket": "uploads", "name": "a.jpg", "resourceState": "not_exists"}
    )

    assert result.status == StageStatus.IGNORED
    assert bus.published == []
    assert ocr.images == []
    assert log_sink.events() == [StageEvent.IGNORED]


@pytest.mark.anyio
async def test_image_without_text_still_fans_out() -> None:
    """Ensure an empty OCR result is forwarded as empty text."""
    bus = RecordingBus()
    stage = _stage(bus, ocr=StubOcr(""), targets=("en",))

    result = await stage.handle_payload({"bucket": "uploads", "name": "blank.png"})

    assert result.status == StageStatus.COMPLETED
    assert bus.payloads() == [{"text": "", "filename": "blank.png", "lang": "en"}]


@pytest.mark.anyio
async def test_missing_bucket_is_rejected(log_sink: InMemoryLogSink) -> None:
    """Ensure an upload event without a bucket is rejected permanently."""
    bus = RecordingBus()
    stage = _stage(bus, log_sink=log_sink)

    result = await stage.handle_payload({"name": "a.jpg"})

    assert result.status == StageStatus.REJECTED
    assert result.error is not None
    assert result.error.code == StageErrorCode.MISSING_FIELD
    assert result.error.message.startswith("Bucket not provided")
    assert bus.published == []
    assert log_sink.events() == [StageEvent.REJECTED]


@pytest.mark.anyio
async def test_ocr_failure_raises_collaborator_error(
    log_sink: InMemoryLogSink,
) -> None:
    """Ensure engine failures are retryable and publish nothing."""
    bus = RecordingBus()
    stage = _stage(
        bus, ocr=StubOcr(error=RuntimeError("vision down")), log_sink=log_sink
    )

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload({"bucket": "uploads", "name": "a.jpg"})

    assert exc_info.value.retryable
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.collaborator == "ocr"
    assert bus.published == []
    assert log_sink.events()[-1] == StageEvent.FAILED


@pytest.mark.anyio
async def test_invalid_detected_language_is_a_collaborator_error() -> None:
    """Ensure unusable detector output fails the invocation."""
    stage = _stage(RecordingBus(), language="??")

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload({"bucket": "uploads", "name": "a.jpg"})

    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.collaborator == "language_detector"


@pytest.mark.anyio
async def test_publish_failure_attempts_every_route() -> None:
    """Ensure one failed publish does not stop the others."""
    bus = RecordingBus(fail_topics={TRANSLATE_TOPIC})
    stage = _stage(bus, targets=("en", "fr", "de"))

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload({"bucket": "uploads", "name": "a.jpg"})

    assert exc_info.value.info.code == StageErrorCode.PUBLISH_FAILED
    assert "2 of 3" in exc_info.value.info.message
    assert bus.payloads(RESULT_TOPIC) == [
        {"text": "hello", "filename": "a.jpg", "lang": "en"}
    ]
