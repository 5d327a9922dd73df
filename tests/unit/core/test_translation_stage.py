"""Unit tests for the translation stage."""

import pytest

from lingobus_core.ports.errors import CollaboratorError
from lingobus_core.stages import TranslationStage
from lingobus_io.storage import InMemoryLogSink
from lingobus_schemas.primitives import StageStatus
from tests.helpers.stubs import (
    RESULT_TOPIC,
    RecordingBus,
    StubTranslator,
    build_topics,
    encode_json,
    fixed_clock,
)


def _stage(
    bus: RecordingBus,
    translator: StubTranslator,
    log_sink: InMemoryLogSink | None = None,
) -> TranslationStage:
    return TranslationStage(
        bus=bus,
        translator=translator,
        topics=build_topics(),
        log_sink=log_sink,
        clock=fixed_clock,
    )


@pytest.mark.anyio
async def test_translation_publishes_one_result(log_sink: InMemoryLogSink) -> None:
    """Ensure filename and target language are carried to the result."""
    bus = RecordingBus()
    translator = StubTranslator({("bonjour", "en"): "hello"})
    stage = _stage(bus, translator, log_sink)

    result = await stage.handle(
        encode_json(
            {"text": "bonjour", "filename": "a.jpg", "lang": "en", "from": "fr"}
        )
    )

    assert result.status == StageStatus.COMPLETED
    assert result.published[0].topic == RESULT_TOPIC
    assert translator.calls == [("bonjour", "fr", "en")]
    assert bus.payloads(RESULT_TOPIC) == [
        {"text": "hello", "filename": "a.jpg", "lang": "en"}
    ]
    assert log_sink.entries[-1].message == "Text translated to en"


@pytest.mark.anyio
async def test_translation_without_source_language_autodetects() -> None:
    """Ensure a missing source language is passed as None."""
    translator = StubTranslator()
    stage = _stage(RecordingBus(), translator)

    await stage.handle_payload({"text": "hola", "filename": "a.jpg", "lang": "en"})

    assert translator.calls == [("hola", None, "en")]


@pytest.mark.anyio
async def test_translation_rejects_missing_target_language() -> None:
    """Ensure the target language is required."""
    bus = RecordingBus()
    stage = _stage(bus, StubTranslator())

    result = await stage.handle_payload({"text": "hola", "filename": "a.jpg"})

    assert result.status == StageStatus.REJECTED
    assert result.error is not None
    assert result.error.details is not None
    assert result.error.details.field == "lang"
    assert bus.published == []


@pytest.mark.anyio
async def test_translator_failure_is_retryable() -> None:
    """Ensure translation engine errors propagate for redelivery."""
    bus = RecordingBus()
    stage = _stage(bus, StubTranslator(error=TimeoutError("slow")))

    with pytest.raises(CollaboratorError) as exc_info:
        await stage.handle_payload(
            {"text": "hola", "filename": "a.jpg", "lang": "de"}
        )

    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.lang == "de"
    assert bus.published == []
