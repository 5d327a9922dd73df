"""Extraction stage: OCR an uploaded image and fan out one message per language."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from pydantic import ValidationError as SchemaValidationError

from lingobus_core.ports.bus import MessageBusProtocol
from lingobus_core.ports.collaborators import LanguageDetectorProtocol, OcrProtocol
from lingobus_core.ports.errors import (
    StageError,
    StageErrorCode,
    collaborator_error,
)
from lingobus_core.ports.logs import LogSinkProtocol, build_stage_completed_log
from lingobus_core.stages.base import Stage
from lingobus_schemas.config import TopicConfig
from lingobus_schemas.messages import (
    ExtractedText,
    ImageReference,
    PayloadSchema,
    TranslationRequest,
    TranslationResult,
    UploadEvent,
)
from lingobus_schemas.primitives import (
    ResourceState,
    StageName,
    StageStatus,
    Timestamp,
)
from lingobus_schemas.results import PublishedMessage, StageResult


@dataclass(frozen=True, slots=True)
class FanOutRoute:
    """Where the text for one target language is sent."""

    lang: str
    topic: str
    payload: PayloadSchema
    direct: bool


def plan_fan_out(
    extracted: ExtractedText,
    target_languages: Sequence[str],
    topics: TopicConfig,
) -> list[FanOutRoute]:
    """Plan one outbound message per target language.

    A target equal to the detected source language skips translation and goes
    straight to the result topic; every other target becomes a translation
    request.

    Args:
        extracted: Text and detected language of the upload.
        target_languages: Configured target languages, in order.
        topics: Topic configuration.

    Returns:
        list[FanOutRoute]: Exactly one route per target language.
    """
    routes: list[FanOutRoute] = []
    for lang in target_languages:
        if lang == extracted.source_language:
            routes.append(
                FanOutRoute(
                    lang=lang,
                    topic=topics.result_topic,
                    payload=TranslationResult(
                        text=extracted.text, filename=extracted.filename, lang=lang
                    ),
                    direct=True,
                )
            )
        else:
            routes.append(
                FanOutRoute(
                    lang=lang,
                    topic=topics.translate_topic,
                    payload=TranslationRequest(
                        text=extracted.text,
                        filename=extracted.filename,
                        lang=lang,
                        from_lang=extracted.source_language,
                    ),
                    direct=False,
                )
            )
    return routes


class ExtractionStage(Stage[UploadEvent]):
    """Triggered by an upload; extracts text and fans out per language."""

    name = StageName.EXTRACTION
    payload_model = UploadEvent

    def __init__(
        self,
        *,
        bus: MessageBusProtocol,
        ocr: OcrProtocol,
        language_detector: LanguageDetectorProtocol,
        topics: TopicConfig,
        target_languages: Sequence[str],
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the extraction stage.

        Args:
            bus: Bus receiving the fan-out messages.
            ocr: Text-detection engine.
            language_detector: Language-detection engine.
            topics: Topic configuration.
            target_languages: Languages every upload is fanned out to.
            log_sink: Optional sink for structured log entries.
            clock: Timestamp provider.
        """
        super().__init__(log_sink=log_sink, clock=clock)
        self._bus = bus
        self._ocr = ocr
        self._language_detector = language_detector
        self._topics = topics
        self._target_languages = list(target_languages)

    async def handle_payload(
        self,
        payload: Mapping[str, object] | UploadEvent,
        *,
        delivery_id: str | None = None,
    ) -> StageResult:
        """Ignore deletions before validating, then run the stage.

        Returns:
            StageResult: Outcome of the invocation.
        """
        if _is_deletion(payload):
            await self._log(
                build_stage_completed_log(
                    self._clock(),
                    self.name,
                    delivery_id,
                    StageStatus.IGNORED,
                    0,
                    "Deletion event ignored",
                )
            )
            return StageResult(stage=self.name, status=StageStatus.IGNORED)
        return await super().handle_payload(payload, delivery_id=delivery_id)

    async def extract(self, upload: UploadEvent) -> ExtractedText:
        """Run OCR and language detection on the uploaded image.

        Returns:
            ExtractedText: Text (empty if none found) and its language.

        Raises:
            CollaboratorError: If an engine fails or returns an unusable
                language code.
        """
        image = ImageReference(bucket=upload.bucket, name=upload.name)
        text = await self._call("ocr", self._ocr.detect(image))
        text = text or ""
        language = await self._call(
            "language_detector", self._language_detector.detect(text)
        )
        try:
            return ExtractedText(
                filename=upload.name, source_language=language, text=text
            )
        except SchemaValidationError as exc:
            raise collaborator_error(
                f"Language detector returned an invalid code: {language!r}",
                collaborator="language_detector",
                stage=self.name,
            ) from exc

    async def _process(
        self, payload: UploadEvent, delivery_id: str | None
    ) -> StageResult:
        if payload.is_deletion:
            return StageResult(stage=self.name, status=StageStatus.IGNORED)
        extracted = await self.extract(payload)
        routes = plan_fan_out(extracted, self._target_languages, self._topics)
        published = await self._fan_out(routes, delivery_id)
        return StageResult(
            stage=self.name, status=StageStatus.COMPLETED, published=published
        )

    async def _fan_out(
        self, routes: list[FanOutRoute], delivery_id: str | None
    ) -> list[PublishedMessage]:
        """Publish every route concurrently and wait for all of them.

        Every publish is attempted even when another fails; any failure fails
        the invocation so the upload is redelivered and the fan-out re-run.

        Returns:
            list[PublishedMessage]: Publishes aligned with the routes.

        Raises:
            CollaboratorError: If at least one publish failed.
        """
        results: list[PublishedMessage | StageError | None] = [None] * len(routes)

        async def _publish_route(index: int, route: FanOutRoute) -> None:
            try:
                results[index] = await self._publish(
                    self._bus,
                    route.topic,
                    route.payload,
                    delivery_id=delivery_id,
                    lang=route.lang,
                )
            except StageError as exc:
                results[index] = exc

        async with asyncio.TaskGroup() as group:
            for index, route in enumerate(routes):
                group.create_task(_publish_route(index, route))

        failures = [result for result in results if isinstance(result, StageError)]
        if failures:
            failed_langs = [
                route.lang
                for route, result in zip(routes, results, strict=True)
                if isinstance(result, StageError)
            ]
            raise collaborator_error(
                f"{len(failures)} of {len(routes)} fan-out publishes failed "
                f"({', '.join(failed_langs)})",
                collaborator="bus",
                stage=self.name,
                code=StageErrorCode.PUBLISH_FAILED,
            ) from failures[0]
        return [
            result for result in results if isinstance(result, PublishedMessage)
        ]

    def _completion_message(self, payload: UploadEvent, result: StageResult) -> str:
        return f"File {payload.name} processed."


def _is_deletion(payload: Mapping[str, object] | UploadEvent) -> bool:
    if isinstance(payload, UploadEvent):
        return payload.is_deletion
    state = payload.get("resourceState", payload.get("resource_state"))
    return state == ResourceState.NOT_EXISTS
