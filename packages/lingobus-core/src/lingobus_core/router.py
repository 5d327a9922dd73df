"""Topic routing: binds bus topics to the stage that handles them."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from lingobus_core.ports.bus import MessageBusProtocol
from lingobus_core.ports.collaborators import (
    CallNotifierProtocol,
    LanguageDetectorProtocol,
    NotificationLedgerProtocol,
    OcrProtocol,
    SmsNotifierProtocol,
    TranslatorProtocol,
)
from lingobus_core.ports.errors import (
    RoutingError,
    StageErrorCode,
    StageErrorDetails,
    StageErrorInfo,
    collaborator_error,
)
from lingobus_core.ports.logs import LogSinkProtocol
from lingobus_core.ports.storage import BlobStoreProtocol
from lingobus_core.stages.base import Stage
from lingobus_core.stages.extraction import ExtractionStage
from lingobus_core.stages.persistence import PersistenceStage
from lingobus_core.stages.retrieval import RetrievalStage
from lingobus_core.stages.translation import TranslationStage
from lingobus_schemas.config import PipelineConfig
from lingobus_schemas.messages import BusMessage, UploadEvent
from lingobus_schemas.primitives import Timestamp
from lingobus_schemas.results import StageResult


@dataclass(frozen=True, slots=True)
class StageDependencies:
    """Collaborators injected into every stage."""

    bus: MessageBusProtocol
    blob_store: BlobStoreProtocol
    ocr: OcrProtocol
    language_detector: LanguageDetectorProtocol
    translator: TranslatorProtocol
    sms_notifier: SmsNotifierProtocol | None = None
    call_notifier: CallNotifierProtocol | None = None
    ledger: NotificationLedgerProtocol | None = None
    log_sink: LogSinkProtocol | None = None
    clock: Callable[[], Timestamp] | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


class PipelineRouter:
    """Registry of topic handlers for one pipeline configuration.

    The extraction stage is not bound to a bus topic: storage notifications
    reach it through ``handle_upload`` (or ``upload_topic`` when configured).
    """

    def __init__(
        self,
        *,
        extraction: ExtractionStage,
        routes: Mapping[str, Stage],
        handler_timeout_s: float | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            extraction: Stage handling upload notifications.
            routes: Topic name to stage mapping.
            handler_timeout_s: Optional deadline for a single invocation.
        """
        self._extraction = extraction
        self._routes = dict(routes)
        self._handler_timeout_s = handler_timeout_s

    @classmethod
    def from_config(
        cls, config: PipelineConfig, deps: StageDependencies
    ) -> PipelineRouter:
        """Build every stage from configuration and wire the topic table.

        Args:
            config: Pipeline configuration.
            deps: Injected collaborators.

        Returns:
            PipelineRouter: Router with all stages registered.
        """
        topics = config.topics
        extraction = ExtractionStage(
            bus=deps.bus,
            ocr=deps.ocr,
            language_detector=deps.language_detector,
            topics=topics,
            target_languages=config.languages.target_languages,
            log_sink=deps.log_sink,
            clock=deps.clock,
        )
        routes: dict[str, Stage] = {
            topics.translate_topic: TranslationStage(
                bus=deps.bus,
                translator=deps.translator,
                topics=topics,
                log_sink=deps.log_sink,
                clock=deps.clock,
            ),
            topics.result_topic: PersistenceStage(
                bus=deps.bus,
                blob_store=deps.blob_store,
                topics=topics,
                result_bucket=config.storage.result_bucket,
                read_delay_s=config.timing.read_delay_s,
                log_sink=deps.log_sink,
                clock=deps.clock,
            ),
            topics.read_topic: RetrievalStage(
                blob_store=deps.blob_store,
                result_bucket=config.storage.result_bucket,
                notifications=config.notifications,
                retry=config.timing.retrieval_retry,
                sms_notifier=deps.sms_notifier,
                call_notifier=deps.call_notifier,
                ledger=deps.ledger,
                log_sink=deps.log_sink,
                clock=deps.clock,
                sleep=deps.sleep,
            ),
        }
        if topics.upload_topic is not None:
            routes[topics.upload_topic] = extraction
        return cls(
            extraction=extraction,
            routes=routes,
            handler_timeout_s=config.timing.handler_timeout_s,
        )

    @property
    def routes(self) -> dict[str, Stage]:
        """Return a copy of the topic table."""
        return dict(self._routes)

    @property
    def extraction(self) -> ExtractionStage:
        """Return the stage handling upload notifications."""
        return self._extraction

    def stage_for(self, topic: str) -> Stage:
        """Return the stage registered for a topic.

        Raises:
            RoutingError: If no stage handles the topic.
        """
        stage = self._routes.get(topic)
        if stage is None:
            raise RoutingError(
                StageErrorInfo(
                    code=StageErrorCode.UNKNOWN_TOPIC,
                    message=f"No stage registered for topic: {topic}",
                    details=StageErrorDetails(
                        topic=topic, reason=", ".join(sorted(self._routes))
                    ),
                )
            )
        return stage

    async def dispatch(self, topic: str, message: BusMessage) -> StageResult:
        """Deliver one bus message to the stage registered for its topic.

        Args:
            topic: Topic the message arrived on.
            message: Delivered envelope.

        Returns:
            StageResult: Outcome of the invocation.

        Raises:
            RoutingError: If no stage handles the topic.
            CollaboratorError: If the stage failed transiently or missed its
                deadline.
        """
        stage = self.stage_for(topic)
        return await self._with_deadline(stage, stage.handle(message), topic=topic)

    async def handle_upload(
        self,
        event: Mapping[str, object] | UploadEvent,
        *,
        delivery_id: str | None = None,
    ) -> StageResult:
        """Run the extraction stage for a storage notification.

        Args:
            event: Raw notification mapping or parsed event.
            delivery_id: Optional id used to correlate logs.

        Returns:
            StageResult: Outcome of the invocation.
        """
        return await self._with_deadline(
            self._extraction,
            self._extraction.handle_payload(event, delivery_id=delivery_id),
            topic=None,
        )

    def subscribe_all(self, bus: MessageBusProtocol) -> None:
        """Subscribe every registered stage to its topic on a bus."""
        for topic in self._routes:
            bus.subscribe(topic, self._handler_for(topic))

    def _handler_for(
        self, topic: str
    ) -> Callable[[BusMessage], Awaitable[StageResult]]:
        async def _handler(message: BusMessage) -> StageResult:
            return await self.dispatch(topic, message)

        return _handler

    async def _with_deadline(
        self,
        stage: Stage,
        invocation: Awaitable[StageResult],
        *,
        topic: str | None,
    ) -> StageResult:
        if self._handler_timeout_s is None:
            return await invocation
        try:
            async with asyncio.timeout(self._handler_timeout_s):
                return await invocation
        except TimeoutError as exc:
            raise collaborator_error(
                f"Stage {stage.name} exceeded {self._handler_timeout_s}s deadline",
                collaborator="host",
                stage=stage.name,
                code=StageErrorCode.DEADLINE_EXCEEDED,
                topic=topic,
            ) from exc
