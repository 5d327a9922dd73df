"""Translation stage: translate one request and republish the result."""

from __future__ import annotations

from collections.abc import Callable

from lingobus_core.ports.bus import MessageBusProtocol
from lingobus_core.ports.collaborators import TranslatorProtocol
from lingobus_core.ports.logs import LogSinkProtocol
from lingobus_core.stages.base import Stage
from lingobus_schemas.config import TopicConfig
from lingobus_schemas.messages import TranslationRequest, TranslationResult
from lingobus_schemas.primitives import StageName, StageStatus, Timestamp
from lingobus_schemas.results import StageResult


class TranslationStage(Stage[TranslationRequest]):
    """Triggered by a translation request; emits exactly one result."""

    name = StageName.TRANSLATION
    payload_model = TranslationRequest

    def __init__(
        self,
        *,
        bus: MessageBusProtocol,
        translator: TranslatorProtocol,
        topics: TopicConfig,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the translation stage.

        Args:
            bus: Bus receiving the result message.
            translator: Translation engine.
            topics: Topic configuration.
            log_sink: Optional sink for structured log entries.
            clock: Timestamp provider.
        """
        super().__init__(log_sink=log_sink, clock=clock)
        self._bus = bus
        self._translator = translator
        self._topics = topics

    async def _process(
        self, payload: TranslationRequest, delivery_id: str | None
    ) -> StageResult:
        translated = await self._call(
            "translator",
            self._translator.translate(payload.text, payload.from_lang, payload.lang),
            lang=payload.lang,
        )
        result = TranslationResult(
            text=translated, filename=payload.filename, lang=payload.lang
        )
        published = await self._publish(
            self._bus,
            self._topics.result_topic,
            result,
            delivery_id=delivery_id,
            lang=payload.lang,
        )
        return StageResult(
            stage=self.name, status=StageStatus.COMPLETED, published=[published]
        )

    def _completion_message(
        self, payload: TranslationRequest, result: StageResult
    ) -> str:
        return f"Text translated to {payload.lang}"
