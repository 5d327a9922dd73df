"""Persistence stage: store a result artifact and schedule its read-back."""

from __future__ import annotations

from collections.abc import Callable

from lingobus_core.naming import artifact_name
from lingobus_core.ports.bus import MessageBusProtocol
from lingobus_core.ports.logs import LogSinkProtocol, build_artifact_log
from lingobus_core.ports.storage import BlobStoreProtocol
from lingobus_core.stages.base import Stage
from lingobus_schemas.config import DEFAULT_READ_DELAY_S, TopicConfig
from lingobus_schemas.events import ArtifactData, ArtifactEvent
from lingobus_schemas.messages import ReadRequest, TranslationResult
from lingobus_schemas.primitives import StageName, StageStatus, Timestamp
from lingobus_schemas.results import StageResult


class PersistenceStage(Stage[TranslationResult]):
    """Triggered by a result message from extraction or translation."""

    name = StageName.PERSISTENCE
    payload_model = TranslationResult

    def __init__(
        self,
        *,
        bus: MessageBusProtocol,
        blob_store: BlobStoreProtocol,
        topics: TopicConfig,
        result_bucket: str,
        read_delay_s: float = DEFAULT_READ_DELAY_S,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the persistence stage.

        Args:
            bus: Bus receiving the delayed read request.
            blob_store: Artifact store.
            topics: Topic configuration.
            result_bucket: Bucket receiving artifacts.
            read_delay_s: Delivery delay of the read request after the write
                is acknowledged.
            log_sink: Optional sink for structured log entries.
            clock: Timestamp provider.
        """
        super().__init__(log_sink=log_sink, clock=clock)
        self._bus = bus
        self._blob_store = blob_store
        self._topics = topics
        self._result_bucket = result_bucket
        self._read_delay_s = read_delay_s

    async def _process(
        self, payload: TranslationResult, delivery_id: str | None
    ) -> StageResult:
        key = artifact_name(payload.filename, payload.lang)
        ack = await self._call(
            "blob_store",
            self._blob_store.write(self._result_bucket, key, payload.text),
            lang=payload.lang,
            key=key,
        )
        await self._log(
            build_artifact_log(
                self._clock(),
                self.name,
                delivery_id,
                ArtifactEvent.WRITTEN,
                ArtifactData(bucket=ack.bucket, key=ack.key, size_bytes=ack.size_bytes),
            )
        )
        # The read request is only published once the write is acknowledged.
        published = await self._publish(
            self._bus,
            self._topics.read_topic,
            ReadRequest(filename=payload.filename, lang=payload.lang),
            delivery_id=delivery_id,
            lang=payload.lang,
            delay_s=self._read_delay_s,
        )
        return StageResult(
            stage=self.name,
            status=StageStatus.COMPLETED,
            published=[published],
            artifact_key=key,
        )

    def _completion_message(
        self, payload: TranslationResult, result: StageResult
    ) -> str:
        return "File saved."
