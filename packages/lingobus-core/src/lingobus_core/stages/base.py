"""Shared plumbing for stage handlers: decoding, publishing, logging."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import ClassVar, Generic, TypeVar

from lingobus_core.codec import decode_json_object, encode_message, validate_payload
from lingobus_core.ports.bus import MessageBusProtocol
from lingobus_core.ports.errors import (
    CollaboratorError,
    StageError,
    StageErrorCode,
    ValidationError,
    collaborator_error,
    validation_error,
)
from lingobus_core.ports.logs import (
    LogSinkProtocol,
    build_message_published_log,
    build_stage_completed_log,
    build_stage_error_log,
    build_stage_started_log,
)
from lingobus_core.ports.storage import StorageError
from lingobus_schemas.events import MessagePublishedData
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.messages import BusMessage, PayloadSchema
from lingobus_schemas.primitives import StageName, StageStatus, Timestamp
from lingobus_schemas.results import PublishedMessage, StageResult

PayloadT = TypeVar("PayloadT", bound=PayloadSchema)
T = TypeVar("T")


def now_timestamp() -> Timestamp:
    """Return the current UTC time as an ISO-8601 timestamp."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class Stage(Generic[PayloadT]):
    """Base class for a stateless handler of one inbound payload shape.

    Subclasses implement ``_process``. ``ValidationError`` becomes a
    ``rejected`` result (the delivery is acknowledged and dropped);
    ``CollaboratorError`` is logged and re-raised so the host redelivers.
    """

    name: ClassVar[StageName]
    payload_model: ClassVar[type[PayloadSchema]]

    def __init__(
        self,
        *,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize shared stage plumbing.

        Args:
            log_sink: Optional sink for structured log entries.
            clock: Timestamp provider, UTC now by default.
        """
        self._log_sink = log_sink
        self._clock = clock or now_timestamp

    async def handle(self, message: BusMessage) -> StageResult:
        """Handle one bus delivery.

        Returns:
            StageResult: Outcome of the invocation.
        """
        try:
            raw = decode_json_object(message, stage=self.name)
        except ValidationError as exc:
            return await self._reject(exc, message.message_id)
        return await self.handle_payload(raw, delivery_id=message.message_id)

    async def handle_payload(
        self,
        payload: Mapping[str, object] | PayloadT,
        *,
        delivery_id: str | None = None,
    ) -> StageResult:
        """Validate a parsed payload (or accept a model) and run the stage.

        Returns:
            StageResult: Outcome of the invocation.
        """
        if isinstance(payload, PayloadSchema):
            model = payload
        else:
            try:
                model = validate_payload(
                    dict(payload), self.payload_model, stage=self.name
                )
            except ValidationError as exc:
                return await self._reject(exc, delivery_id)
        return await self.run(model, delivery_id=delivery_id)  # type: ignore[arg-type]

    async def run(
        self, payload: PayloadT, *, delivery_id: str | None = None
    ) -> StageResult:
        """Run the stage body on a validated payload.

        Returns:
            StageResult: Outcome of the invocation.

        Raises:
            CollaboratorError: If a collaborator failed; the delivery should
                be retried.
        """
        await self._log(
            build_stage_started_log(
                self._clock(),
                self.name,
                delivery_id,
                filename=getattr(payload, "filename", None)
                or getattr(payload, "name", None),
                lang=getattr(payload, "lang", None),
            )
        )
        try:
            result = await self._process(payload, delivery_id)
        except ValidationError as exc:
            return await self._reject(exc, delivery_id)
        except CollaboratorError as exc:
            await self._log(
                build_stage_error_log(
                    self._clock(), self.name, delivery_id, exc.info, retryable=True
                )
            )
            raise
        await self._log(
            build_stage_completed_log(
                self._clock(),
                self.name,
                delivery_id,
                StageStatus(result.status),
                result.published_count,
                self._completion_message(payload, result),
            )
        )
        return result

    async def _process(
        self, payload: PayloadT, delivery_id: str | None
    ) -> StageResult:
        raise NotImplementedError

    def _completion_message(self, payload: PayloadT, result: StageResult) -> str:
        return f"Stage {self.name} {result.status}"

    async def _reject(
        self, exc: ValidationError, delivery_id: str | None
    ) -> StageResult:
        await self._log(
            build_stage_error_log(
                self._clock(), self.name, delivery_id, exc.info, retryable=False
            )
        )
        return StageResult(
            stage=self.name,
            status=StageStatus.REJECTED,
            error=exc.info.to_error_response(),
        )

    async def _call(
        self,
        collaborator: str,
        call: Awaitable[T],
        *,
        lang: str | None = None,
        key: str | None = None,
    ) -> T:
        """Await a collaborator call, wrapping failures as CollaboratorError.

        Returns:
            T: The collaborator's return value.

        Raises:
            StageError: Passed through unchanged when already structured.
            ValidationError: If storage refused the key derived from the payload.
            CollaboratorError: For any other failure.
        """
        try:
            return await call
        except StageError:
            raise
        except Exception as exc:
            if isinstance(exc, StorageError) and exc.is_invalid_key:
                raise self._rejected_key(exc) from exc
            raise collaborator_error(
                f"{collaborator} call failed: {exc}",
                collaborator=collaborator,
                stage=self.name,
                lang=lang,
                key=key,
            ) from exc

    def _rejected_key(self, exc: StorageError) -> ValidationError:
        """Turn a refused storage key into a permanent payload rejection.

        Returns:
            ValidationError: Error naming the payload field behind the key.
        """
        details = exc.info.details
        return validation_error(
            f"Storage rejected the artifact key: {exc}",
            stage=self.name,
            field="filename" if details is not None and details.key else None,
            code=StageErrorCode.INVALID_PAYLOAD,
        )

    async def _publish(
        self,
        bus: MessageBusProtocol,
        topic: str,
        payload: PayloadSchema,
        *,
        delivery_id: str | None,
        lang: str | None = None,
        delay_s: float = 0.0,
    ) -> PublishedMessage:
        """Encode and publish one payload.

        Returns:
            PublishedMessage: Record of the publish.

        Raises:
            CollaboratorError: If the bus rejected the publish.
        """
        message = encode_message(payload)
        try:
            message_id = await bus.publish(topic, message, delay_s=delay_s)
        except StageError:
            raise
        except Exception as exc:
            raise collaborator_error(
                f"Publishing to {topic} failed: {exc}",
                collaborator="bus",
                stage=self.name,
                code=StageErrorCode.PUBLISH_FAILED,
                topic=topic,
                lang=lang,
            ) from exc
        published = PublishedMessage(
            topic=topic, message_id=message_id, lang=lang, delay_s=delay_s
        )
        await self._log(
            build_message_published_log(
                self._clock(),
                self.name,
                delivery_id,
                MessagePublishedData(
                    topic=topic, message_id=message_id, lang=lang, delay_s=delay_s
                ),
            )
        )
        return published

    async def _log(self, entry: LogEntry) -> None:
        if self._log_sink is not None:
            await self._log_sink.emit_log(entry)
