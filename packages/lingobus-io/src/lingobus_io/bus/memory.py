"""In-process message bus with delayed and at-least-once delivery."""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from lingobus_core.ports.bus import MessageBusProtocol, MessageHandler
from lingobus_core.ports.errors import StageError
from lingobus_schemas.messages import BusMessage

DEFAULT_MAX_DELIVERY_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class PublishRecord:
    """One message accepted by ``publish``."""

    topic: str
    message: BusMessage
    delay_s: float


@dataclass(frozen=True, slots=True)
class DeliveryRecord:
    """One handler invocation and its outcome."""

    topic: str
    message_id: str
    attempt: int
    result: object = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when the handler returned without raising."""
        return self.error is None


@dataclass(slots=True)
class DeadLetter:
    """A message whose delivery was abandoned."""

    topic: str
    message: BusMessage
    attempts: int
    error: BaseException
    history: list[DeliveryRecord] = field(default_factory=list)


class InMemoryMessageBus(MessageBusProtocol):
    """Message bus running subscribers as tasks on the current event loop.

    Each subscriber receives every message published on its topic. A handler
    that raises is redelivered with an incremented ``delivery_attempt`` until
    ``max_delivery_attempts`` is reached; errors flagged as not retryable are
    dead-lettered on the first failure.
    """

    def __init__(
        self,
        *,
        max_delivery_attempts: int = DEFAULT_MAX_DELIVERY_ATTEMPTS,
        redelivery_delay_s: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the bus.

        Args:
            max_delivery_attempts: Attempts before a message is dead-lettered.
            redelivery_delay_s: Pause between a failure and its redelivery.
            sleep: Awaitable sleep used for delayed and repeated deliveries.

        Raises:
            ValueError: If max_delivery_attempts is below one.
        """
        if max_delivery_attempts < 1:
            raise ValueError("max_delivery_attempts must be at least 1")
        self._max_delivery_attempts = max_delivery_attempts
        self._redelivery_delay_s = redelivery_delay_s
        self._sleep = sleep
        self._subscribers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()
        self._ids = itertools.count(1)
        self.published: list[PublishRecord] = []
        self.deliveries: list[DeliveryRecord] = []
        self.dead_letters: list[DeadLetter] = []

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Register a handler for deliveries on a topic."""
        self._subscribers[topic].append(handler)

    async def publish(
        self, topic: str, message: BusMessage, *, delay_s: float = 0.0
    ) -> str:
        """Accept a message and schedule its delivery to each subscriber.

        Returns:
            str: Bus-assigned message id.

        Raises:
            ValueError: If delay_s is negative.
        """
        if delay_s < 0:
            raise ValueError("delay_s must not be negative")
        message_id = message.message_id or f"msg-{next(self._ids)}"
        stamped = message.model_copy(
            update={
                "message_id": message_id,
                "publish_time": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                "delivery_attempt": 1,
            }
        )
        self.published.append(
            PublishRecord(topic=topic, message=stamped, delay_s=delay_s)
        )
        for handler in self._subscribers.get(topic, []):
            task = asyncio.create_task(self._deliver(topic, handler, stamped, delay_s))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return message_id

    async def drain(self) -> None:
        """Wait until no delivery is scheduled or running.

        Deliveries started by handlers while draining are awaited too.
        """
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    async def close(self) -> None:
        """Cancel every scheduled delivery."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def messages_on(self, topic: str) -> list[BusMessage]:
        """Return the messages published on a topic, in publish order."""
        return [record.message for record in self.published if record.topic == topic]

    async def _deliver(
        self,
        topic: str,
        handler: MessageHandler,
        message: BusMessage,
        delay_s: float,
    ) -> None:
        if delay_s > 0:
            await self._sleep(delay_s)
        history: list[DeliveryRecord] = []
        attempt = 0
        while True:
            attempt += 1
            delivery = message.model_copy(update={"delivery_attempt": attempt})
            message_id = delivery.message_id or ""
            try:
                result = await handler(delivery)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                record = DeliveryRecord(
                    topic=topic, message_id=message_id, attempt=attempt, error=exc
                )
                self.deliveries.append(record)
                history.append(record)
                retryable = not isinstance(exc, StageError) or exc.retryable
                if not retryable or attempt >= self._max_delivery_attempts:
                    self.dead_letters.append(
                        DeadLetter(
                            topic=topic,
                            message=delivery,
                            attempts=attempt,
                            error=exc,
                            history=history,
                        )
                    )
                    return
                if self._redelivery_delay_s > 0:
                    await self._sleep(self._redelivery_delay_s)
                continue
            record = DeliveryRecord(
                topic=topic, message_id=message_id, attempt=attempt, result=result
            )
            self.deliveries.append(record)
            return
