"""Protocol definitions for the message bus."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from typing_extensions import TypeAliasType

from lingobus_schemas.messages import BusMessage

MessageHandler = TypeAliasType(
    "MessageHandler", Callable[[BusMessage], Awaitable[object]]
)


@runtime_checkable
class MessageBusProtocol(Protocol):
    """Protocol for publishing to and subscribing on bus topics.

    Delivery is at-least-once with no ordering guarantee between messages.
    """

    async def publish(
        self, topic: str, message: BusMessage, *, delay_s: float = 0.0
    ) -> str:
        """Publish a message, delivered no earlier than ``delay_s`` from now.

        Returns the bus-assigned message id.
        """
        raise NotImplementedError

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Register a handler for deliveries on a topic."""
        raise NotImplementedError
