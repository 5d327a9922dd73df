"""Message bus adapters."""

from lingobus_io.bus.memory import (
    DeadLetter,
    DeliveryRecord,
    InMemoryMessageBus,
    PublishRecord,
)

__all__ = ["DeadLetter", "DeliveryRecord", "InMemoryMessageBus", "PublishRecord"]
