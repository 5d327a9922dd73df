"""JSONL log entry schema for pipeline events."""

from __future__ import annotations

from pydantic import Field

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import (
    EventName,
    JsonValue,
    LogLevel,
    StageName,
    Timestamp,
)


class LogEntry(BaseSchema):
    """Single log line in JSONL format."""

    timestamp: Timestamp = Field(
        ..., description="ISO-8601 timestamp for the log entry"
    )
    level: LogLevel = Field(..., description="Log level")
    event: EventName = Field(..., description="Event name")
    stage: StageName | None = Field(None, description="Pipeline stage if applicable")
    delivery_id: str | None = Field(
        None, description="Bus message id of the triggering delivery"
    )
    message: str = Field(..., min_length=1, description="Log message")
    data: dict[str, JsonValue] | None = Field(None, description="Structured event data")
