"""Event taxonomy and structured payloads for stage observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import (
    LanguageCode,
    NotificationChannel,
    StageStatus,
    TopicName,
)


class StageEvent(StrEnum):
    """Event names for stage lifecycle."""

    STARTED = "stage_started"
    COMPLETED = "stage_completed"
    IGNORED = "stage_ignored"
    REJECTED = "message_rejected"
    FAILED = "stage_failed"


class MessageEvent(StrEnum):
    """Event names for bus publishes."""

    PUBLISHED = "message_published"


class ArtifactEvent(StrEnum):
    """Event names for artifact persistence and retrieval."""

    WRITTEN = "artifact_written"
    READ = "artifact_read"
    READ_RETRY = "artifact_read_retry"


class NotificationEvent(StrEnum):
    """Event names for best-effort notifications."""

    SENT = "notification_sent"
    FAILED = "notification_failed"
    SKIPPED = "notification_skipped"


class CommandEvent(StrEnum):
    """Event names for CLI command execution."""

    STARTED = "command_started"
    COMPLETED = "command_completed"
    FAILED = "command_failed"


class StageStartedData(BaseSchema):
    """Payload for stage start events."""

    filename: str | None = Field(None, description="Source image name if known")
    lang: LanguageCode | None = Field(None, description="Language if applicable")


class StageCompletedData(BaseSchema):
    """Payload for stage completion events."""

    status: StageStatus = Field(..., description="Stage outcome")
    published_count: int = Field(..., ge=0, description="Messages published")


class StageFailedData(BaseSchema):
    """Payload for stage failure and rejection events."""

    error_code: str = Field(..., min_length=1, description="Error code")
    why: str = Field(..., min_length=1, description="Reason for failure")
    retryable: bool = Field(..., description="Whether redelivery may succeed")


class MessagePublishedData(BaseSchema):
    """Payload for message publish events."""

    topic: TopicName = Field(..., description="Destination topic")
    message_id: str = Field(..., min_length=1, description="Bus message id")
    lang: LanguageCode | None = Field(None, description="Payload language")
    delay_s: float = Field(0.0, ge=0, description="Delivery delay in seconds")


class ArtifactData(BaseSchema):
    """Payload for artifact write and read events."""

    bucket: str = Field(..., min_length=1, description="Artifact bucket")
    key: str = Field(..., min_length=1, description="Artifact key")
    size_bytes: int | None = Field(None, ge=0, description="Artifact size")
    attempt: int | None = Field(None, ge=1, description="Read attempt number")


class NotificationData(BaseSchema):
    """Payload for notification events."""

    channel: NotificationChannel = Field(..., description="Notification channel")
    reference: str | None = Field(None, description="Provider message/call id")
    error_message: str | None = Field(None, description="Failure reason")


class CommandStartedData(BaseSchema):
    """Payload for command start events."""

    command: str = Field(..., min_length=1, description="CLI command name")
    args: dict[str, str] | None = Field(None, description="Command arguments")


class CommandCompletedData(BaseSchema):
    """Payload for command completion events."""

    command: str = Field(..., min_length=1, description="CLI command name")


class CommandFailedData(BaseSchema):
    """Payload for command failure events."""

    command: str = Field(..., min_length=1, description="CLI command name")
    error_code: str = Field(..., min_length=1, description="Error code")
    error_message: str = Field(..., min_length=1, description="Error message")
