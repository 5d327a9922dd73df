"""Explicit outcome records returned by stage handlers."""

from __future__ import annotations

from pydantic import Field

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import (
    LanguageCode,
    NotificationChannel,
    StageName,
    StageStatus,
    TopicName,
)
from lingobus_schemas.responses import ErrorResponse


class PublishedMessage(BaseSchema):
    """A message a stage handed to the bus."""

    topic: TopicName = Field(..., description="Destination topic")
    message_id: str = Field(..., min_length=1, description="Bus message id")
    lang: LanguageCode | None = Field(None, description="Payload language")
    delay_s: float = Field(0.0, ge=0, description="Delivery delay in seconds")


class NotificationOutcome(BaseSchema):
    """Result of one best-effort notification attempt."""

    channel: NotificationChannel = Field(..., description="Notification channel")
    delivered: bool = Field(..., description="Whether the provider accepted it")
    reference: str | None = Field(None, description="Provider message/call id")
    error_message: str | None = Field(None, description="Failure reason")


class StageResult(BaseSchema):
    """Outcome of a single stage invocation."""

    stage: StageName = Field(..., description="Stage that handled the message")
    status: StageStatus = Field(..., description="Terminal outcome")
    published: list[PublishedMessage] = Field(
        default_factory=list, description="Messages handed to the bus"
    )
    artifact_key: str | None = Field(None, description="Artifact key touched")
    content: str | None = Field(
        None, description="Artifact content read by the retrieval stage"
    )
    notifications: list[NotificationOutcome] = Field(
        default_factory=list, description="Notification attempts"
    )
    notifications_skipped: bool = Field(
        False, description="Notifications skipped as duplicates"
    )
    error: ErrorResponse | None = Field(
        None, description="Rejection reason for rejected messages"
    )

    @property
    def published_count(self) -> int:
        """Return the number of published messages."""
        return len(self.published)


class PipelineRunSummary(BaseSchema):
    """Stage results collected while driving one upload through the pipeline."""

    filename: str = Field(..., min_length=1, description="Uploaded image name")
    results: list[StageResult] = Field(
        default_factory=list, description="Stage results in completion order"
    )
    dead_letters: int = Field(
        0, ge=0, description="Deliveries abandoned after the final attempt"
    )
    artifact_keys: list[str] = Field(
        default_factory=list, description="Artifact keys written"
    )


class ArtifactReadResult(BaseSchema):
    """Content of one stored artifact."""

    bucket: str = Field(..., min_length=1, description="Bucket holding it")
    key: str = Field(..., min_length=1, description="Artifact key")
    size_bytes: int = Field(..., ge=0, description="UTF-8 size in bytes")
    content: str = Field(..., description="Artifact text")


class ConfigCheckResult(BaseSchema):
    """Summary of a validated pipeline configuration."""

    config_path: str = Field(..., min_length=1, description="Config file path")
    topics: list[TopicName] = Field(..., description="Topics the stages use")
    target_languages: list[LanguageCode] = Field(
        ..., description="Fan-out languages"
    )
    result_bucket: str = Field(..., min_length=1, description="Artifact bucket")
    backend: str = Field(..., min_length=1, description="Blob store backend")
    notifications_enabled: bool = Field(..., description="Notifications on")
