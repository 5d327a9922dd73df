"""Log sink protocol and structured log builders for stage events."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lingobus_core.ports.errors import StageErrorInfo
from lingobus_schemas.events import (
    ArtifactData,
    ArtifactEvent,
    MessageEvent,
    MessagePublishedData,
    NotificationData,
    NotificationEvent,
    StageCompletedData,
    StageEvent,
    StageFailedData,
    StageStartedData,
)
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.primitives import (
    LogLevel,
    NotificationChannel,
    StageName,
    StageStatus,
    Timestamp,
)


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


def build_stage_started_log(
    timestamp: Timestamp,
    stage: StageName,
    delivery_id: str | None,
    *,
    filename: str | None = None,
    lang: str | None = None,
) -> LogEntry:
    """Build a log entry for a stage picking up a delivery.

    Args:
        timestamp: ISO-8601 timestamp.
        stage: Stage handling the delivery.
        delivery_id: Bus message id of the delivery.
        filename: Source image name if known.
        lang: Language if applicable.

    Returns:
        LogEntry: Structured stage start log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=StageEvent.STARTED,
        stage=stage,
        delivery_id=delivery_id,
        message=f"Stage {stage} started",
        data=StageStartedData(filename=filename, lang=lang).model_dump(
            exclude_none=True
        ),
    )


def build_stage_completed_log(
    timestamp: Timestamp,
    stage: StageName,
    delivery_id: str | None,
    status: StageStatus,
    published_count: int,
    message: str,
) -> LogEntry:
    """Build a log entry for a stage that finished handling a delivery.

    Args:
        timestamp: ISO-8601 timestamp.
        stage: Stage that handled the delivery.
        delivery_id: Bus message id of the delivery.
        status: Completed or ignored.
        published_count: Number of messages handed to the bus.
        message: Human readable summary.

    Returns:
        LogEntry: Structured completion log entry.
    """
    event = (
        StageEvent.IGNORED if status == StageStatus.IGNORED else StageEvent.COMPLETED
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=event,
        stage=stage,
        delivery_id=delivery_id,
        message=message,
        data=StageCompletedData(
            status=status, published_count=published_count
        ).model_dump(exclude_none=True),
    )


def build_stage_error_log(
    timestamp: Timestamp,
    stage: StageName,
    delivery_id: str | None,
    info: StageErrorInfo,
    *,
    retryable: bool,
) -> LogEntry:
    """Build a log entry for a rejected or failed delivery.

    Rejections (permanent) log as ``message_rejected`` at warn level;
    failures (retryable) log as ``stage_failed`` at error level.

    Args:
        timestamp: ISO-8601 timestamp.
        stage: Stage that handled the delivery.
        delivery_id: Bus message id of the delivery.
        info: Structured error information.
        retryable: Whether the host should redeliver.

    Returns:
        LogEntry: Structured error log entry.
    """
    code_value = getattr(info.code, "value", info.code)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.ERROR if retryable else LogLevel.WARN,
        event=StageEvent.FAILED if retryable else StageEvent.REJECTED,
        stage=stage,
        delivery_id=delivery_id,
        message=info.message,
        data=StageFailedData(
            error_code=str(code_value), why=info.message, retryable=retryable
        ).model_dump(exclude_none=True),
    )


def build_message_published_log(
    timestamp: Timestamp,
    stage: StageName,
    delivery_id: str | None,
    data: MessagePublishedData,
) -> LogEntry:
    """Build a log entry for a message handed to the bus.

    Args:
        timestamp: ISO-8601 timestamp.
        stage: Publishing stage.
        delivery_id: Bus message id of the triggering delivery.
        data: Publish details.

    Returns:
        LogEntry: Structured publish log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.DEBUG,
        event=MessageEvent.PUBLISHED,
        stage=stage,
        delivery_id=delivery_id,
        message=f"Published to {data.topic}",
        data=data.model_dump(exclude_none=True),
    )


def build_artifact_log(
    timestamp: Timestamp,
    stage: StageName,
    delivery_id: str | None,
    event: ArtifactEvent,
    data: ArtifactData,
) -> LogEntry:
    """Build a log entry for an artifact write, read or read retry.

    Args:
        timestamp: ISO-8601 timestamp.
        stage: Stage touching the artifact.
        delivery_id: Bus message id of the triggering delivery.
        event: Artifact event name.
        data: Artifact location details.

    Returns:
        LogEntry: Structured artifact log entry.
    """
    messages = {
        ArtifactEvent.WRITTEN: (
            f"Saved result to '{data.key}' in bucket '{data.bucket}'"
        ),
        ArtifactEvent.READ: f"Read '{data.key}' from bucket '{data.bucket}'",
        ArtifactEvent.READ_RETRY: f"'{data.key}' not readable yet, retrying",
    }
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN if event == ArtifactEvent.READ_RETRY else LogLevel.INFO,
        event=event,
        stage=stage,
        delivery_id=delivery_id,
        message=messages[event],
        data=data.model_dump(exclude_none=True),
    )


def build_notification_log(
    timestamp: Timestamp,
    delivery_id: str | None,
    event: NotificationEvent,
    channel: NotificationChannel,
    *,
    reference: str | None = None,
    error_message: str | None = None,
) -> LogEntry:
    """Build a log entry for a notification attempt.

    Args:
        timestamp: ISO-8601 timestamp.
        delivery_id: Bus message id of the triggering delivery.
        event: Sent, failed or skipped.
        channel: Notification channel.
        reference: Provider message/call id on success.
        error_message: Failure reason.

    Returns:
        LogEntry: Structured notification log entry.
    """
    messages = {
        NotificationEvent.SENT: f"{channel} notification sent",
        NotificationEvent.FAILED: f"{channel} notification failed",
        NotificationEvent.SKIPPED: f"{channel} notification skipped as duplicate",
    }
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN if event == NotificationEvent.FAILED else LogLevel.INFO,
        event=event,
        stage=StageName.RETRIEVAL,
        delivery_id=delivery_id,
        message=messages[event],
        data=NotificationData(
            channel=channel, reference=reference, error_message=error_message
        ).model_dump(exclude_none=True),
    )
