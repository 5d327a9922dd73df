"""Configuration schemas for lingobus pipelines."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import (
    BlobBackend,
    LanguageCode,
    LogSinkType,
    TopicName,
)

DEFAULT_READ_DELAY_S = 3.0
DEFAULT_EMPTY_SMS_BODY = "MESSAGE NOT FOUND"


def _validate_http_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be an http/https URL with host")
    return value


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> LogSinkType:
        if isinstance(value, LogSinkType):
            return value
        if isinstance(value, str):
            return LogSinkType(value)
        return value  # type: ignore[return-value]


class LoggingConfig(BaseSchema):
    """Logging configuration for stage handlers and CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        ..., min_length=1, description="Log sinks to enable"
    )
    logs_dir: str | None = Field(
        None, min_length=1, description="Directory for JSONL log files"
    )

    @model_validator(mode="after")
    def validate_sinks(self) -> LoggingConfig:
        """Ensure log sink types are unique and file sinks have a directory.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated or logs_dir is missing.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        if LogSinkType.FILE in sink_types and self.logs_dir is None:
            raise ValueError("logs_dir is required when a file sink is enabled")
        return self


class TopicConfig(BaseSchema):
    """Bus topic names wiring the stages together."""

    translate_topic: TopicName = Field(
        ..., description="Topic carrying translation requests"
    )
    result_topic: TopicName = Field(
        ..., description="Topic carrying text ready to persist"
    )
    read_topic: TopicName = Field(..., description="Topic carrying read requests")
    upload_topic: TopicName | None = Field(
        None, description="Topic carrying storage upload notifications, if any"
    )

    @model_validator(mode="after")
    def validate_distinct(self) -> TopicConfig:
        """Ensure every stage listens on its own topic.

        Returns:
            TopicConfig: Validated topic configuration.

        Raises:
            ValueError: If two roles share a topic name.
        """
        names = [self.translate_topic, self.result_topic, self.read_topic]
        if self.upload_topic is not None:
            names.append(self.upload_topic)
        if len(set(names)) != len(names):
            raise ValueError("pipeline topics must be distinct")
        return self


class LanguageConfig(BaseSchema):
    """Target languages every upload is fanned out to."""

    target_languages: list[LanguageCode] = Field(
        ..., min_length=1, description="Target language codes"
    )

    @model_validator(mode="after")
    def validate_unique(self) -> LanguageConfig:
        """Ensure target languages are unique.

        Returns:
            LanguageConfig: Validated language configuration.

        Raises:
            ValueError: If a target language is listed twice.
        """
        if len(set(self.target_languages)) != len(self.target_languages):
            raise ValueError("target_languages must be unique")
        return self


class StorageConfig(BaseSchema):
    """Blob storage settings for translated artifacts."""

    result_bucket: str = Field(
        ..., min_length=1, description="Bucket receiving translated artifacts"
    )
    backend: BlobBackend = Field(
        BlobBackend.FILESYSTEM, description="Blob store backend (memory|filesystem)"
    )
    root_dir: str | None = Field(
        None, min_length=1, description="Root directory for the filesystem backend"
    )
    ledger_dir: str | None = Field(
        None, min_length=1, description="Directory for the notification ledger"
    )

    @field_validator("backend", mode="before")
    @classmethod
    def _coerce_backend(cls, value: object) -> BlobBackend:
        if isinstance(value, BlobBackend):
            return value
        if isinstance(value, str):
            return BlobBackend(value)
        return value  # type: ignore[return-value]

    @model_validator(mode="after")
    def validate_root_dir(self) -> StorageConfig:
        """Ensure the filesystem backend has a root directory.

        Returns:
            StorageConfig: Validated storage configuration.

        Raises:
            ValueError: If root_dir is missing for the filesystem backend.
        """
        if self.backend == BlobBackend.FILESYSTEM and self.root_dir is None:
            raise ValueError("root_dir is required for the filesystem backend")
        return self


class RetryConfig(BaseSchema):
    """Retry policy for reads that race a recent write."""

    max_retries: int = Field(3, ge=0, description="Maximum retry attempts")
    backoff_s: float = Field(1.0, gt=0, description="Initial backoff in seconds")
    max_backoff_s: float = Field(
        30.0, gt=0, description="Maximum backoff delay in seconds"
    )


class TimingConfig(BaseSchema):
    """Delivery timing for delayed reads and handler deadlines."""

    read_delay_s: float = Field(
        DEFAULT_READ_DELAY_S,
        ge=0,
        description="Delay before a read request is delivered after a write",
    )
    handler_timeout_s: float | None = Field(
        None, gt=0, description="Deadline for a single stage invocation"
    )
    max_delivery_attempts: int = Field(
        5, ge=1, description="Delivery attempts before a message is dead-lettered"
    )
    retrieval_retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Backoff applied while an artifact is not yet readable",
    )


class NotificationConfig(BaseSchema):
    """SMS and voice-call notification settings."""

    enabled: bool = Field(True, description="Send notifications after retrieval")
    dedupe: bool = Field(
        True, description="Skip notifications for content already notified"
    )
    sms_to: str | None = Field(None, min_length=1, description="SMS recipient")
    sms_from: str | None = Field(None, min_length=1, description="SMS sender")
    call_to: str | None = Field(None, min_length=1, description="Call recipient")
    call_from: str | None = Field(None, min_length=1, description="Call sender")
    call_webhook_url: str | None = Field(
        None, min_length=1, description="Webhook that answers the placed call"
    )
    empty_body: str = Field(
        DEFAULT_EMPTY_SMS_BODY,
        min_length=1,
        description="SMS body used when the artifact is empty",
    )

    @field_validator("call_webhook_url")
    @classmethod
    def validate_webhook_url(cls, value: str | None) -> str | None:
        """Ensure the call webhook uses http/https with a host.

        Args:
            value: Raw webhook URL.

        Returns:
            str | None: Validated webhook URL.
        """
        if value is None:
            return value
        return _validate_http_url(value, "call_webhook_url")


class EndpointConfig(BaseSchema):
    """Base URLs and timeouts for the hosted collaborator APIs."""

    vision_base_url: str = Field(
        "https://vision.googleapis.com/v1", description="Vision API base URL"
    )
    translate_base_url: str = Field(
        "https://translation.googleapis.com/language/translate/v2",
        description="Translation API base URL",
    )
    twilio_base_url: str = Field(
        "https://api.twilio.com/2010-04-01", description="Twilio REST base URL"
    )
    timeout_s: float = Field(30.0, gt=0, description="Request timeout in seconds")

    @field_validator("vision_base_url", "translate_base_url", "twilio_base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Ensure base URLs use http/https with a host.

        Args:
            value: Raw base URL string.

        Returns:
            str: Validated base URL without a trailing slash.
        """
        return _validate_http_url(value, "base_url").rstrip("/")


class PipelineConfig(BaseSchema):
    """Top-level pipeline configuration loaded from lingobus.toml."""

    topics: TopicConfig = Field(..., description="Bus topics")
    languages: LanguageConfig = Field(..., description="Fan-out languages")
    storage: StorageConfig = Field(..., description="Artifact storage")
    timing: TimingConfig = Field(
        default_factory=TimingConfig, description="Delivery timing"
    )
    notifications: NotificationConfig = Field(
        default_factory=NotificationConfig, description="Notification settings"
    )
    endpoints: EndpointConfig = Field(
        default_factory=EndpointConfig, description="Collaborator API endpoints"
    )
    logging: LoggingConfig = Field(
        default_factory=lambda: LoggingConfig(
            sinks=[LogSinkConfig(type=LogSinkType.CONSOLE)]
        ),
        description="Logging configuration",
    )

    @model_validator(mode="after")
    def validate_notifications(self) -> PipelineConfig:
        """Ensure enabled notifications have their recipients configured.

        Returns:
            PipelineConfig: Validated pipeline configuration.

        Raises:
            ValueError: If notifications are enabled without recipients.
        """
        notifications = self.notifications
        if not notifications.enabled:
            return self
        missing = [
            name
            for name in ("sms_to", "sms_from", "call_to", "call_from")
            if getattr(notifications, name) is None
        ]
        if notifications.call_webhook_url is None:
            missing.append("call_webhook_url")
        if missing:
            raise ValueError(
                "notifications are enabled but missing: " + ", ".join(missing)
            )
        return self
