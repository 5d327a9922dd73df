"""Primitive types and enums shared across lingobus schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import Field
from typing_extensions import TypeAliasType

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
# Detection engines return BCP-47 style tags ("en", "zh-CN", "haw", "und").
LANGUAGE_CODE_PATTERN = r"^[a-z]{2,3}(?:-[A-Za-z0-9]{2,8})*$"
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"
TOPIC_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9._~%+-]{2,254}$"

Timestamp = TypeAliasType("Timestamp", Annotated[str, Field(pattern=ISO_8601_PATTERN)])
LanguageCode = TypeAliasType("LanguageCode", Annotated[str, Field(pattern=LANGUAGE_CODE_PATTERN)])
EventName = TypeAliasType("EventName", Annotated[str, Field(pattern=EVENT_NAME_PATTERN)])
TopicName = TypeAliasType("TopicName", Annotated[str, Field(pattern=TOPIC_NAME_PATTERN)])
MessageId = TypeAliasType("MessageId", Annotated[str, Field(min_length=1)])

JsonPrimitive = TypeAliasType("JsonPrimitive", str | int | float | bool | None)
JsonValue = TypeAliasType("JsonValue", JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"])


class StageName(StrEnum):
    """Pipeline stage names."""

    EXTRACTION = "extraction"
    TRANSLATION = "translation"
    PERSISTENCE = "persistence"
    RETRIEVAL = "retrieval"


class ResourceState(StrEnum):
    """Object state carried by storage upload notifications."""

    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class StageStatus(StrEnum):
    """Terminal outcome of one stage invocation."""

    COMPLETED = "completed"
    IGNORED = "ignored"
    REJECTED = "rejected"


class NotificationChannel(StrEnum):
    """Best-effort notification channels."""

    SMS = "sms"
    CALL = "call"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"


class BlobBackend(StrEnum):
    """Blob store backend identifiers."""

    MEMORY = "memory"
    FILESYSTEM = "filesystem"
