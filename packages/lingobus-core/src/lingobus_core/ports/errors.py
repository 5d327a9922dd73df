"""Structured stage errors shared by every pipeline stage."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import StageName
from lingobus_schemas.responses import ErrorDetails, ErrorResponse


class StageErrorCode(StrEnum):
    """Categorized error codes for stage failures."""

    MISSING_FIELD = "missing_field"
    INVALID_PAYLOAD = "invalid_payload"
    COLLABORATOR_FAILED = "collaborator_failed"
    ARTIFACT_NOT_FOUND = "artifact_not_found"
    PUBLISH_FAILED = "publish_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOTIFICATION_FAILED = "notification_failed"
    UNKNOWN_TOPIC = "unknown_topic"


class StageErrorDetails(BaseSchema):
    """Detailed stage error context."""

    stage: StageName | None = Field(None, description="Stage raising the error")
    field: str | None = Field(None, description="Offending payload field")
    collaborator: str | None = Field(None, description="Collaborator that failed")
    topic: str | None = Field(None, description="Topic involved")
    lang: str | None = Field(None, description="Language if applicable")
    key: str | None = Field(None, description="Artifact key if applicable")
    reason: str | None = Field(None, description="Additional error context")


class StageErrorInfo(BaseSchema):
    """Structured stage error data."""

    code: StageErrorCode = Field(..., description="Stage error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: StageErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert stage error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.field is not None:
            details = ErrorDetails(
                field=self.details.field, provided=None, valid_options=None
            )
        elif self.details is not None and self.details.topic is not None:
            details = ErrorDetails(
                field="topic", provided=self.details.topic, valid_options=None
            )
        code_value = getattr(self.code, "value", self.code)
        return ErrorResponse(
            code=str(code_value), message=self.message, details=details
        )


class StageError(Exception):
    """Stage error with structured details."""

    retryable = False

    def __init__(self, info: StageErrorInfo) -> None:
        """Initialize the stage error.

        Args:
            info: Structured stage error information.
        """
        super().__init__(info.message)
        self.info = info


class ValidationError(StageError):
    """Permanent failure: an inbound payload is missing a required field."""


class CollaboratorError(StageError):
    """Transient failure of an external collaborator; redelivery may succeed."""

    retryable = True


class NotificationError(StageError):
    """Best-effort notification failure; never fails the stage."""


class RoutingError(StageError):
    """A delivery arrived on a topic no stage is registered for."""


def validation_error(
    message: str,
    *,
    stage: StageName | None = None,
    field: str | None = None,
    code: StageErrorCode = StageErrorCode.MISSING_FIELD,
) -> ValidationError:
    """Build a validation error for a payload field.

    Args:
        message: Human readable reason.
        stage: Stage that rejected the payload.
        field: Offending field name.
        code: Error code, missing_field unless the payload is malformed.

    Returns:
        ValidationError: Error ready to raise.
    """
    return ValidationError(
        StageErrorInfo(
            code=code,
            message=message,
            details=StageErrorDetails(stage=stage, field=field),
        )
    )


def collaborator_error(
    message: str,
    *,
    collaborator: str,
    stage: StageName | None = None,
    code: StageErrorCode = StageErrorCode.COLLABORATOR_FAILED,
    topic: str | None = None,
    lang: str | None = None,
    key: str | None = None,
) -> CollaboratorError:
    """Build a collaborator error.

    Args:
        message: Human readable reason.
        collaborator: Collaborator name (ocr, translator, blob_store, bus...).
        stage: Stage that called the collaborator.
        code: Error code.
        topic: Topic involved, for publish failures.
        lang: Language involved.
        key: Artifact key involved.

    Returns:
        CollaboratorError: Error ready to raise.
    """
    return CollaboratorError(
        StageErrorInfo(
            code=code,
            message=message or f"{collaborator} call failed",
            details=StageErrorDetails(
                stage=stage,
                collaborator=collaborator,
                topic=topic,
                lang=lang,
                key=key,
            ),
        )
    )
