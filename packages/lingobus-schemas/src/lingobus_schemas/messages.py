"""Bus payload schemas for the extraction, translation and read topics."""

from __future__ import annotations

from pydantic import ConfigDict, Field, field_validator

from lingobus_schemas.base import BaseSchema
from lingobus_schemas.primitives import (
    LanguageCode,
    MessageId,
    ResourceState,
    Timestamp,
)


class PayloadSchema(BaseSchema):
    """Base for payloads exchanged on the bus.

    Text content is carried verbatim so artifacts round-trip byte-for-byte.
    """

    model_config = ConfigDict(str_strip_whitespace=False, populate_by_name=True)


class UploadEvent(PayloadSchema):
    """Storage notification emitted when an object changes in the upload bucket."""

    bucket: str = Field(..., min_length=1, description="Bucket holding the image")
    name: str = Field(..., min_length=1, description="Object name of the image")
    resource_state: ResourceState = Field(
        ResourceState.EXISTS,
        alias="resourceState",
        description="Object state; not_exists marks a deletion",
    )

    @field_validator("resource_state", mode="before")
    @classmethod
    def _coerce_state(cls, value: object) -> ResourceState:
        if isinstance(value, ResourceState):
            return value
        if isinstance(value, str):
            return ResourceState(value)
        return value  # type: ignore[return-value]

    @property
    def is_deletion(self) -> bool:
        """Return True when the event reports a deleted object."""
        return self.resource_state == ResourceState.NOT_EXISTS


class ImageReference(BaseSchema):
    """Location of an uploaded image handed to the OCR engine."""

    bucket: str = Field(..., min_length=1, description="Bucket holding the image")
    name: str = Field(..., min_length=1, description="Object name of the image")

    @property
    def uri(self) -> str:
        """Return the gs:// style URI of the image."""
        return f"gs://{self.bucket}/{self.name}"


class ExtractedText(PayloadSchema):
    """Text found in one uploaded image, with its detected language."""

    filename: str = Field(..., min_length=1, description="Source image name")
    source_language: LanguageCode = Field(..., description="Detected language")
    text: str = Field(..., description="Extracted text, empty when none found")


class TranslationRequest(PayloadSchema):
    """Request to translate extracted text into one target language."""

    text: str = Field(..., description="Text to translate")
    filename: str = Field(..., min_length=1, description="Source image name")
    lang: LanguageCode = Field(..., description="Target language")
    from_lang: LanguageCode | None = Field(
        None, alias="from", description="Detected source language"
    )


class TranslationResult(PayloadSchema):
    """Text in its target language, ready to persist."""

    text: str = Field(..., description="Translated (or original) text")
    filename: str = Field(..., min_length=1, description="Source image name")
    lang: LanguageCode = Field(..., description="Language of the text")


class ReadRequest(PayloadSchema):
    """Request to read back a persisted artifact."""

    filename: str = Field(..., min_length=1, description="Source image name")
    lang: LanguageCode = Field(..., description="Artifact language")


class BusMessage(BaseSchema):
    """Transport envelope delivered by the message bus."""

    data: str = Field(..., description="Base64-encoded JSON payload")
    message_id: MessageId | None = Field(None, description="Bus message identifier")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="Transport attributes"
    )
    publish_time: Timestamp | None = Field(None, description="Publish timestamp")
    delivery_attempt: int = Field(1, ge=1, description="Delivery attempt number")
