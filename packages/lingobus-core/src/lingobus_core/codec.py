"""Message envelope codec: JSON payloads in base64 transport encoding."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from typing import TypeVar

import orjson
from pydantic import ValidationError as SchemaValidationError

from lingobus_core.ports.errors import (
    StageErrorCode,
    ValidationError,
    validation_error,
)
from lingobus_schemas.messages import BusMessage, PayloadSchema, UploadEvent
from lingobus_schemas.primitives import StageName

PayloadT = TypeVar("PayloadT", bound=PayloadSchema)

_FIELD_LABELS = {
    "bucket": "Bucket",
    "name": "Filename",
    "filename": "Filename",
    "text": "Text",
    "lang": "Language",
    "from": "Source language",
}


def encode_payload(payload: PayloadSchema) -> bytes:
    """Serialize a payload to its JSON wire form.

    Args:
        payload: Payload model.

    Returns:
        bytes: UTF-8 JSON using wire field names.
    """
    return payload.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def encode_message(
    payload: PayloadSchema,
    *,
    message_id: str | None = None,
    attributes: Mapping[str, str] | None = None,
) -> BusMessage:
    """Wrap a payload in a bus envelope.

    Args:
        payload: Payload model.
        message_id: Optional envelope id; the bus assigns one when unset.
        attributes: Optional transport attributes.

    Returns:
        BusMessage: Envelope with base64-encoded JSON data.
    """
    data = base64.b64encode(encode_payload(payload)).decode("ascii")
    return BusMessage(
        data=data, message_id=message_id, attributes=dict(attributes or {})
    )


def decode_payload(
    message: BusMessage,
    model: type[PayloadT],
    *,
    stage: StageName | None = None,
) -> PayloadT:
    """Decode and validate the payload carried by a bus envelope.

    Args:
        message: Delivered envelope.
        model: Payload schema expected on the topic.
        stage: Stage decoding the payload, for error context.

    Returns:
        PayloadT: Validated payload.
    """
    parsed = decode_json_object(message, stage=stage)
    return validate_payload(parsed, model, stage=stage)


def decode_json_object(
    message: BusMessage, *, stage: StageName | None = None
) -> dict[str, object]:
    """Base64-decode and JSON-parse the data of a bus envelope.

    Args:
        message: Delivered envelope.
        stage: Stage decoding the payload, for error context.

    Returns:
        dict[str, object]: Parsed JSON object, not yet validated.

    Raises:
        ValidationError: If the data is not base64 JSON of an object.
    """
    try:
        raw = base64.b64decode(message.data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise validation_error(
            "Message data is not valid base64",
            stage=stage,
            field="data",
            code=StageErrorCode.INVALID_PAYLOAD,
        ) from exc
    try:
        parsed = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise validation_error(
            f"Message data is not valid JSON: {exc}",
            stage=stage,
            field="data",
            code=StageErrorCode.INVALID_PAYLOAD,
        ) from exc
    if not isinstance(parsed, dict):
        raise validation_error(
            "Message data must be a JSON object",
            stage=stage,
            field="data",
            code=StageErrorCode.INVALID_PAYLOAD,
        )
    return parsed


def decode_upload_event(
    event: Mapping[str, object] | UploadEvent,
    *,
    stage: StageName | None = StageName.EXTRACTION,
) -> UploadEvent:
    """Validate a storage upload notification.

    Args:
        event: Raw notification mapping or an already parsed event.
        stage: Stage decoding the event, for error context.

    Returns:
        UploadEvent: Validated event.
    """
    if isinstance(event, UploadEvent):
        return event
    return validate_payload(dict(event), UploadEvent, stage=stage)


def validate_payload(
    payload: dict[str, object],
    model: type[PayloadT],
    *,
    stage: StageName | None = None,
) -> PayloadT:
    """Validate a parsed JSON object against a payload schema.

    Args:
        payload: Parsed JSON object.
        model: Payload schema.
        stage: Stage validating the payload, for error context.

    Returns:
        PayloadT: Validated payload.

    Raises:
        ValidationError: On the first missing or invalid field.
    """
    try:
        return model.model_validate(payload, strict=False)
    except SchemaValidationError as exc:
        raise _to_validation_error(exc, stage=stage) from exc


def _to_validation_error(
    exc: SchemaValidationError, *, stage: StageName | None
) -> ValidationError:
    first = exc.errors()[0]
    location = first.get("loc", ())
    field = str(location[0]) if location else None
    label = _FIELD_LABELS.get(field or "", field or "Payload")
    # null and "" count as absent, like a missing key
    absent = first.get("input", ...) in (None, "")
    if absent or first.get("type") in {"missing", "string_too_short"}:
        return validation_error(
            f'{label} not provided. Make sure you have a "{field}" property '
            "in your request",
            stage=stage,
            field=field,
        )
    return validation_error(
        f"{label} is invalid: {first.get('msg', 'validation failed')}",
        stage=stage,
        field=field,
        code=StageErrorCode.INVALID_PAYLOAD,
    )
