"""Unit tests for bus payload schemas."""

import pytest
from pydantic import ValidationError

from lingobus_schemas.messages import (
    BusMessage,
    ImageReference,
    ReadRequest,
    TranslationRequest,
    TranslationResult,
    UploadEvent,
)
from lingobus_schemas.primitives import ResourceState


def test_upload_event_accepts_wire_alias_for_resource_state() -> None:
    """Ensure the storage event's camelCase field is understood."""
    event = UploadEvent.model_validate(
        {"bucket": "uploads", "name": "a.jpg", "resourceState": "not_exists"},
        strict=False,
    )

    assert event.resource_state == ResourceState.NOT_EXISTS
    assert event.is_deletion


def test_upload_event_defaults_to_exists() -> None:
    """Ensure events without a resource state are treated as uploads."""
    event = UploadEvent(bucket="uploads", name="a.jpg")

    assert event.resource_state == ResourceState.EXISTS
    assert not event.is_deletion


def test_upload_event_rejects_unknown_resource_state() -> None:
    """Ensure unknown resource states are rejected."""
    with pytest.raises(ValidationError):
        UploadEvent.model_validate(
            {"bucket": "uploads", "name": "a.jpg", "resourceState": "archived"},
            strict=False,
        )


def test_translation_request_serializes_from_alias() -> None:
    """Ensure the source language travels under its wire name."""
    request = TranslationRequest(
        text="bonjour", filename="a.jpg", lang="en", from_lang="fr"
    )

    dumped = request.model_dump(by_alias=True)

    assert dumped["from"] == "fr"
    assert "from_lang" not in dumped


def test_translation_result_ignores_extra_fields() -> None:
    """Ensure a forwarded request still parses as a result."""
    result = TranslationResult.model_validate(
        {"text": "hello", "filename": "a.jpg", "lang": "en", "from": "en"},
        strict=False,
    )

    assert result.text == "hello"
    assert not hasattr(result, "from_lang")


def test_payload_text_keeps_surrounding_whitespace() -> None:
    """Ensure extracted text is carried verbatim."""
    result = TranslationResult(text="  line one\nline two\n", filename="a", lang="en")

    assert result.text == "  line one\nline two\n"


def test_empty_text_is_allowed_but_filename_is_not() -> None:
    """Ensure empty text is valid while empty filenames are rejected."""
    assert TranslationResult(text="", filename="a.jpg", lang="en").text == ""
    with pytest.raises(ValidationError):
        ReadRequest(filename="", lang="en")


@pytest.mark.parametrize("lang", ["en", "zh-CN", "haw", "und"])
def test_language_codes_accept_detector_tags(lang: str) -> None:
    """Ensure BCP-47 style tags returned by detectors are accepted."""
    assert ReadRequest(filename="a.jpg", lang=lang).lang == lang


@pytest.mark.parametrize("lang", ["EN", "e", "english", "en_US"])
def test_language_codes_reject_malformed_values(lang: str) -> None:
    """Ensure malformed language codes are rejected."""
    with pytest.raises(ValidationError):
        ReadRequest(filename="a.jpg", lang=lang)


def test_image_reference_uri() -> None:
    """Ensure the image URI points at the bucket object."""
    image = ImageReference(bucket="uploads", name="dir/a.jpg")

    assert image.uri == "gs://uploads/dir/a.jpg"


def test_bus_message_delivery_attempt_starts_at_one() -> None:
    """Ensure envelopes default to the first delivery attempt."""
    message = BusMessage(data="e30=")

    assert message.delivery_attempt == 1
    assert message.attributes == {}
    with pytest.raises(ValidationError):
        BusMessage(data="e30=", delivery_attempt=0)
