"""Unit tests for the offline collaborators used by dry runs."""

import pytest

from lingobus_io.collaborators import (
    IdentityTranslator,
    RecordingCallNotifier,
    RecordingSmsNotifier,
    StaticLanguageDetector,
    StaticTextOcr,
)
from lingobus_schemas.messages import ImageReference


@pytest.mark.anyio
async def test_offline_collaborators_record_their_calls() -> None:
    """Ensure dry-run collaborators answer deterministically."""
    ocr = StaticTextOcr("bonjour")
    translator = IdentityTranslator()
    sms = RecordingSmsNotifier()
    call = RecordingCallNotifier()

    assert await ocr.detect(ImageReference(bucket="b", name="a.jpg")) == "bonjour"
    assert await StaticLanguageDetector("fr").detect("bonjour") == "fr"
    assert await translator.translate("bonjour", "fr", "en") == "bonjour"
    assert await sms.send("bonjour") == "sms-1"
    assert await call.place("https://example.com/voice") == "call-1"
    assert sms.sent == ["bonjour"]
    assert call.placed == ["https://example.com/voice"]
