"""Offline collaborators for dry runs and tests."""

from __future__ import annotations

import itertools

from lingobus_core.ports.collaborators import (
    CallNotifierProtocol,
    LanguageDetectorProtocol,
    OcrProtocol,
    SmsNotifierProtocol,
    TranslatorProtocol,
)
from lingobus_schemas.messages import ImageReference


class StaticTextOcr(OcrProtocol):
    """OCR stand-in that finds the same text in every image."""

    def __init__(self, text: str = "") -> None:
        """Initialize with the text every image contains."""
        self._text = text
        self.images: list[ImageReference] = []

    async def detect(self, image: ImageReference) -> str:
        """Record the image and return the configured text."""
        self.images.append(image)
        return self._text


class StaticLanguageDetector(LanguageDetectorProtocol):
    """Language detector stand-in reporting a fixed language."""

    def __init__(self, language: str) -> None:
        """Initialize with the language every text is detected as."""
        self._language = language

    async def detect(self, text: str) -> str:
        """Return the configured language."""
        return self._language


class IdentityTranslator(TranslatorProtocol):
    """Translator stand-in that returns its input unchanged."""

    def __init__(self) -> None:
        """Initialize an empty call log."""
        self.calls: list[tuple[str, str | None, str]] = []

    async def translate(self, text: str, from_lang: str | None, to_lang: str) -> str:
        """Record the call and return the text as-is."""
        self.calls.append((text, from_lang, to_lang))
        return text


class RecordingSmsNotifier(SmsNotifierProtocol):
    """SMS notifier that keeps sent bodies instead of sending them."""

    def __init__(self) -> None:
        """Initialize an empty outbox."""
        self.sent: list[str] = []
        self._ids = itertools.count(1)

    async def send(self, body: str) -> str:
        """Record the body and return a synthetic message id."""
        self.sent.append(body)
        return f"sms-{next(self._ids)}"


class RecordingCallNotifier(CallNotifierProtocol):
    """Call notifier that keeps webhook URLs instead of dialing."""

    def __init__(self) -> None:
        """Initialize an empty call log."""
        self.placed: list[str] = []
        self._ids = itertools.count(1)

    async def place(self, webhook_url: str) -> str:
        """Record the webhook URL and return a synthetic call id."""
        self.placed.append(webhook_url)
        return f"call-{next(self._ids)}"
