"""Protocol definitions for the external engines the stages call."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lingobus_schemas.messages import ImageReference


@runtime_checkable
class OcrProtocol(Protocol):
    """Protocol for a text-detection engine."""

    async def detect(self, image: ImageReference) -> str:
        """Return the text found in the image, or an empty string."""
        raise NotImplementedError


@runtime_checkable
class LanguageDetectorProtocol(Protocol):
    """Protocol for a language-detection engine."""

    async def detect(self, text: str) -> str:
        """Return the language code detected for the text."""
        raise NotImplementedError


@runtime_checkable
class TranslatorProtocol(Protocol):
    """Protocol for a translation engine."""

    async def translate(self, text: str, from_lang: str | None, to_lang: str) -> str:
        """Translate text into ``to_lang``; ``from_lang`` None means autodetect."""
        raise NotImplementedError


@runtime_checkable
class SmsNotifierProtocol(Protocol):
    """Protocol for sending SMS notifications."""

    async def send(self, body: str) -> str:
        """Send an SMS and return the provider message id."""
        raise NotImplementedError


@runtime_checkable
class CallNotifierProtocol(Protocol):
    """Protocol for placing voice-call notifications."""

    async def place(self, webhook_url: str) -> str:
        """Place a call answered by ``webhook_url`` and return the call id."""
        raise NotImplementedError


@runtime_checkable
class NotificationLedgerProtocol(Protocol):
    """Protocol for recording which notifications were already sent."""

    async def claim(self, key: str) -> bool:
        """Record ``key``; return False if it was already recorded."""
        raise NotImplementedError

    async def release(self, key: str) -> None:
        """Forget ``key`` so a later delivery may notify again."""
        raise NotImplementedError
