"""Collaborator adapters for OCR, translation and notifications."""

from lingobus_io.collaborators.google import GoogleTranslateClient, GoogleVisionOcr
from lingobus_io.collaborators.http import HttpCollaborator
from lingobus_io.collaborators.local import (
    IdentityTranslator,
    RecordingCallNotifier,
    RecordingSmsNotifier,
    StaticLanguageDetector,
    StaticTextOcr,
)
from lingobus_io.collaborators.twilio import TwilioCallNotifier, TwilioSmsNotifier

__all__ = [
    "GoogleTranslateClient",
    "GoogleVisionOcr",
    "HttpCollaborator",
    "IdentityTranslator",
    "RecordingCallNotifier",
    "RecordingSmsNotifier",
    "StaticLanguageDetector",
    "StaticTextOcr",
    "TwilioCallNotifier",
    "TwilioSmsNotifier",
]
