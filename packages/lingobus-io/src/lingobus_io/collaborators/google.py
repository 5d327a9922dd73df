"""Google Cloud Vision and Translation adapters."""

from __future__ import annotations

import html

import httpx
from pydantic import SecretStr

from lingobus_core.ports.collaborators import (
    LanguageDetectorProtocol,
    OcrProtocol,
    TranslatorProtocol,
)
from lingobus_core.ports.errors import CollaboratorError, collaborator_error
from lingobus_io.collaborators.http import (
    DEFAULT_TIMEOUT_S,
    HttpCollaborator,
    describe_http_error,
)
from lingobus_schemas.messages import ImageReference

VISION_BASE_URL = "https://vision.googleapis.com/v1"
TRANSLATE_BASE_URL = "https://translation.googleapis.com/language/translate/v2"


class GoogleVisionOcr(HttpCollaborator, OcrProtocol):
    """Text detection through the Vision ``images:annotate`` endpoint."""

    def __init__(
        self,
        api_key: SecretStr | str,
        *,
        base_url: str = VISION_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Google API key.
            base_url: Vision API base URL.
            timeout_s: Request timeout in seconds.
            http_client: Optional shared HTTP client.
        """
        super().__init__(
            base_url=base_url, timeout_s=timeout_s, http_client=http_client
        )
        self._api_key = _secret(api_key)

    async def detect(self, image: ImageReference) -> str:
        """Return the full text found in the image, or ``""`` when none.

        Raises:
            CollaboratorError: If the request fails or the API reports an error.
        """
        body = {
            "requests": [
                {
                    "image": {"source": {"imageUri": image.uri}},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }
        try:
            payload = await self._post(
                "/images:annotate", params={"key": self._api_key}, json=body
            )
            responses = payload.get("responses") or [{}]
            first = responses[0]
            if not isinstance(first, dict):
                raise ValueError("Malformed annotate response")
            error = first.get("error")
            if isinstance(error, dict):
                raise ValueError(str(error.get("message") or "Vision API error"))
            annotations = first.get("textAnnotations") or []
        except (httpx.HTTPError, ValueError, IndexError) as exc:
            raise _google_error("ocr", exc, key=image.uri) from exc
        if not isinstance(annotations, list) or not annotations:
            return ""
        annotation = annotations[0]
        if not isinstance(annotation, dict):
            return ""
        description = annotation.get("description")
        return description if isinstance(description, str) else ""


class GoogleTranslateClient(
    HttpCollaborator, LanguageDetectorProtocol, TranslatorProtocol
):
    """Language detection and translation through the Translation v2 API."""

    def __init__(
        self,
        api_key: SecretStr | str,
        *,
        base_url: str = TRANSLATE_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Google API key.
            base_url: Translation API base URL.
            timeout_s: Request timeout in seconds.
            http_client: Optional shared HTTP client.
        """
        super().__init__(
            base_url=base_url, timeout_s=timeout_s, http_client=http_client
        )
        self._api_key = _secret(api_key)

    async def detect(self, text: str) -> str:
        """Return the most confident language code for the text.

        Raises:
            CollaboratorError: If the request fails or returns no detection.
        """
        try:
            payload = await self._post(
                "/detect", params={"key": self._api_key}, json={"q": text}
            )
            detections = _data(payload)["detections"]
            detection = detections[0]
            # One list of candidates per input string.
            if isinstance(detection, list):
                detection = detection[0]
            language = detection["language"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise _google_error("language_detector", exc) from exc
        return str(language)

    async def translate(self, text: str, from_lang: str | None, to_lang: str) -> str:
        """Translate text into ``to_lang``.

        Raises:
            CollaboratorError: If the request fails or returns no translation.
        """
        if not text:
            return ""
        body: dict[str, str] = {"q": text, "target": to_lang, "format": "text"}
        if from_lang:
            body["source"] = from_lang
        try:
            payload = await self._post("", params={"key": self._api_key}, json=body)
            translated = _data(payload)["translations"][0]["translatedText"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise _google_error("translator", exc, lang=to_lang) from exc
        return html.unescape(str(translated))


def _secret(value: SecretStr | str) -> str:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _data(payload: dict) -> dict:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise ValueError("Response has no data object")
    return data


def _google_error(
    collaborator: str,
    exc: Exception,
    *,
    lang: str | None = None,
    key: str | None = None,
) -> CollaboratorError:
    return collaborator_error(
        f"{collaborator} request failed: {describe_http_error(exc)}",
        collaborator=collaborator,
        lang=lang,
        key=key,
    )
