"""Twilio SMS and voice-call adapters."""

from __future__ import annotations

import httpx
from pydantic import SecretStr

from lingobus_core.ports.collaborators import CallNotifierProtocol, SmsNotifierProtocol
from lingobus_core.ports.errors import (
    NotificationError,
    StageErrorCode,
    StageErrorDetails,
    StageErrorInfo,
)
from lingobus_io.collaborators.http import (
    DEFAULT_TIMEOUT_S,
    HttpCollaborator,
    describe_http_error,
)
from lingobus_schemas.primitives import StageName

TWILIO_BASE_URL = "https://api.twilio.com/2010-04-01"


class _TwilioResource(HttpCollaborator):
    """Creates resources under ``/Accounts/{sid}`` with basic auth."""

    def __init__(
        self,
        account_sid: str,
        auth_token: SecretStr | str,
        *,
        to: str,
        from_: str,
        base_url: str = TWILIO_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the resource client.

        Args:
            account_sid: Twilio account sid, also the basic-auth user.
            auth_token: Twilio auth token.
            to: Recipient phone number.
            from_: Sender phone number.
            base_url: Twilio REST base URL.
            timeout_s: Request timeout in seconds.
            http_client: Optional shared HTTP client.
        """
        super().__init__(
            base_url=base_url, timeout_s=timeout_s, http_client=http_client
        )
        self._account_sid = account_sid
        self._auth_token = (
            auth_token.get_secret_value()
            if isinstance(auth_token, SecretStr)
            else auth_token
        )
        self._to = to
        self._from = from_

    async def _create(self, resource: str, fields: dict[str, str]) -> str:
        form = {"To": self._to, "From": self._from, **fields}
        try:
            payload = await self._post(
                f"/Accounts/{self._account_sid}/{resource}.json",
                data=form,
                auth=(self._account_sid, self._auth_token),
            )
            sid = payload["sid"]
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            raise NotificationError(
                StageErrorInfo(
                    code=StageErrorCode.NOTIFICATION_FAILED,
                    message=f"Twilio {resource} request failed: "
                    f"{describe_http_error(exc)}",
                    details=StageErrorDetails(
                        stage=StageName.RETRIEVAL,
                        collaborator=f"twilio_{resource.lower()}",
                    ),
                )
            ) from exc
        return str(sid)


class TwilioSmsNotifier(_TwilioResource, SmsNotifierProtocol):
    """Sends SMS messages through the Twilio Messages API."""

    async def send(self, body: str) -> str:
        """Send an SMS and return the message sid.

        Raises:
            NotificationError: If Twilio rejects the request.
        """
        return await self._create("Messages", {"Body": body})


class TwilioCallNotifier(_TwilioResource, CallNotifierProtocol):
    """Places voice calls through the Twilio Calls API."""

    async def place(self, webhook_url: str) -> str:
        """Place a call answered by ``webhook_url`` and return the call sid.

        Raises:
            NotificationError: If Twilio rejects the request.
        """
        return await self._create("Calls", {"Url": webhook_url})
