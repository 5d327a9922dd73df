"""Retrieval stage: read an artifact back and notify about its content."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Awaitable, Callable

from lingobus_core.naming import artifact_name
from lingobus_core.ports.collaborators import (
    CallNotifierProtocol,
    NotificationLedgerProtocol,
    SmsNotifierProtocol,
)
from lingobus_core.ports.errors import StageErrorCode, collaborator_error
from lingobus_core.ports.logs import (
    LogSinkProtocol,
    build_artifact_log,
    build_notification_log,
)
from lingobus_core.ports.storage import BlobStoreProtocol, StorageError
from lingobus_core.stages.base import Stage
from lingobus_schemas.config import NotificationConfig, RetryConfig
from lingobus_schemas.events import ArtifactData, ArtifactEvent, NotificationEvent
from lingobus_schemas.messages import ReadRequest
from lingobus_schemas.primitives import (
    NotificationChannel,
    StageName,
    StageStatus,
    Timestamp,
)
from lingobus_schemas.results import NotificationOutcome, StageResult


def notification_key(key: str, content: str) -> str:
    """Return the dedup key for notifying about one artifact's content.

    Args:
        key: Artifact key.
        content: Artifact content.

    Returns:
        str: Hex SHA-256 of key and content.
    """
    digest = hashlib.sha256()
    digest.update(key.encode("utf-8"))
    digest.update(b"\0")
    digest.update(content.encode("utf-8"))
    return digest.hexdigest()


class RetrievalStage(Stage[ReadRequest]):
    """Triggered by a read request; terminal stage of the pipeline."""

    name = StageName.RETRIEVAL
    payload_model = ReadRequest

    def __init__(
        self,
        *,
        blob_store: BlobStoreProtocol,
        result_bucket: str,
        notifications: NotificationConfig | None = None,
        retry: RetryConfig | None = None,
        sms_notifier: SmsNotifierProtocol | None = None,
        call_notifier: CallNotifierProtocol | None = None,
        ledger: NotificationLedgerProtocol | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the retrieval stage.

        Args:
            blob_store: Artifact store.
            result_bucket: Bucket holding artifacts.
            notifications: Notification settings; disabled when None.
            retry: Backoff while the artifact is not readable yet.
            sms_notifier: SMS provider.
            call_notifier: Voice-call provider.
            ledger: Records notified content to suppress duplicates.
            log_sink: Optional sink for structured log entries.
            clock: Timestamp provider.
            sleep: Awaitable sleep used between read attempts.
        """
        super().__init__(log_sink=log_sink, clock=clock)
        self._blob_store = blob_store
        self._result_bucket = result_bucket
        self._notifications = notifications or NotificationConfig(enabled=False)
        self._retry = retry or RetryConfig(max_retries=0)
        self._sms_notifier = sms_notifier
        self._call_notifier = call_notifier
        self._ledger = ledger
        self._sleep = sleep

    async def read_artifact(self, filename: str, lang: str) -> str:
        """Read the artifact for a source image and language.

        Returns:
            str: The stored text.

        Raises:
            CollaboratorError: If the artifact cannot be read.
        """
        return await self._read_with_retry(artifact_name(filename, lang), None)

    async def _process(
        self, payload: ReadRequest, delivery_id: str | None
    ) -> StageResult:
        key = artifact_name(payload.filename, payload.lang)
        content = await self._read_with_retry(key, delivery_id)
        notifications, skipped = await self._notify(key, content, delivery_id)
        return StageResult(
            stage=self.name,
            status=StageStatus.COMPLETED,
            artifact_key=key,
            content=content,
            notifications=notifications,
            notifications_skipped=skipped,
        )

    def _completion_message(self, payload: ReadRequest, result: StageResult) -> str:
        return "File read."

    async def _read_with_retry(self, key: str, delivery_id: str | None) -> str:
        retry = self._retry
        max_attempts = retry.max_retries + 1
        attempts = 0
        delay = retry.backoff_s
        while True:
            attempts += 1
            try:
                content = await self._read_once(key)
            except StorageError as exc:
                if exc.is_invalid_key:
                    raise self._rejected_key(exc) from exc
                if not exc.is_not_found:
                    raise collaborator_error(
                        f"Reading '{key}' failed: {exc}",
                        collaborator="blob_store",
                        stage=self.name,
                        key=key,
                    ) from exc
                if attempts >= max_attempts:
                    raise collaborator_error(
                        f"Artifact '{key}' not found after {attempts} attempt(s)",
                        collaborator="blob_store",
                        stage=self.name,
                        code=StageErrorCode.ARTIFACT_NOT_FOUND,
                        key=key,
                    ) from exc
                await self._log(
                    build_artifact_log(
                        self._clock(),
                        self.name,
                        delivery_id,
                        ArtifactEvent.READ_RETRY,
                        ArtifactData(
                            bucket=self._result_bucket, key=key, attempt=attempts
                        ),
                    )
                )
                await self._sleep(min(delay, retry.max_backoff_s))
                delay = min(delay * 2, retry.max_backoff_s)
            else:
                await self._log(
                    build_artifact_log(
                        self._clock(),
                        self.name,
                        delivery_id,
                        ArtifactEvent.READ,
                        ArtifactData(
                            bucket=self._result_bucket,
                            key=key,
                            size_bytes=len(content.encode("utf-8")),
                            attempt=attempts,
                        ),
                    )
                )
                return content

    async def _read_once(self, key: str) -> str:
        chunks: list[bytes] = []
        try:
            async for chunk in self._blob_store.read_stream(self._result_bucket, key):
                chunks.append(chunk)
            return b"".join(chunks).decode("utf-8")
        except StorageError:
            raise
        except Exception as exc:
            raise collaborator_error(
                f"Reading '{key}' failed: {exc}",
                collaborator="blob_store",
                stage=self.name,
                key=key,
            ) from exc

    async def _notify(
        self, key: str, content: str, delivery_id: str | None
    ) -> tuple[list[NotificationOutcome], bool]:
        """Send the SMS then place the call, never failing the stage.

        The dedup claim is given back whenever nothing reached the user,
        including when the invocation is cancelled mid-attempt.

        Returns:
            tuple[list[NotificationOutcome], bool]: Attempts made, and whether
                they were skipped as duplicates.
        """
        settings = self._notifications
        send_sms = self._sms_notifier is not None
        place_call = (
            self._call_notifier is not None and settings.call_webhook_url is not None
        )
        if not settings.enabled or not (send_sms or place_call):
            return [], False
        dedupe_key = notification_key(key, content)
        ledger = self._ledger if settings.dedupe else None
        if ledger is not None:
            claimed = await self._call("ledger", ledger.claim(dedupe_key))
            if not claimed:
                for channel in (NotificationChannel.SMS, NotificationChannel.CALL):
                    await self._log(
                        build_notification_log(
                            self._clock(),
                            delivery_id,
                            NotificationEvent.SKIPPED,
                            channel,
                        )
                    )
                return [], True

        outcomes: list[NotificationOutcome] = []
        try:
            if self._sms_notifier is not None:
                body = content or settings.empty_body
                outcomes.append(
                    await self._attempt(
                        NotificationChannel.SMS,
                        self._sms_notifier.send(body),
                        delivery_id,
                    )
                )
            if self._call_notifier is not None and settings.call_webhook_url:
                outcomes.append(
                    await self._attempt(
                        NotificationChannel.CALL,
                        self._call_notifier.place(settings.call_webhook_url),
                        delivery_id,
                    )
                )
        except BaseException:
            if ledger is not None and not _any_delivered(outcomes):
                await ledger.release(dedupe_key)
            raise
        if ledger is not None and not _any_delivered(outcomes):
            # Nothing reached the user; let a later delivery try again.
            await self._call("ledger", ledger.release(dedupe_key))
        return outcomes, False

    async def _attempt(
        self,
        channel: NotificationChannel,
        call: Awaitable[str],
        delivery_id: str | None,
    ) -> NotificationOutcome:
        try:
            reference = await call
        except Exception as exc:
            await self._log(
                build_notification_log(
                    self._clock(),
                    delivery_id,
                    NotificationEvent.FAILED,
                    channel,
                    error_message=str(exc) or type(exc).__name__,
                )
            )
            return NotificationOutcome(
                channel=channel,
                delivered=False,
                error_message=str(exc) or type(exc).__name__,
            )
        await self._log(
            build_notification_log(
                self._clock(),
                delivery_id,
                NotificationEvent.SENT,
                channel,
                reference=reference,
            )
        )
        return NotificationOutcome(channel=channel, delivered=True, reference=reference)


def _any_delivered(outcomes: list[NotificationOutcome]) -> bool:
    return any(outcome.delivered for outcome in outcomes)
