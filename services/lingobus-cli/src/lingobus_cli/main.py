"""CLI entry point - thin adapter over lingobus-core."""

from __future__ import annotations

import asyncio
import sys
import tomllib
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar
from uuid import uuid4

import httpx
import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from lingobus_core import VERSION, PipelineRouter, StageDependencies, artifact_name
from lingobus_core.ports.collaborators import (
    CallNotifierProtocol,
    LanguageDetectorProtocol,
    OcrProtocol,
    SmsNotifierProtocol,
    TranslatorProtocol,
)
from lingobus_core.ports.errors import StageError
from lingobus_core.ports.logs import LogSinkProtocol
from lingobus_core.ports.storage import BlobStoreProtocol, StorageError
from lingobus_core.settings import LingobusSettings, get_settings
from lingobus_core.stages.retrieval import RetrievalStage
from lingobus_io.bus import InMemoryMessageBus
from lingobus_io.collaborators import (
    GoogleTranslateClient,
    GoogleVisionOcr,
    IdentityTranslator,
    RecordingCallNotifier,
    RecordingSmsNotifier,
    StaticLanguageDetector,
    StaticTextOcr,
    TwilioCallNotifier,
    TwilioSmsNotifier,
)
from lingobus_io.storage import (
    FileSystemLogStore,
    build_blob_store,
    build_log_sink,
    build_notification_ledger,
)
from lingobus_schemas.config import PipelineConfig
from lingobus_schemas.events import (
    CommandCompletedData,
    CommandEvent,
    CommandFailedData,
    CommandStartedData,
)
from lingobus_schemas.exit_codes import ExitCode, resolve_exit_code
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.primitives import (
    JsonValue,
    LanguageCode,
    LogLevel,
    ResourceState,
    StageName,
)
from lingobus_schemas.responses import ApiResponse, ErrorResponse, MetaInfo
from lingobus_schemas.results import (
    ArtifactReadResult,
    ConfigCheckResult,
    PipelineRunSummary,
    StageResult,
)
from lingobus_schemas.validation import validate_pipeline_config

CONFIG_OPTION = typer.Option(
    Path("lingobus.toml"),
    "--config",
    "-c",
    help="Path to lingobus TOML config",
)
BUCKET_OPTION = typer.Option(..., "--bucket", "-b", help="Bucket of the upload")
NAME_OPTION = typer.Option(..., "--name", "-n", help="Object name of the upload")
DELETED_OPTION = typer.Option(
    False, "--deleted", help="Report the object as deleted (not_exists)"
)
DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Use offline collaborators instead of Google and Twilio",
)
TEXT_OPTION = typer.Option(
    "", "--text", help="Text the offline OCR finds in the image (dry runs)"
)
SOURCE_LANGUAGE_OPTION = typer.Option(
    "en", "--source-lang", help="Language the offline detector reports (dry runs)"
)
NO_WAIT_OPTION = typer.Option(
    False, "--no-wait", help="Deliver delayed messages immediately"
)
FILENAME_OPTION = typer.Option(
    ..., "--filename", "-f", help="Source image name the artifact belongs to"
)
LANG_OPTION = typer.Option(..., "--lang", "-l", help="Artifact language code")

app = typer.Typer(
    help="Event-driven image translation pipeline",
    no_args_is_help=True,
)


class _ConfigError(Exception):
    """Configuration could not be loaded."""


@app.callback()
def main() -> None:
    """Lingobus CLI."""


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]lingobus[/bold] v{VERSION}")


@app.command("artifact-name")
def artifact_name_command(filename: str, lang: str) -> None:
    """Print the artifact key for a source image and language."""
    print(artifact_name(filename, lang))


@app.command("validate-config")
def validate_config(config_path: Path = CONFIG_OPTION) -> None:
    """Validate a pipeline config file.

    Raises:
        typer.Exit: With a non-zero code when the config is invalid.
    """
    exit_code = ExitCode.SUCCESS
    try:
        config = _load_pipeline_config(config_path)
        topics = config.topics
        topic_names = [topics.translate_topic, topics.result_topic, topics.read_topic]
        if topics.upload_topic is not None:
            topic_names.insert(0, topics.upload_topic)
        result = ConfigCheckResult(
            config_path=str(config_path),
            topics=topic_names,
            target_languages=list(config.languages.target_languages),
            result_bucket=config.storage.result_bucket,
            backend=str(config.storage.backend),
            notifications_enabled=config.notifications.enabled,
        )
        response: ApiResponse[ConfigCheckResult] = ApiResponse(
            data=result,
            error=None,
            meta=MetaInfo(timestamp=_now_timestamp(), command="validate-config"),
        )
    except Exception as exc:
        error, exit_code = _error_from_exception(exc)
        response = _error_response(error, "validate-config")
    print(response.model_dump_json())
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(exit_code))


@app.command("process-upload")
def process_upload(
    config_path: Path = CONFIG_OPTION,
    bucket: str = BUCKET_OPTION,
    name: str = NAME_OPTION,
    deleted: bool = DELETED_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    text: str = TEXT_OPTION,
    source_lang: str = SOURCE_LANGUAGE_OPTION,
    no_wait: bool = NO_WAIT_OPTION,
) -> None:
    """Drive one upload through every stage on an in-process bus.

    Raises:
        typer.Exit: With a non-zero code when the upload could not be processed.
    """
    command_id = str(uuid4())
    log_sink: LogSinkProtocol | None = None
    exit_code = ExitCode.SUCCESS
    summary: PipelineRunSummary | None = None
    try:
        config = _load_pipeline_config(config_path)
        log_sink = _build_command_log_sink(config)
        args: dict[str, str] = {
            "config_path": str(config_path),
            "bucket": bucket,
            "name": name,
            "dry_run": str(dry_run).lower(),
        }
        _emit_command_log_sync(
            log_sink,
            _build_command_started_log(command_id, "process-upload", args),
        )
        event: dict[str, object] = {
            "bucket": bucket,
            "name": name,
            "resourceState": (
                ResourceState.NOT_EXISTS if deleted else ResourceState.EXISTS
            ).value,
        }
        options = _RunOptions(
            dry_run=dry_run, text=text, source_lang=source_lang, no_wait=no_wait
        )
        summary, error = asyncio.run(
            _process_upload_async(config, event, options, log_sink, command_id)
        )
        if error is None:
            _emit_command_log_sync(
                log_sink, _build_command_completed_log(command_id, "process-upload")
            )
            response: ApiResponse[PipelineRunSummary] = ApiResponse(
                data=summary,
                error=None,
                meta=MetaInfo(timestamp=_now_timestamp(), command="process-upload"),
            )
        else:
            exit_code = resolve_exit_code(error.code, domain="stage")
            _emit_command_log_sync(
                log_sink,
                _build_command_failed_log(command_id, "process-upload", error),
            )
            response = ApiResponse(
                data=summary,
                error=error,
                meta=MetaInfo(timestamp=_now_timestamp(), command="process-upload"),
            )
    except Exception as exc:
        error, exit_code = _error_from_exception(exc)
        if log_sink is not None:
            _emit_command_log_sync(
                log_sink,
                _build_command_failed_log(command_id, "process-upload", error),
            )
        response = _error_response(error, "process-upload")
    if _should_render() and response.data is not None:
        _render_run_summary(response.data, error=response.error)
    else:
        print(response.model_dump_json())
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(exit_code))


@app.command("read-artifact")
def read_artifact(
    config_path: Path = CONFIG_OPTION,
    filename: str = FILENAME_OPTION,
    lang: str = LANG_OPTION,
) -> None:
    """Read a stored artifact through the configured blob store.

    Raises:
        typer.Exit: With a non-zero code when the artifact cannot be read.
    """
    exit_code = ExitCode.SUCCESS
    try:
        config = _load_pipeline_config(config_path)
        blob_store = build_blob_store(config.storage)
        content = asyncio.run(_read_artifact_async(config, blob_store, filename, lang))
        result = ArtifactReadResult(
            bucket=config.storage.result_bucket,
            key=artifact_name(filename, lang),
            size_bytes=len(content.encode("utf-8")),
            content=content,
        )
        response: ApiResponse[ArtifactReadResult] = ApiResponse(
            data=result,
            error=None,
            meta=MetaInfo(timestamp=_now_timestamp(), command="read-artifact"),
        )
    except Exception as exc:
        error, exit_code = _error_from_exception(exc)
        response = _error_response(error, "read-artifact")
    print(response.model_dump_json())
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(exit_code))


@dataclass(frozen=True, slots=True)
class _RunOptions:
    dry_run: bool
    text: str
    source_lang: LanguageCode
    no_wait: bool


@dataclass(frozen=True, slots=True)
class _Collaborators:
    ocr: OcrProtocol
    language_detector: LanguageDetectorProtocol
    translator: TranslatorProtocol
    sms_notifier: SmsNotifierProtocol | None
    call_notifier: CallNotifierProtocol | None


async def _process_upload_async(
    config: PipelineConfig,
    event: dict[str, object],
    options: _RunOptions,
    log_sink: LogSinkProtocol,
    command_id: str,
) -> tuple[PipelineRunSummary, ErrorResponse | None]:
    sleep = _no_sleep if options.no_wait else asyncio.sleep
    bus = InMemoryMessageBus(
        max_delivery_attempts=config.timing.max_delivery_attempts, sleep=sleep
    )
    async with httpx.AsyncClient(timeout=config.endpoints.timeout_s) as client:
        collaborators = _build_collaborators(config, options, get_settings(), client)
        deps = StageDependencies(
            bus=bus,
            blob_store=build_blob_store(config.storage),
            ocr=collaborators.ocr,
            language_detector=collaborators.language_detector,
            translator=collaborators.translator,
            sms_notifier=collaborators.sms_notifier,
            call_notifier=collaborators.call_notifier,
            ledger=build_notification_ledger(config.storage),
            log_sink=log_sink,
            sleep=sleep,
        )
        router = PipelineRouter.from_config(config, deps)
        router.subscribe_all(bus)
        try:
            first = await router.handle_upload(event, delivery_id=command_id)
            await bus.drain()
        finally:
            await bus.close()
    results = [first]
    results.extend(
        record.result
        for record in bus.deliveries
        if isinstance(record.result, StageResult)
    )
    summary = PipelineRunSummary(
        filename=str(event["name"]),
        results=results,
        dead_letters=len(bus.dead_letters),
        artifact_keys=sorted(
            {
                result.artifact_key
                for result in results
                if result.stage == StageName.PERSISTENCE
                and result.artifact_key is not None
            }
        ),
    )
    error: ErrorResponse | None = first.error
    if error is None and bus.dead_letters:
        dead = bus.dead_letters[0]
        cause = _error_from_exception(dead.error)[0]
        error = ErrorResponse(
            code=cause.code,
            message=(
                f"{len(bus.dead_letters)} delivery(ies) abandoned; "
                f"first on {dead.topic}: {cause.message}"
            ),
            details=cause.details,
        )
    return summary, error


async def _read_artifact_async(
    config: PipelineConfig,
    blob_store: BlobStoreProtocol,
    filename: str,
    lang: str,
) -> str:
    stage = RetrievalStage(
        blob_store=blob_store,
        result_bucket=config.storage.result_bucket,
        retry=config.timing.retrieval_retry,
    )
    return await stage.read_artifact(filename, lang)


async def _no_sleep(delay_s: float) -> None:
    await asyncio.sleep(0)


def _build_collaborators(
    config: PipelineConfig,
    options: _RunOptions,
    settings: LingobusSettings,
    client: httpx.AsyncClient,
) -> _Collaborators:
    if options.dry_run:
        return _Collaborators(
            ocr=StaticTextOcr(options.text),
            language_detector=StaticLanguageDetector(options.source_lang),
            translator=IdentityTranslator(),
            sms_notifier=RecordingSmsNotifier(),
            call_notifier=RecordingCallNotifier(),
        )
    if settings.google_api_key is None:
        raise _ConfigError("GOOGLE_API_KEY is required unless --dry-run is set")
    endpoints = config.endpoints
    translate_client = GoogleTranslateClient(
        settings.google_api_key,
        base_url=endpoints.translate_base_url,
        timeout_s=endpoints.timeout_s,
        http_client=client,
    )
    sms_notifier: SmsNotifierProtocol | None = None
    call_notifier: CallNotifierProtocol | None = None
    notifications = config.notifications
    if notifications.enabled:
        if settings.twilio_account_sid is None or settings.twilio_auth_token is None:
            raise _ConfigError(
                "TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required "
                "when notifications are enabled"
            )
        # Recipients are guaranteed by PipelineConfig when enabled.
        sms_notifier = TwilioSmsNotifier(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            to=notifications.sms_to or "",
            from_=notifications.sms_from or "",
            base_url=endpoints.twilio_base_url,
            timeout_s=endpoints.timeout_s,
            http_client=client,
        )
        call_notifier = TwilioCallNotifier(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            to=notifications.call_to or "",
            from_=notifications.call_from or "",
            base_url=endpoints.twilio_base_url,
            timeout_s=endpoints.timeout_s,
            http_client=client,
        )
    return _Collaborators(
        ocr=GoogleVisionOcr(
            settings.google_api_key,
            base_url=endpoints.vision_base_url,
            timeout_s=endpoints.timeout_s,
            http_client=client,
        ),
        language_detector=translate_client,
        translator=translate_client,
        sms_notifier=sms_notifier,
        call_notifier=call_notifier,
    )


def _now_timestamp() -> str:
    timestamp = datetime.now(UTC).isoformat()
    return timestamp.replace("+00:00", "Z")


def _should_render() -> bool:
    return sys.stdout.isatty()


def _render_run_summary(
    summary: PipelineRunSummary, *, error: ErrorResponse | None
) -> None:
    console = Console()
    table = Table(title=f"lingobus: {summary.filename}")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Published", justify="right")
    table.add_column("Artifact")
    for result in summary.results:
        table.add_row(
            str(result.stage),
            str(result.status),
            str(result.published_count),
            result.artifact_key or "",
        )
    console.print(table)
    if summary.dead_letters:
        console.print(f"[yellow]Dead letters:[/yellow] {summary.dead_letters}")
    if error is not None:
        console.print(f"[red]Error:[/red] {error.message}")


def _load_pipeline_config(config_path: Path) -> PipelineConfig:
    _load_dotenv(config_path)
    if not config_path.exists():
        raise _ConfigError(f"Config not found: {config_path}")
    try:
        with open(config_path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise _ConfigError(f"Failed to read config: {exc}") from exc
    config = validate_pipeline_config(payload)
    return _resolve_paths(config, config_path)


def _load_dotenv(config_path: Path) -> None:
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        get_settings.cache_clear()


def _resolve_paths(config: PipelineConfig, config_path: Path) -> PipelineConfig:
    config_dir = config_path.parent
    storage = config.storage
    storage_updates: dict[str, str] = {}
    if storage.root_dir is not None:
        storage_updates["root_dir"] = str(_resolve_path(storage.root_dir, config_dir))
    if storage.ledger_dir is not None:
        storage_updates["ledger_dir"] = str(
            _resolve_path(storage.ledger_dir, config_dir)
        )
    updates: dict[str, object] = {
        "storage": storage.model_copy(update=storage_updates)
    }
    if config.logging.logs_dir is not None:
        updates["logging"] = config.logging.model_copy(
            update={
                "logs_dir": str(_resolve_path(config.logging.logs_dir, config_dir))
            }
        )
    return config.model_copy(update=updates)


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value)
    resolved = path if path.is_absolute() else base_dir / path
    return resolved.resolve()


def _build_command_log_sink(config: PipelineConfig) -> LogSinkProtocol:
    logging_config = config.logging
    if logging_config.logs_dir is None:
        return build_log_sink(logging_config)
    log_store = FileSystemLogStore(logs_dir=logging_config.logs_dir)
    return build_log_sink(logging_config, log_store)


async def _emit_command_log(log_sink: LogSinkProtocol, entry: LogEntry) -> None:
    await log_sink.emit_log(entry)


def _emit_command_log_sync(log_sink: LogSinkProtocol, entry: LogEntry) -> None:
    asyncio.run(_emit_command_log(log_sink, entry))


def _build_command_started_log(
    command_id: str, command: str, args: dict[str, str] | None
) -> LogEntry:
    return LogEntry(
        timestamp=_now_timestamp(),
        level=LogLevel.INFO,
        event=CommandEvent.STARTED,
        delivery_id=command_id,
        message="Command started",
        data=CommandStartedData(command=command, args=args).model_dump(
            exclude_none=True
        ),
    )


def _build_command_completed_log(command_id: str, command: str) -> LogEntry:
    return LogEntry(
        timestamp=_now_timestamp(),
        level=LogLevel.INFO,
        event=CommandEvent.COMPLETED,
        delivery_id=command_id,
        message="Command completed",
        data=CommandCompletedData(command=command).model_dump(exclude_none=True),
    )


def _build_command_failed_log(
    command_id: str, command: str, error: ErrorResponse
) -> LogEntry:
    return LogEntry(
        timestamp=_now_timestamp(),
        level=LogLevel.ERROR,
        event=CommandEvent.FAILED,
        delivery_id=command_id,
        message="Command failed",
        data=CommandFailedData(
            command=command,
            error_code=error.code,
            error_message=error.message,
        ).model_dump(exclude_none=True),
    )


ResponseT = TypeVar("ResponseT")


def _error_response(
    error: ErrorResponse, command: str
) -> ApiResponse[ResponseT]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=_now_timestamp(), command=command),
    )


def _error_from_exception(exc: BaseException) -> tuple[ErrorResponse, ExitCode]:
    if isinstance(exc, StageError):
        error = exc.info.to_error_response()
        return error, resolve_exit_code(error.code, domain="stage")
    if isinstance(exc, StorageError):
        error = exc.info.to_error_response()
        return error, resolve_exit_code(error.code, domain="storage")
    if isinstance(exc, ValidationError):
        message = "Config validation failed"
        errors = exc.errors()
        if errors:
            first = errors[0]
            loc = first.get("loc", [])
            label = ".".join(str(part) for part in loc) if loc else ""
            detail = first.get("msg", "")
            if label and detail:
                message = f"Config validation failed: {label} - {detail}"
            elif detail:
                message = f"Config validation failed: {detail}"
        return (
            ErrorResponse(code="config_error", message=message, details=None),
            ExitCode.CONFIG_ERROR,
        )
    if isinstance(exc, _ConfigError):
        return (
            ErrorResponse(code="config_error", message=str(exc), details=None),
            ExitCode.CONFIG_ERROR,
        )
    if isinstance(exc, ValueError):
        return (
            ErrorResponse(code="validation_error", message=str(exc), details=None),
            ExitCode.VALIDATION_ERROR,
        )
    message = str(exc) or type(exc).__name__
    return (
        ErrorResponse(code="runtime_error", message=message, details=None),
        ExitCode.RUNTIME_ERROR,
    )


if __name__ == "__main__":
    app()
