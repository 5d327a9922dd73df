"""CLI exit code taxonomy and error-to-exit-code registry.

Exit code ranges:
- 0: Success
- 10-19: Client/input errors (config, validation)
- 20-29: Domain/processing errors (routing, storage)
- 30-39: External collaborator errors
- 99: Unexpected runtime errors
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """CLI exit codes by failure category."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    ROUTING_ERROR = 20
    STORAGE_ERROR = 23
    COLLABORATOR_ERROR = 30
    RUNTIME_ERROR = 99


# Domain error codes are qualified with a domain prefix to avoid collisions
# (e.g. "storage.not_found" vs "collaborator.not_found").
ERROR_CODE_TO_EXIT_CODE: dict[str, ExitCode] = {
    "config_error": ExitCode.CONFIG_ERROR,
    "validation_error": ExitCode.VALIDATION_ERROR,
    "runtime_error": ExitCode.RUNTIME_ERROR,
    "stage.missing_field": ExitCode.VALIDATION_ERROR,
    "stage.invalid_payload": ExitCode.VALIDATION_ERROR,
    "stage.collaborator_failed": ExitCode.COLLABORATOR_ERROR,
    "stage.artifact_not_found": ExitCode.STORAGE_ERROR,
    "stage.publish_failed": ExitCode.COLLABORATOR_ERROR,
    "stage.notification_failed": ExitCode.COLLABORATOR_ERROR,
    "stage.unknown_topic": ExitCode.ROUTING_ERROR,
    "storage.not_found": ExitCode.STORAGE_ERROR,
    "storage.io_error": ExitCode.STORAGE_ERROR,
    "storage.invalid_key": ExitCode.STORAGE_ERROR,
}


def resolve_exit_code(error_code: str, *, domain: str | None = None) -> ExitCode:
    """Resolve an error code string to its ExitCode.

    Args:
        error_code: The error code string (e.g. "missing_field").
        domain: Optional domain prefix (e.g. "stage", "storage"). When
            provided, ``"{domain}.{error_code}"`` is looked up first.

    Returns:
        The matching ExitCode, or RUNTIME_ERROR if no mapping is found.
    """
    if domain:
        qualified = f"{domain}.{error_code}"
        if qualified in ERROR_CODE_TO_EXIT_CODE:
            return ERROR_CODE_TO_EXIT_CODE[qualified]

    if error_code in ERROR_CODE_TO_EXIT_CODE:
        return ERROR_CODE_TO_EXIT_CODE[error_code]

    return ExitCode.RUNTIME_ERROR
