"""Validation entrypoints for configuration payloads."""

from __future__ import annotations

from lingobus_schemas.config import PipelineConfig
from lingobus_schemas.primitives import JsonValue


def validate_pipeline_config(payload: dict[str, JsonValue]) -> PipelineConfig:
    """Validate pipeline configuration payload.

    TOML values are coerced (ints for float fields, strings for enums), so
    validation runs in lax mode.

    Args:
        payload: Raw pipeline configuration payload.

    Returns:
        PipelineConfig: Validated pipeline configuration.
    """
    return PipelineConfig.model_validate(payload, strict=False)
