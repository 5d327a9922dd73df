"""Pipeline stages, one per inbound payload shape."""

from lingobus_core.stages.base import Stage, now_timestamp
from lingobus_core.stages.extraction import ExtractionStage, FanOutRoute, plan_fan_out
from lingobus_core.stages.persistence import PersistenceStage
from lingobus_core.stages.retrieval import RetrievalStage, notification_key
from lingobus_core.stages.translation import TranslationStage

__all__ = [
    "ExtractionStage",
    "FanOutRoute",
    "PersistenceStage",
    "RetrievalStage",
    "Stage",
    "TranslationStage",
    "notification_key",
    "now_timestamp",
    "plan_fan_out",
]
