"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    AlarmBackend,
    AlarmOptions,
    AlarmVariant,
    BatchItemFailure,
    BatchResult,
    Classification,
    ComparisonOperator,
    DesiredAlarm,
    Dimension,
    EventKind,
    EventRecord,
    InvocationContext,
    MetricAlarmConfig,
    MissingDataTreatment,
    RecordContext,
    ResourceRef,
)

__all__ = [
    "AlarmBackend",
    "AlarmOptions",
    "AlarmVariant",
    "BatchItemFailure",
    "BatchResult",
    "Classification",
    "ComparisonOperator",
    "DesiredAlarm",
    "Dimension",
    "EventKind",
    "EventRecord",
    "InvocationContext",
    "MetricAlarmConfig",
    "MissingDataTreatment",
    "RecordContext",
    "ResourceRef",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
