"""Tag grammar codec — ``/``-delimited alarm settings embedded in resource tags.

Static values::

    warning/critical/period/evaluationPeriods/statistic[/dataPointsToAlarm/comparisonOperator/missingData]

Anomaly values::

    statistic/period/evaluationPeriods[/bandWidth/dataPointsToAlarm/comparisonOperator/missingData]

Every position is resolved independently: an empty or missing field falls
back to the same position of the defaults string, an unparseable field is
logged and also falls back. A threshold (or, for anomaly alarms, the
statistic) written as ``-`` or ``disabled`` suppresses that alarm instead of
using the default. Decoding never raises.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from typing import Any

import structlog

from src.core.types import (
    AlarmOptions,
    AlarmVariant,
    ComparisonOperator,
    MissingDataTreatment,
)

logger = structlog.stdlib.get_logger()

DELIMITER = "/"
SUPPRESS_MARKERS = frozenset({"-", "disabled"})

STANDARD_STATISTICS = frozenset({"Average", "Sum", "Maximum", "Minimum", "SampleCount"})
EXTENDED_STATISTIC_PREFIXES = ("p", "tm", "tc", "ts", "wm")

_PERCENTILE_RE = re.compile(r"^p(\d{1,2}(\.\d{1,10})?|100)$")
_TRIMMED_RE = re.compile(r"^(tm|tc|ts|wm)(\d{1,2}(\.\d{1,10})?|\([^)]*\))$")

STATIC_FIELDS: tuple[str, ...] = (
    "warning_threshold",
    "critical_threshold",
    "period",
    "evaluation_periods",
    "statistic",
    "datapoints_to_alarm",
    "comparison_operator",
    "missing_data_treatment",
)

ANOMALY_FIELDS: tuple[str, ...] = (
    "statistic",
    "period",
    "evaluation_periods",
    "band_width",
    "datapoints_to_alarm",
    "comparison_operator",
    "missing_data_treatment",
)

# Sentinel for "could not parse this position".
_INVALID = object()


# ── Statistics ───────────────────────────────────────────────────


def is_extended_statistic(statistic: str) -> bool:
    """Return True for percentile / trimmed statistics (``p99``, ``tm90`` ...).

    These must be sent as ``ExtendedStatistic`` rather than ``Statistic``.
    """
    if not statistic.startswith(EXTENDED_STATISTIC_PREFIXES):
        return False
    return bool(_PERCENTILE_RE.match(statistic) or _TRIMMED_RE.match(statistic))


def is_valid_statistic(statistic: str) -> bool:
    return statistic in STANDARD_STATISTICS or is_extended_statistic(statistic)


def normalize_period(period: int) -> int:
    """Clamp a period to a value CloudWatch accepts: 10, 30 or a multiple of 60."""
    if period <= 10:
        return 10
    if period <= 30:
        return 30
    return math.ceil(period / 60) * 60


# ── Field parsers ────────────────────────────────────────────────


def _parse_threshold(raw: str, variant: AlarmVariant) -> Any:
    if raw.lower() in SUPPRESS_MARKERS:
        return None
    try:
        value = float(raw)
    except ValueError:
        return _INVALID
    if math.isnan(value) or math.isinf(value):
        return _INVALID
    return value


def _parse_positive_int(raw: str) -> Any:
    try:
        value = int(raw)
    except ValueError:
        return _INVALID
    return value if value > 0 else _INVALID


def _parse_period(raw: str, variant: AlarmVariant) -> Any:
    value = _parse_positive_int(raw)
    if value is _INVALID:
        return _INVALID
    return normalize_period(value)


def _parse_count(raw: str, variant: AlarmVariant) -> Any:
    return _parse_positive_int(raw)


def _parse_band_width(raw: str, variant: AlarmVariant) -> Any:
    try:
        value = float(raw)
    except ValueError:
        return _INVALID
    if math.isnan(value) or math.isinf(value) or value <= 0:
        return _INVALID
    return value


def _parse_statistic(raw: str, variant: AlarmVariant) -> Any:
    if raw.lower() in SUPPRESS_MARKERS:
        # Only anomaly alarms are switched off through the statistic.
        return None if variant is AlarmVariant.ANOMALY else _INVALID
    return raw if is_valid_statistic(raw) else _INVALID


def _parse_operator(raw: str, variant: AlarmVariant) -> Any:
    try:
        op = ComparisonOperator(raw)
    except ValueError:
        return _INVALID
    if op.is_band != (variant is AlarmVariant.ANOMALY):
        return _INVALID
    return op


def _parse_missing_data(raw: str, variant: AlarmVariant) -> Any:
    try:
        return MissingDataTreatment(raw)
    except ValueError:
        return _INVALID


_PARSERS: dict[str, Callable[[str, AlarmVariant], Any]] = {
    "warning_threshold": _parse_threshold,
    "critical_threshold": _parse_threshold,
    "period": _parse_period,
    "evaluation_periods": _parse_count,
    "statistic": _parse_statistic,
    "datapoints_to_alarm": _parse_count,
    "band_width": _parse_band_width,
    "comparison_operator": _parse_operator,
    "missing_data_treatment": _parse_missing_data,
}


def _fallback(field: str, variant: AlarmVariant) -> Any:
    if field == "comparison_operator":
        if variant is AlarmVariant.ANOMALY:
            return ComparisonOperator.OUTSIDE_BAND
        return ComparisonOperator.GREATER_THAN
    if field == "datapoints_to_alarm":
        return None  # resolved against evaluation_periods
    return AlarmOptions.model_fields[field].default


def _split(value: str) -> list[str]:
    if not value or not value.strip():
        return []
    return [part.strip() for part in value.split(DELIMITER)]


def _field_at(parts: list[str], index: int) -> str:
    return parts[index] if index < len(parts) else ""


def _resolve(field: str, tag_raw: str, default_raw: str, variant: AlarmVariant) -> Any:
    parser = _PARSERS[field]
    if tag_raw:
        value = parser(tag_raw, variant)
        if value is not _INVALID:
            return value
        logger.warning("tag_field_invalid", field=field, value=tag_raw, variant=variant)
    if default_raw:
        value = parser(default_raw, variant)
        if value is not _INVALID:
            return value
        logger.warning("default_field_invalid", field=field, value=default_raw, variant=variant)
    return _fallback(field, variant)


# ── Public API ───────────────────────────────────────────────────


def fields_for(variant: AlarmVariant) -> tuple[str, ...]:
    return ANOMALY_FIELDS if variant is AlarmVariant.ANOMALY else STATIC_FIELDS


def decode(
    tag_value: str,
    defaults: str,
    variant: AlarmVariant = AlarmVariant.STATIC,
) -> AlarmOptions:
    """Decode a tag value into AlarmOptions, filling gaps from ``defaults``.

    Args:
        tag_value: Raw tag value, possibly empty or partial.
        defaults: Default value string in the same layout.
        variant: Selects the positional layout.

    Returns:
        Best-effort AlarmOptions. Never raises.
    """
    tag_parts = _split(tag_value)
    default_parts = _split(defaults)
    layout = fields_for(variant)

    if len(tag_parts) > len(layout):
        logger.warning(
            "tag_value_extra_fields",
            value=tag_value,
            expected=len(layout),
            got=len(tag_parts),
        )

    resolved: dict[str, Any] = {}
    for index, field in enumerate(layout):
        resolved[field] = _resolve(
            field,
            _field_at(tag_parts, index),
            _field_at(default_parts, index),
            variant,
        )

    evaluation_periods = resolved["evaluation_periods"]
    datapoints = resolved["datapoints_to_alarm"]
    if datapoints is None or datapoints > evaluation_periods:
        resolved["datapoints_to_alarm"] = evaluation_periods

    return AlarmOptions(**resolved)


def format_number(value: float) -> str:
    """Lossless rendering: integral values without a decimal point."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def encode(options: AlarmOptions, variant: AlarmVariant = AlarmVariant.STATIC) -> str:
    """Render AlarmOptions as a full (no missing field) tag value."""
    if variant is AlarmVariant.ANOMALY:
        parts = [
            options.statistic or "-",
            str(options.period),
            str(options.evaluation_periods),
            format_number(options.band_width),
            str(options.datapoints_to_alarm),
            options.comparison_operator.value,
            options.missing_data_treatment.value,
        ]
    else:
        parts = [
            "-" if options.warning_threshold is None else format_number(options.warning_threshold),
            "-" if options.critical_threshold is None else format_number(options.critical_threshold),
            str(options.period),
            str(options.evaluation_periods),
            options.statistic or "Average",
            str(options.datapoints_to_alarm),
            options.comparison_operator.value,
            options.missing_data_treatment.value,
        ]
    return DELIMITER.join(parts)
