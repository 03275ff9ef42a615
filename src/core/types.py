"""Domain types shared across the alarm reconciliation engine."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Classification(StrEnum):
    """Alarm severity."""

    WARNING = "Warning"
    CRITICAL = "Critical"


class AlarmVariant(StrEnum):
    """How an alarm decides it is breaching."""

    STATIC = "Static"  # statistic vs fixed threshold
    ANOMALY = "Anomaly"  # statistic vs anomaly detection band


class ComparisonOperator(StrEnum):
    """CloudWatch comparison operators accepted by the tag grammar."""

    GREATER_THAN = "GreaterThanThreshold"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqualToThreshold"
    LESS_THAN = "LessThanThreshold"
    LESS_THAN_OR_EQUAL = "LessThanOrEqualToThreshold"
    OUTSIDE_BAND = "LessThanLowerOrGreaterThanUpperThreshold"
    ABOVE_BAND = "GreaterThanUpperThreshold"
    BELOW_BAND = "LessThanLowerThreshold"

    @property
    def is_band(self) -> bool:
        """Whether the operator only applies to anomaly detection bands."""
        return self in _BAND_OPERATORS


_BAND_OPERATORS = frozenset({
    ComparisonOperator.OUTSIDE_BAND,
    ComparisonOperator.ABOVE_BAND,
    ComparisonOperator.BELOW_BAND,
})


class MissingDataTreatment(StrEnum):
    """CloudWatch TreatMissingData values."""

    BREACHING = "breaching"
    NOT_BREACHING = "notBreaching"
    IGNORE = "ignore"
    MISSING = "missing"


class AlarmBackend(StrEnum):
    """Where a resource's alarms are materialised."""

    CLOUDWATCH = "CloudWatch"
    PROMETHEUS = "Prometheus"


class EventKind(StrEnum):
    """Lifecycle event carried by an inbound record."""

    CREATE = "Create"
    DELETE = "Delete"
    TAG_CHANGE = "TagChange"
    STATE_CHANGE = "StateChange"


# ── Alarm configuration ─────────────────────────────────────────


class MetricAlarmConfig(BaseModel):
    """Static per-metric alarm definition for one resource type."""

    model_config = ConfigDict(frozen=True)

    tag_key: str
    metric_name: str
    metric_namespace: str
    default_create: bool
    is_anomaly: bool
    default_options: str
    # PromQL selecting the same signal; $resource_id is substituted.
    prometheus_query: str | None = None
    # When set, one alarm per discovered metric stream, named by the value
    # of this dimension (e.g. one per filesystem path).
    dimension_key: str | None = None

    @property
    def variant(self) -> AlarmVariant:
        return AlarmVariant.ANOMALY if self.is_anomaly else AlarmVariant.STATIC


class AlarmOptions(BaseModel):
    """Decoded alarm settings.

    A threshold of ``None`` means no alarm at that severity. For anomaly
    alarms a ``statistic`` of ``None`` suppresses both severities.
    """

    warning_threshold: float | None = None
    critical_threshold: float | None = None
    period: int = 60
    evaluation_periods: int = 5
    statistic: str | None = "Average"
    datapoints_to_alarm: int = 5
    band_width: float = 2.0
    comparison_operator: ComparisonOperator = ComparisonOperator.GREATER_THAN
    missing_data_treatment: MissingDataTreatment = MissingDataTreatment.IGNORE

    def threshold_for(self, classification: Classification) -> float | None:
        if classification is Classification.WARNING:
            return self.warning_threshold
        return self.critical_threshold


class Dimension(BaseModel):
    """A CloudWatch metric dimension."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str

    def to_api(self) -> dict[str, str]:
        return {"Name": self.name, "Value": self.value}


class ResourceRef(BaseModel):
    """A classified resource the engine manages alarms for."""

    model_config = ConfigDict(frozen=True)

    service: str
    resource_id: str
    arn: str
    dimensions: tuple[Dimension, ...] = ()
    rule_root: str = ""


class DesiredAlarm(BaseModel):
    """One alarm a resource's tags say should exist."""

    name: str
    resource_id: str
    tag_key: str
    metric_name: str
    namespace: str
    dimensions: list[Dimension] = Field(default_factory=list)
    classification: Classification
    variant: AlarmVariant
    options: AlarmOptions
    prometheus_query: str | None = None

    @property
    def threshold(self) -> float | None:
        return self.options.threshold_for(self.classification)


# ── Events & batch results ──────────────────────────────────────


class EventRecord(BaseModel):
    """Transport-agnostic inbound record."""

    source_id: str
    event_kind: EventKind
    resource_identifier: str
    tags: dict[str, str] = Field(default_factory=dict)
    state: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class BatchItemFailure(BaseModel):
    """A record the queue must redeliver."""

    item_identifier: str


class BatchResult(BaseModel):
    """Outcome of one batch invocation."""

    failures: list[BatchItemFailure] = Field(default_factory=list)

    def to_response(self) -> dict[str, list[dict[str, str]]]:
        """Render as the SQS partial batch response."""
        return {
            "batchItemFailures": [
                {"itemIdentifier": f.item_identifier} for f in self.failures
            ],
        }


# ── Per-invocation state ────────────────────────────────────────


class InvocationContext(BaseModel):
    """Parameters of one invocation, passed explicitly down the call chain."""

    request_id: str = ""
    deadline: float | None = None  # time.monotonic() value

    @classmethod
    def with_budget(
        cls, request_id: str, remaining_secs: float | None
    ) -> InvocationContext:
        deadline = None
        if remaining_secs is not None:
            deadline = time.monotonic() + max(remaining_secs, 0.0)
        return cls(request_id=request_id, deadline=deadline)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0


class RecordContext(BaseModel):
    """Everything one record's handling needs; never shared between records."""

    record_id: str
    event_kind: EventKind
    resource: ResourceRef
    tags: dict[str, str] = Field(default_factory=dict)
    backend: AlarmBackend = AlarmBackend.CLOUDWATCH
    invocation: InvocationContext = Field(default_factory=InvocationContext)
