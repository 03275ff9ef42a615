"""Metric-alarm backend: spec building, reconciliation, re-alarm sweep."""

from src.alarms.builder import (
    ENABLED_TAG,
    TARGET_TAG,
    AlarmSpecBuilder,
    build_alarm_name,
)
from src.alarms.cloudwatch import CloudWatchClient, build_alarm_params
from src.alarms.exceptions import AlarmBackendError, AlarmError, AnomalyDetectorError
from src.alarms.realarm import ReAlarmSweeper, SweepResult
from src.alarms.reconciler import AlarmReconciler, ReconcileResult

__all__ = [
    "ENABLED_TAG",
    "TARGET_TAG",
    "AlarmBackendError",
    "AlarmError",
    "AlarmReconciler",
    "AlarmSpecBuilder",
    "AnomalyDetectorError",
    "CloudWatchClient",
    "ReAlarmSweeper",
    "ReconcileResult",
    "SweepResult",
    "build_alarm_name",
    "build_alarm_params",
]
