"""Alarm-backend exceptions."""

from __future__ import annotations


class AlarmError(Exception):
    """Base exception for metric-alarm errors."""


class AlarmBackendError(AlarmError):
    """A CloudWatch call failed after the transport's own retries."""


class AnomalyDetectorError(AlarmError):
    """Registering the anomaly detector behind an anomaly alarm failed."""
