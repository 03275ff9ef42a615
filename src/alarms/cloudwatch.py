"""Async wrapper around the synchronous boto3 CloudWatch client."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import Any, TypeVar

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.alarms.exceptions import AlarmBackendError, AnomalyDetectorError
from src.core.aws import make_client
from src.core.config import AwsConfig, CloudWatchConfig, get_settings
from src.core.types import AlarmVariant, DesiredAlarm, Dimension
from src.tags.grammar import is_extended_statistic

logger = structlog.stdlib.get_logger()

T = TypeVar("T")

_METRIC_ID = "m1"
_BAND_ID = "ad1"


def _dimensions(alarm: DesiredAlarm) -> list[dict[str, str]]:
    return [d.to_api() for d in alarm.dimensions]


def _description(alarm: DesiredAlarm) -> str:
    return (
        f"AutoAlarm {alarm.classification.value} {alarm.variant.value.lower()} alarm "
        f"for {alarm.metric_name} on {alarm.resource_id}"
    )


def build_alarm_params(alarm: DesiredAlarm, config: CloudWatchConfig) -> dict[str, Any]:
    """Translate a DesiredAlarm into PutMetricAlarm keyword arguments.

    Percentile/trimmed statistics go into ``ExtendedStatistic``; anomaly
    alarms use a metric-math band expression as their threshold metric.
    """
    opts = alarm.options
    statistic = opts.statistic or "Average"

    params: dict[str, Any] = {
        "AlarmName": alarm.name,
        "AlarmDescription": _description(alarm),
        "ActionsEnabled": config.actions_enabled,
        "EvaluationPeriods": opts.evaluation_periods,
        "DatapointsToAlarm": opts.datapoints_to_alarm,
        "ComparisonOperator": opts.comparison_operator.value,
        "TreatMissingData": opts.missing_data_treatment.value,
    }
    if config.alarm_actions:
        params["AlarmActions"] = list(config.alarm_actions)
    if config.ok_actions:
        params["OKActions"] = list(config.ok_actions)

    if alarm.variant is AlarmVariant.ANOMALY:
        params["ThresholdMetricId"] = _BAND_ID
        params["Metrics"] = [
            {
                "Id": _METRIC_ID,
                "MetricStat": {
                    "Metric": {
                        "Namespace": alarm.namespace,
                        "MetricName": alarm.metric_name,
                        "Dimensions": _dimensions(alarm),
                    },
                    "Period": opts.period,
                    "Stat": statistic,
                },
                "ReturnData": True,
            },
            {
                "Id": _BAND_ID,
                "Expression": f"ANOMALY_DETECTION_BAND({_METRIC_ID}, {opts.band_width:g})",
                "Label": f"{alarm.metric_name} (expected)",
                "ReturnData": True,
            },
        ]
        return params

    params.update({
        "MetricName": alarm.metric_name,
        "Namespace": alarm.namespace,
        "Dimensions": _dimensions(alarm),
        "Period": opts.period,
        "Threshold": alarm.threshold,
    })
    if is_extended_statistic(statistic):
        params["ExtendedStatistic"] = statistic
    else:
        params["Statistic"] = statistic
    return params


def build_anomaly_detector_params(alarm: DesiredAlarm) -> dict[str, Any]:
    """PutAnomalyDetector arguments keyed by metric, dimensions and statistic."""
    return {
        "SingleMetricAnomalyDetector": {
            "Namespace": alarm.namespace,
            "MetricName": alarm.metric_name,
            "Dimensions": _dimensions(alarm),
            "Stat": alarm.options.statistic or "Average",
        },
    }


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class CloudWatchClient:
    """Async wrapper around boto3's CloudWatch client.

    Throttling and transient faults are retried by botocore's standard
    retry mode; anything that survives it is raised as AlarmBackendError.

    Usage::

        async with CloudWatchClient() as cw:
            names = await cw.list_alarm_names("AutoAlarm-EC2-i-123-")
    """

    def __init__(
        self,
        aws_config: AwsConfig | None = None,
        config: CloudWatchConfig | None = None,
    ) -> None:
        settings = get_settings()
        self._aws = aws_config or settings.aws
        self._config = config or settings.cloudwatch
        self._sdk: Any | None = None

    async def connect(self) -> None:
        """Create the underlying boto3 client."""
        self._sdk = await asyncio.to_thread(make_client, "cloudwatch", self._aws)
        logger.debug("cloudwatch_client_connected", region=self._aws.region)

    async def close(self) -> None:
        self._sdk = None

    async def __aenter__(self) -> CloudWatchClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def config(self) -> CloudWatchConfig:
        return self._config

    @property
    def sdk(self) -> Any:
        """Access the underlying boto3 client, raising if not connected."""
        if self._sdk is None:
            raise AlarmBackendError("Client not connected. Call connect() first.")
        return self._sdk

    async def _call(self, action: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise AlarmBackendError(f"CloudWatch {action} failed: {exc}") from exc

    # ── Queries ──────────────────────────────────────────────────

    def _list_alarms(self, **kwargs: Any) -> list[dict[str, Any]]:
        paginator = self.sdk.get_paginator("describe_alarms")
        alarms: list[dict[str, Any]] = []
        for page in paginator.paginate(AlarmTypes=["MetricAlarm"], **kwargs):
            alarms.extend(page.get("MetricAlarms", []))
        return alarms

    async def list_alarm_names(self, prefix: str) -> list[str]:
        """Names of every metric alarm starting with ``prefix``."""
        alarms = await self._call(
            "describe_alarms", self._list_alarms, AlarmNamePrefix=prefix
        )
        return [a["AlarmName"] for a in alarms if a.get("AlarmName", "").startswith(prefix)]

    async def list_alarms(self, state: str | None = None) -> list[dict[str, Any]]:
        """Every metric alarm, optionally filtered by state value."""
        kwargs: dict[str, Any] = {}
        if state is not None:
            kwargs["StateValue"] = state
        return await self._call("describe_alarms", self._list_alarms, **kwargs)

    def _list_metrics(self, **kwargs: Any) -> list[dict[str, Any]]:
        paginator = self.sdk.get_paginator("list_metrics")
        metrics: list[dict[str, Any]] = []
        for page in paginator.paginate(**kwargs):
            metrics.extend(page.get("Metrics", []))
        return metrics

    async def list_metric_dimensions(
        self,
        namespace: str,
        metric_name: str,
        dimensions: Iterable[Dimension],
    ) -> list[tuple[Dimension, ...]]:
        """Full dimension sets of every stream of a metric that carries ``dimensions``.

        Used for per-stream alarms such as one per CWAgent filesystem path.
        """
        metrics = await self._call(
            "list_metrics",
            self._list_metrics,
            Namespace=namespace,
            MetricName=metric_name,
            Dimensions=[d.to_api() for d in dimensions],
        )
        found = [
            tuple(Dimension(name=d["Name"], value=d["Value"]) for d in m.get("Dimensions", []))
            for m in metrics
        ]
        logger.debug(
            "metric_streams_listed",
            namespace=namespace,
            metric_name=metric_name,
            count=len(found),
        )
        return found

    # ── Mutations ────────────────────────────────────────────────

    async def put_metric_alarm(self, alarm: DesiredAlarm) -> None:
        """Create or replace an alarm (PutMetricAlarm is an upsert by name)."""
        params = build_alarm_params(alarm, self._config)
        await self._call("put_metric_alarm", self.sdk.put_metric_alarm, **params)
        logger.info(
            "alarm_upserted",
            alarm_name=alarm.name,
            variant=alarm.variant,
            threshold=alarm.threshold,
            period=alarm.options.period,
            evaluation_periods=alarm.options.evaluation_periods,
        )

    async def put_anomaly_detector(self, alarm: DesiredAlarm) -> None:
        """Register (or refresh) the anomaly detection model behind ``alarm``."""
        params = build_anomaly_detector_params(alarm)
        try:
            await asyncio.to_thread(self.sdk.put_anomaly_detector, **params)
        except (ClientError, BotoCoreError) as exc:
            raise AnomalyDetectorError(
                f"Anomaly detector for {alarm.metric_name} failed: {exc}"
            ) from exc
        logger.debug("anomaly_detector_registered", alarm_name=alarm.name)

    async def delete_alarms(self, names: list[str]) -> None:
        """Delete alarms by name, in API-sized batches."""
        for chunk in _chunks(sorted(names), self._config.delete_batch_size):
            await self._call("delete_alarms", self.sdk.delete_alarms, AlarmNames=chunk)
            logger.info("alarms_deleted", alarm_names=chunk)

    async def set_alarm_state(self, name: str, state: str, reason: str) -> None:
        await self._call(
            "set_alarm_state",
            self.sdk.set_alarm_state,
            AlarmName=name,
            StateValue=state,
            StateReason=reason,
        )
