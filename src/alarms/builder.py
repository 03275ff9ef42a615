"""Alarm spec builder — tags + MetricAlarmConfig table → desired alarm set."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import structlog

from src.core.types import (
    AlarmVariant,
    Classification,
    DesiredAlarm,
    Dimension,
    MetricAlarmConfig,
    ResourceRef,
)
from src.tags.grammar import decode

logger = structlog.stdlib.get_logger()

TAG_PREFIX = "autoalarm:"
ENABLED_TAG = f"{TAG_PREFIX}enabled"
TARGET_TAG = f"{TAG_PREFIX}target"

_ANOMALY_SUFFIX = "-anomaly"


def metric_key(tag_key: str) -> str:
    """Short metric name used in alarm names (``cpu-anomaly`` → ``cpu``)."""
    if tag_key.endswith(_ANOMALY_SUFFIX):
        return tag_key[: -len(_ANOMALY_SUFFIX)]
    return tag_key


def service_prefix(alarm_prefix: str, service: str) -> str:
    """``AutoAlarm`` + ``EC2`` → ``AutoAlarm-EC2``."""
    return f"{alarm_prefix}-{service}"


def resource_alarm_prefix(prefix: str, resource_id: str) -> str:
    """Name prefix shared by every alarm of one resource.

    The trailing delimiter keeps ``i-1`` from matching alarms of ``i-10``.
    """
    return f"{prefix}-{resource_id}-"


def build_alarm_name(
    prefix: str,
    resource_id: str,
    metric_name: str,
    variant: AlarmVariant,
    classification: Classification,
) -> str:
    """Deterministic alarm name.

    Static:  ``<prefix>-<resource>-<metric>-<Classification>``
    Anomaly: ``<prefix>-<resource>-<metric>-anomaly-<Classification>``
    """
    parts = [prefix, resource_id, metric_name]
    if variant is AlarmVariant.ANOMALY:
        parts.append("anomaly")
    parts.append(classification.value)
    return "-".join(parts)


def is_enabled(tags: Mapping[str, str]) -> bool:
    return tags.get(ENABLED_TAG) == "true"


def wants_alarm(config: MetricAlarmConfig, tags: Mapping[str, str]) -> bool:
    """Whether ``config`` applies: its tag is present or it is on by default."""
    return config.default_create or f"{TAG_PREFIX}{config.tag_key}" in tags


def _streams(
    config: MetricAlarmConfig,
    resource: ResourceRef,
    discovered: Mapping[str, Sequence[tuple[Dimension, ...]]],
) -> list[tuple[str, list[Dimension]]]:
    """(name part, dimensions) for every metric stream ``config`` alarms on."""
    key = metric_key(config.tag_key)
    if config.dimension_key is None:
        return [(key, list(resource.dimensions))]

    streams: list[tuple[str, list[Dimension]]] = []
    for dims in discovered.get(config.tag_key, ()):
        value = next((d.value for d in dims if d.name == config.dimension_key), None)
        if value:
            streams.append((f"{key}-{value}", list(dims)))
    if not streams:
        logger.debug(
            "no_metric_streams",
            tag_key=config.tag_key,
            metric_name=config.metric_name,
            resource_id=resource.resource_id,
        )
    return sorted(streams, key=lambda s: s[0])


class AlarmSpecBuilder:
    """Combines a per-metric config table with tag overrides for one resource."""

    def __init__(self, alarm_prefix: str = "AutoAlarm") -> None:
        self._alarm_prefix = alarm_prefix

    @property
    def alarm_prefix(self) -> str:
        return self._alarm_prefix

    def prefix_for(self, resource: ResourceRef) -> str:
        """The name prefix the reconciler lists observed alarms by."""
        return resource_alarm_prefix(
            service_prefix(self._alarm_prefix, resource.service),
            resource.resource_id,
        )

    def build(
        self,
        resource: ResourceRef,
        tags: Mapping[str, str],
        configs: Iterable[MetricAlarmConfig],
        discovered: Mapping[str, Sequence[tuple[Dimension, ...]]] | None = None,
    ) -> list[DesiredAlarm]:
        """Compute the desired alarm set.

        Returns an empty list unless ``autoalarm:enabled`` is exactly
        ``"true"``; that tag overrides every per-metric tag.

        ``discovered`` maps a per-dimension config's tag key to the
        dimension sets found for it; such configs yield nothing without it.
        """
        if not is_enabled(tags):
            logger.info(
                "autoalarm_disabled",
                resource_id=resource.resource_id,
                enabled_tag=tags.get(ENABLED_TAG),
            )
            return []

        prefix = service_prefix(self._alarm_prefix, resource.service)
        desired: list[DesiredAlarm] = []

        for config in configs:
            if not wants_alarm(config, tags):
                continue
            streams = _streams(config, resource, discovered or {})
            if not streams:
                continue
            tag_value = tags.get(f"{TAG_PREFIX}{config.tag_key}")
            options = decode(tag_value or "", config.default_options, config.variant)

            if config.variant is AlarmVariant.ANOMALY:
                if options.statistic is None:
                    logger.debug("anomaly_alarm_suppressed", tag_key=config.tag_key)
                    continue
                classifications = list(Classification)
            else:
                classifications = [
                    c for c in Classification if options.threshold_for(c) is not None
                ]

            for name_part, dimensions in streams:
                for classification in classifications:
                    desired.append(DesiredAlarm(
                        name=build_alarm_name(
                            prefix,
                            resource.resource_id,
                            name_part,
                            config.variant,
                            classification,
                        ),
                        resource_id=resource.resource_id,
                        tag_key=config.tag_key,
                        metric_name=config.metric_name,
                        namespace=config.metric_namespace,
                        dimensions=dimensions,
                        classification=classification,
                        variant=config.variant,
                        options=options,
                        prometheus_query=config.prometheus_query,
                    ))

        logger.debug(
            "desired_alarms_built",
            resource_id=resource.resource_id,
            count=len(desired),
        )
        return desired
