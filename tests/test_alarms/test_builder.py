"""Tests for src/alarms/builder.py — naming, enable gate, severity selection."""

from __future__ import annotations

import pytest

from src.alarms.builder import (
    AlarmSpecBuilder,
    build_alarm_name,
    is_enabled,
    metric_key,
)
from src.alarms.configs import EC2_CONFIGS
from src.core.types import (
    AlarmVariant,
    Classification,
    Dimension,
    MetricAlarmConfig,
    ResourceRef,
)
from src.resources.registry import DEFAULT_RESOURCE_TYPES

RESOURCE = ResourceRef(
    service="EC2",
    resource_id="i-0abc123",
    arn="arn:aws:ec2:us-east-1:123456789012:instance/i-0abc123",
    dimensions=(Dimension(name="InstanceId", value="i-0abc123"),),
    rule_root="AutoAlarm-EC2",
)


def _cfg(**overrides: object) -> MetricAlarmConfig:
    data: dict[str, object] = {
        "tag_key": "cpu",
        "metric_name": "CPUUtilization",
        "metric_namespace": "AWS/EC2",
        "default_create": True,
        "is_anomaly": False,
        "default_options": "80/90/300/2/Average",
    }
    data.update(overrides)
    return MetricAlarmConfig(**data)  # type: ignore[arg-type]


def _tags(**extra: str) -> dict[str, str]:
    tags = {"autoalarm:enabled": "true"}
    tags.update({f"autoalarm:{k.replace('_', '-')}": v for k, v in extra.items()})
    return tags


class TestNaming:
    def test_deterministic(self) -> None:
        args = ("AutoAlarm-EC2", "i-1", "cpu", AlarmVariant.STATIC, Classification.WARNING)
        assert build_alarm_name(*args) == build_alarm_name(*args)
        assert build_alarm_name(*args) == "AutoAlarm-EC2-i-1-cpu-Warning"

    def test_anomaly_name(self) -> None:
        name = build_alarm_name(
            "AutoAlarm-EC2", "i-1", "cpu", AlarmVariant.ANOMALY, Classification.CRITICAL
        )
        assert name == "AutoAlarm-EC2-i-1-cpu-anomaly-Critical"

    def test_metric_key_strips_anomaly_suffix(self) -> None:
        assert metric_key("cpu-anomaly") == "cpu"
        assert metric_key("5xx-count") == "5xx-count"

    def test_prefix_for_has_trailing_delimiter(self) -> None:
        assert AlarmSpecBuilder().prefix_for(RESOURCE) == "AutoAlarm-EC2-i-0abc123-"


class TestEnableGate:
    @pytest.mark.parametrize("value", [None, "false", "True", "yes", ""])
    def test_disabled_returns_nothing(self, value: str | None) -> None:
        tags = {"autoalarm:cpu": "90/95/60/5/Average"}
        if value is not None:
            tags["autoalarm:enabled"] = value
        assert not is_enabled(tags)
        assert AlarmSpecBuilder().build(RESOURCE, tags, EC2_CONFIGS) == []

    def test_enabled(self) -> None:
        assert is_enabled({"autoalarm:enabled": "true"})


class TestBuild:
    def test_end_to_end_cpu_example(self) -> None:
        builder = AlarmSpecBuilder()
        desired = builder.build(RESOURCE, _tags(cpu="90/95/60/5/Average"), [_cfg()])

        prefix = builder.prefix_for(RESOURCE)
        assert [a.name for a in desired] == [f"{prefix}cpu-Warning", f"{prefix}cpu-Critical"]
        warning, critical = desired
        assert warning.threshold == 90
        assert critical.threshold == 95
        for alarm in desired:
            assert alarm.options.period == 60
            assert alarm.options.evaluation_periods == 5
            assert alarm.dimensions == [Dimension(name="InstanceId", value="i-0abc123")]

    def test_absent_tag_without_default_create_skipped(self) -> None:
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(), [_cfg(default_create=False)])
        assert desired == []

    def test_absent_tag_with_default_create_uses_defaults(self) -> None:
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(), [_cfg()])
        assert [a.threshold for a in desired] == [80, 90]
        assert desired[0].options.period == 300

    def test_suppressed_warning_emits_only_critical(self) -> None:
        desired = AlarmSpecBuilder().build(
            RESOURCE, _tags(cpu="-/100/60/5/Average"), [_cfg()]
        )
        assert [a.classification for a in desired] == [Classification.CRITICAL]
        assert desired[0].threshold == 100

    def test_both_suppressed_emits_nothing(self) -> None:
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(cpu="-/-"), [_cfg()])
        assert desired == []

    def test_anomaly_emits_both_severities(self) -> None:
        cfg = _cfg(tag_key="cpu-anomaly", is_anomaly=True, default_options="p90/60/2")
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(cpu_anomaly="Average/300/3"), [cfg])

        assert [a.name for a in desired] == [
            "AutoAlarm-EC2-i-0abc123-cpu-anomaly-Warning",
            "AutoAlarm-EC2-i-0abc123-cpu-anomaly-Critical",
        ]
        assert all(a.variant is AlarmVariant.ANOMALY for a in desired)
        assert desired[0].options.statistic == "Average"

    def test_anomaly_statistic_marker_suppresses(self) -> None:
        cfg = _cfg(tag_key="cpu-anomaly", is_anomaly=True, default_options="p90/60/2")
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(cpu_anomaly="disabled"), [cfg])
        assert desired == []

    def test_malformed_tag_still_builds_from_defaults(self) -> None:
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(cpu="lots/of/junk"), [_cfg()])
        assert [a.threshold for a in desired] == [80, 90]

    def test_prometheus_query_carried(self) -> None:
        desired = AlarmSpecBuilder().build(
            RESOURCE, _tags(), [_cfg(prometheus_query='up{instance_id="$resource_id"}')]
        )
        assert desired[0].prometheus_query == 'up{instance_id="$resource_id"}'

    def test_ec2_defaults(self) -> None:
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(), EC2_CONFIGS)
        names = {a.name for a in desired}
        assert "AutoAlarm-EC2-i-0abc123-cpu-Warning" in names
        assert "AutoAlarm-EC2-i-0abc123-status-check-Critical" in names
        # status-check has no warning threshold by default
        assert "AutoAlarm-EC2-i-0abc123-status-check-Warning" not in names
        # anomaly alarms are opt-in
        assert not any("anomaly" in n for n in names)

    def test_custom_alarm_prefix(self) -> None:
        desired = AlarmSpecBuilder("Team").build(RESOURCE, _tags(), [_cfg()])
        assert desired[0].name == "Team-EC2-i-0abc123-cpu-Warning"


class TestPerDimension:
    STORAGE = _cfg(
        tag_key="storage",
        metric_name="disk_used_percent",
        metric_namespace="CWAgent",
        default_options="80/90/60/5/Maximum",
        dimension_key="path",
    )

    @staticmethod
    def _stream(path: str) -> tuple[Dimension, ...]:
        return (
            Dimension(name="InstanceId", value="i-0abc123"),
            Dimension(name="path", value=path),
            Dimension(name="device", value="nvme0n1p1"),
            Dimension(name="fstype", value="xfs"),
        )

    def test_one_alarm_per_path_and_severity(self) -> None:
        discovered = {"storage": [self._stream("/var"), self._stream("/")]}
        desired = AlarmSpecBuilder().build(RESOURCE, _tags(), [self.STORAGE], discovered)

        assert [a.name for a in desired] == [
            "AutoAlarm-EC2-i-0abc123-storage-/-Warning",
            "AutoAlarm-EC2-i-0abc123-storage-/-Critical",
            "AutoAlarm-EC2-i-0abc123-storage-/var-Warning",
            "AutoAlarm-EC2-i-0abc123-storage-/var-Critical",
        ]
        assert desired[0].dimensions == list(self._stream("/"))
        assert {a.threshold for a in desired} == {80, 90}

    def test_tag_overrides_apply_to_every_path(self) -> None:
        discovered = {"storage": [self._stream("/"), self._stream("/data")]}
        desired = AlarmSpecBuilder().build(
            RESOURCE, _tags(storage="-/97"), [self.STORAGE], discovered
        )
        assert [a.name for a in desired] == [
            "AutoAlarm-EC2-i-0abc123-storage-/-Critical",
            "AutoAlarm-EC2-i-0abc123-storage-/data-Critical",
        ]
        assert all(a.threshold == 97 for a in desired)

    def test_nothing_discovered_builds_nothing(self) -> None:
        assert AlarmSpecBuilder().build(RESOURCE, _tags(), [self.STORAGE]) == []
        assert AlarmSpecBuilder().build(RESOURCE, _tags(), [self.STORAGE], {"storage": []}) == []

    def test_stream_without_key_dimension_skipped(self) -> None:
        bare = (Dimension(name="InstanceId", value="i-0abc123"),)
        desired = AlarmSpecBuilder().build(
            RESOURCE, _tags(), [self.STORAGE], {"storage": [bare]}
        )
        assert desired == []


class TestDefaultTables:
    @pytest.mark.parametrize(
        "config",
        [
            c
            for t in DEFAULT_RESOURCE_TYPES
            for c in t.configs
            if c.default_create and c.dimension_key is None
        ],
        ids=lambda c: c.tag_key,
    )
    def test_default_config_builds_without_tag(self, config: MetricAlarmConfig) -> None:
        assert AlarmSpecBuilder().build(RESOURCE, _tags(), [config]) != []
