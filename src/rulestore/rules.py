"""Translate desired alarms into Prometheus alerting rules."""

from __future__ import annotations

from string import Template

from src.core.types import AlarmVariant, ComparisonOperator, DesiredAlarm
from src.rulestore.documents import PrometheusRule
from src.tags.grammar import format_number

_PROMQL_OPERATORS: dict[ComparisonOperator, str] = {
    ComparisonOperator.GREATER_THAN: ">",
    ComparisonOperator.GREATER_THAN_OR_EQUAL: ">=",
    ComparisonOperator.LESS_THAN: "<",
    ComparisonOperator.LESS_THAN_OR_EQUAL: "<=",
}


def format_duration(seconds: int) -> str:
    """Prometheus duration string: whole minutes as ``Nm``, else ``Ns``."""
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


def supports_rule(alarm: DesiredAlarm) -> bool:
    """Whether ``alarm`` can be expressed as a PromQL threshold rule."""
    return (
        alarm.prometheus_query is not None
        and alarm.variant is AlarmVariant.STATIC
        and alarm.threshold is not None
        and alarm.options.comparison_operator in _PROMQL_OPERATORS
    )


def rule_for_alarm(alarm: DesiredAlarm) -> PrometheusRule:
    """Alerting rule equivalent to a static ``alarm``.

    Raises:
        ValueError: if the alarm has no PromQL form (see ``supports_rule``).
    """
    threshold = alarm.threshold
    if threshold is None or not supports_rule(alarm):
        raise ValueError(f"Alarm {alarm.name} has no PromQL form")

    query = Template(alarm.prometheus_query or "").safe_substitute(
        resource_id=alarm.resource_id
    )
    op = _PROMQL_OPERATORS[alarm.options.comparison_operator]
    value = format_number(threshold)
    opts = alarm.options
    return PrometheusRule(
        alert=alarm.name,
        expr=f"{query} {op} {value}",
        for_=format_duration(opts.period * opts.evaluation_periods),
        labels={
            "severity": alarm.classification.value.lower(),
            "resource_id": alarm.resource_id,
        },
        annotations={
            "summary": (
                f"{alarm.metric_name} {op} {value} on {alarm.resource_id}"
            ),
        },
    )
