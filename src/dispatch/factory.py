"""Convenience factory for wiring the dispatch stack."""

from __future__ import annotations

from src.alarms.builder import AlarmSpecBuilder
from src.alarms.reconciler import AlarmReconciler, MetricAlarmStore
from src.core.config import Settings
from src.dispatch.dispatcher import BatchDispatcher
from src.dispatch.engine import AlarmEngine, MetricSource, ResourceAlarmHandler, TagSource
from src.resources.registry import DEFAULT_RESOURCE_TYPES, ResourceType
from src.rulestore.manager import RuleNamespaceStore, RuleStoreManager


def create_dispatcher(
    settings: Settings,
    alarm_store: MetricAlarmStore,
    tag_source: TagSource,
    rule_namespaces: RuleNamespaceStore | None = None,
    metric_source: MetricSource | None = None,
    resource_types: tuple[ResourceType, ...] = DEFAULT_RESOURCE_TYPES,
) -> BatchDispatcher:
    """Build a dispatcher with one handler per resource type, in priority order.

    The rule store is wired in only when ``rule_namespaces`` is given;
    per-dimension alarms (EC2 storage) need ``metric_source``.
    """
    rule_store: RuleStoreManager | None = None
    if rule_namespaces is not None:
        rule_store = RuleStoreManager(rule_namespaces, settings.prometheus)

    engine = AlarmEngine(
        builder=AlarmSpecBuilder(settings.cloudwatch.alarm_prefix),
        reconciler=AlarmReconciler(alarm_store),
        tag_source=tag_source,
        rule_store=rule_store,
        default_backend=settings.engine.default_backend,
        metric_source=metric_source,
    )
    handlers = [ResourceAlarmHandler(t, engine) for t in resource_types]
    return BatchDispatcher(handlers, max_concurrency=settings.engine.max_concurrency)
