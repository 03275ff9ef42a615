"""Alarm engine — one generic tags → desired set → backend pipeline.

Every resource type shares this code; a ResourceAlarmHandler binds it to one
ResourceType so the dispatcher can route records by identifier.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from typing import Protocol

import structlog

from src.alarms.builder import TARGET_TAG, AlarmSpecBuilder, is_enabled, wants_alarm
from src.alarms.reconciler import AlarmReconciler
from src.core.types import (
    AlarmBackend,
    DesiredAlarm,
    Dimension,
    EventKind,
    EventRecord,
    InvocationContext,
    MetricAlarmConfig,
    RecordContext,
    ResourceRef,
)
from src.resources.registry import ResourceType
from src.rulestore.manager import RuleStoreManager
from src.rulestore.rules import supports_rule

logger = structlog.stdlib.get_logger()

LIVE_STATES = frozenset({"running", "pending"})
DEAD_STATES = frozenset({"terminated", "shutting-down"})


class Action(StrEnum):
    RECONCILE = "reconcile"
    RETIRE = "retire"
    IGNORE = "ignore"


def action_for(record: EventRecord) -> Action:
    """What a record asks the engine to do with its resource."""
    if record.event_kind is EventKind.DELETE:
        return Action.RETIRE
    if record.event_kind is EventKind.STATE_CHANGE:
        if record.state in LIVE_STATES:
            return Action.RECONCILE
        if record.state in DEAD_STATES:
            return Action.RETIRE
        return Action.IGNORE
    return Action.RECONCILE


class TagSource(Protocol):
    async def fetch(self, resource: ResourceRef, tag_api: str) -> dict[str, str]: ...


class MetricSource(Protocol):
    async def list_metric_dimensions(
        self,
        namespace: str,
        metric_name: str,
        dimensions: Iterable[Dimension],
    ) -> list[tuple[Dimension, ...]]: ...


class AlarmEngine:
    """Converges a resource's alarms on CloudWatch and, optionally, the rule store.

    Alarms with a PromQL form go to the rule store when the resource's
    ``autoalarm:target`` tag selects Prometheus; everything else stays on
    CloudWatch. The backend not selected is cleaned up on every pass so a
    target switch retires what the old backend held.
    """

    def __init__(
        self,
        builder: AlarmSpecBuilder,
        reconciler: AlarmReconciler,
        tag_source: TagSource,
        rule_store: RuleStoreManager | None = None,
        default_backend: AlarmBackend = AlarmBackend.CLOUDWATCH,
        metric_source: MetricSource | None = None,
    ) -> None:
        self._builder = builder
        self._reconciler = reconciler
        self._tags = tag_source
        self._rule_store = rule_store
        self._default_backend = default_backend
        self._metrics = metric_source

    @property
    def builder(self) -> AlarmSpecBuilder:
        return self._builder

    @property
    def tag_source(self) -> TagSource:
        return self._tags

    def select_backend(self, tags: Mapping[str, str]) -> AlarmBackend:
        value = tags.get(TARGET_TAG)
        backend = self._default_backend
        if value is not None:
            matched = next(
                (b for b in AlarmBackend if b.lower() == value.strip().lower()), None
            )
            if matched is None:
                logger.warning("target_tag_invalid", value=value, fallback=backend)
            else:
                backend = matched
        if backend is AlarmBackend.PROMETHEUS and self._rule_store is None:
            logger.warning("prometheus_unavailable", fallback=AlarmBackend.CLOUDWATCH)
            return AlarmBackend.CLOUDWATCH
        return backend

    async def discover(
        self,
        resource: ResourceRef,
        tags: Mapping[str, str],
        configs: Iterable[MetricAlarmConfig],
    ) -> dict[str, Sequence[tuple[Dimension, ...]]]:
        """Dimension sets for the per-dimension configs that apply to ``resource``."""
        found: dict[str, Sequence[tuple[Dimension, ...]]] = {}
        if self._metrics is None or not is_enabled(tags):
            return found
        for config in configs:
            if config.dimension_key is None or not wants_alarm(config, tags):
                continue
            found[config.tag_key] = await self._metrics.list_metric_dimensions(
                config.metric_namespace, config.metric_name, resource.dimensions
            )
        return found

    @staticmethod
    def _group_name(prefix: str) -> str:
        return prefix.rstrip("-")

    async def reconcile(
        self, rctx: RecordContext, configs: Iterable[MetricAlarmConfig]
    ) -> list[DesiredAlarm]:
        resource = rctx.resource
        configs = list(configs)
        discovered = await self.discover(resource, rctx.tags, configs)
        desired = self._builder.build(resource, rctx.tags, configs, discovered)
        prefix = self._builder.prefix_for(resource)
        group = self._group_name(prefix)

        if rctx.backend is AlarmBackend.PROMETHEUS and self._rule_store is not None:
            as_rules = [a for a in desired if supports_rule(a)]
            on_cloudwatch = [a for a in desired if not supports_rule(a)]
            await self._rule_store.sync_alarms(
                resource.rule_root, group, as_rules, ctx=rctx.invocation
            )
            await self._reconciler.reconcile(prefix, on_cloudwatch)
        else:
            await self._reconciler.reconcile(prefix, desired)
            if self._rule_store is not None:
                await self._rule_store.delete_rules(
                    resource.rule_root, group, ctx=rctx.invocation
                )

        logger.info(
            "resource_reconciled",
            service=resource.service,
            backend=rctx.backend,
            desired=len(desired),
        )
        return desired

    async def retire(self, rctx: RecordContext) -> None:
        """Remove every alarm and rule the resource has."""
        resource = rctx.resource
        prefix = self._builder.prefix_for(resource)
        await self._reconciler.retire(prefix)
        if self._rule_store is not None:
            await self._rule_store.delete_rules(
                resource.rule_root, self._group_name(prefix), ctx=rctx.invocation
            )
        logger.info("resource_retired", service=resource.service)


class ResourceAlarmHandler:
    """Dispatcher handler for one resource type."""

    def __init__(self, resource_type: ResourceType, engine: AlarmEngine) -> None:
        self._type = resource_type
        self._engine = engine

    @property
    def resource_type(self) -> ResourceType:
        return self._type

    def matches(self, record: EventRecord) -> bool:
        return self._type.matches(record.resource_identifier)

    async def handle(self, record: EventRecord, ctx: InvocationContext) -> None:
        action = action_for(record)
        if action is Action.IGNORE:
            logger.info("record_ignored", event_kind=record.event_kind, state=record.state)
            return

        resource = self._type.resolve(
            record.resource_identifier, self._engine.builder.alarm_prefix
        )

        if action is Action.RETIRE:
            rctx = RecordContext(
                record_id=record.source_id,
                event_kind=record.event_kind,
                resource=resource,
                invocation=ctx,
            )
            await self._engine.retire(rctx)
            return

        # Tag-change events carry the full post-change map; others need a lookup.
        tags = record.tags or await self._engine.tag_source.fetch(resource, self._type.tag_api)
        rctx = RecordContext(
            record_id=record.source_id,
            event_kind=record.event_kind,
            resource=resource,
            tags=tags,
            backend=self._engine.select_backend(tags),
            invocation=ctx,
        )
        await self._engine.reconcile(rctx, self._type.configs)
