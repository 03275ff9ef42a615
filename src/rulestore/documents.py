"""Rule groups namespace documents — parse, dump and pure merge functions.

The backend stores each namespace as one YAML document and only supports
replacing it wholesale, with no concurrency token. Every mutation here is
therefore a pure ``merge(current, change) -> new`` function that is safe to
apply more than once; concurrent writers resolve as last-writer-wins.
"""

from __future__ import annotations

from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.rulestore.exceptions import NamespaceDocumentError


class PrometheusRule(BaseModel):
    """One alerting rule."""

    model_config = ConfigDict(populate_by_name=True)

    alert: str
    expr: str
    for_: str = Field(default="0m", alias="for")
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class RuleGroup(BaseModel):
    name: str
    rules: list[PrometheusRule] = Field(default_factory=list)

    def find_rule(self, alert: str) -> PrometheusRule | None:
        for rule in self.rules:
            if rule.alert == alert:
                return rule
        return None


class RuleGroupNamespace(BaseModel):
    """A capacity-bounded namespace holding several rule groups."""

    name: str
    groups: list[RuleGroup] = Field(default_factory=list)

    @property
    def rule_count(self) -> int:
        return sum(len(g.rules) for g in self.groups)

    def find_group(self, name: str) -> RuleGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None


# ── Serialisation ────────────────────────────────────────────────


def parse_namespace(name: str, data: str | bytes) -> RuleGroupNamespace:
    """Parse a namespace's YAML document."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    try:
        raw = yaml.safe_load(data) or {}
    except yaml.YAMLError as exc:
        raise NamespaceDocumentError(f"Namespace {name} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise NamespaceDocumentError(f"Namespace {name} document is not a mapping")
    try:
        return RuleGroupNamespace(name=name, groups=raw.get("groups") or [])
    except ValidationError as exc:
        raise NamespaceDocumentError(f"Namespace {name} has invalid groups: {exc}") from exc


def _rule_to_dict(rule: PrometheusRule) -> dict[str, Any]:
    out: dict[str, Any] = {"alert": rule.alert, "expr": rule.expr, "for": rule.for_}
    if rule.labels:
        out["labels"] = dict(rule.labels)
    if rule.annotations:
        out["annotations"] = dict(rule.annotations)
    return out


def dump_namespace(namespace: RuleGroupNamespace) -> str:
    """Render a namespace as the YAML the backend expects."""
    doc = {
        "groups": [
            {"name": g.name, "rules": [_rule_to_dict(r) for r in g.rules]}
            for g in namespace.groups
        ],
    }
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)


# ── Merge functions ──────────────────────────────────────────────


def placeholder_namespace(name: str, group: str, alert: str) -> RuleGroupNamespace:
    """A namespace holding a single never-firing rule.

    The backend rejects documents without any rule group.
    """
    return RuleGroupNamespace(
        name=name,
        groups=[
            RuleGroup(
                name=group,
                rules=[PrometheusRule(alert=alert, expr="vector(1) < 0", for_="0m")],
            ),
        ],
    )


def _same_rule(a: PrometheusRule, b: PrometheusRule) -> bool:
    return (a.expr, a.for_, a.labels, a.annotations) == (b.expr, b.for_, b.labels, b.annotations)


def merge_rule(
    namespace: RuleGroupNamespace, group_name: str, rule: PrometheusRule
) -> tuple[RuleGroupNamespace, bool]:
    """Insert or replace ``rule`` in ``group_name``.

    Returns:
        (new namespace, changed). ``changed`` is False when an identical
        rule is already present, so callers can skip a redundant write.
    """
    updated = namespace.model_copy(deep=True)
    group = updated.find_group(group_name)

    if group is None:
        updated.groups.append(RuleGroup(name=group_name, rules=[rule]))
        return updated, True

    for index, existing in enumerate(group.rules):
        if existing.alert == rule.alert:
            if _same_rule(existing, rule):
                return namespace, False
            group.rules[index] = rule
            return updated, True

    group.rules.append(rule)
    return updated, True


def remove_rules(
    namespace: RuleGroupNamespace,
    group_name: str,
    keep: set[str] | None = None,
) -> tuple[RuleGroupNamespace, bool]:
    """Drop rules of ``group_name`` whose alert is not in ``keep``.

    ``keep=None`` drops the whole group. Groups left empty are removed.
    """
    group = namespace.find_group(group_name)
    if group is None:
        return namespace, False

    kept_rules = [] if keep is None else [r for r in group.rules if r.alert in keep]
    if len(kept_rules) == len(group.rules):
        return namespace, False

    updated = namespace.model_copy(deep=True)
    groups: list[RuleGroup] = []
    for g in updated.groups:
        if g.name != group_name:
            groups.append(g)
        elif kept_rules:
            groups.append(RuleGroup(name=g.name, rules=[r.model_copy() for r in kept_rules]))
    updated.groups = groups
    return updated, True
