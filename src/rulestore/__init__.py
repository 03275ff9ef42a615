"""Alternate rule-store backend (Amazon Managed Prometheus rule groups)."""

from src.rulestore.client import AmpClient
from src.rulestore.documents import (
    PrometheusRule,
    RuleGroup,
    RuleGroupNamespace,
    dump_namespace,
    merge_rule,
    parse_namespace,
    remove_rules,
)
from src.rulestore.exceptions import (
    NamespaceDocumentError,
    RetryExhaustedError,
    RuleStoreError,
    RuleStoreUnavailableError,
)
from src.rulestore.manager import RuleStoreManager
from src.rulestore.rules import rule_for_alarm, supports_rule

__all__ = [
    "AmpClient",
    "NamespaceDocumentError",
    "PrometheusRule",
    "RetryExhaustedError",
    "RuleGroup",
    "RuleGroupNamespace",
    "RuleStoreError",
    "RuleStoreManager",
    "RuleStoreUnavailableError",
    "dump_namespace",
    "merge_rule",
    "parse_namespace",
    "remove_rules",
    "rule_for_alarm",
    "supports_rule",
]
