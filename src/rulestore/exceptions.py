"""Rule-store (managed Prometheus) exceptions."""

from __future__ import annotations


class RuleStoreError(Exception):
    """Base exception for rule-store errors."""


class RuleStoreUnavailableError(RuleStoreError):
    """No Prometheus workspace is configured."""


class NamespaceDocumentError(RuleStoreError):
    """A rule groups namespace document could not be parsed."""


class RetryExhaustedError(RuleStoreError):
    """A rule-store call kept failing for every allowed attempt."""
