"""Rule-store manager — capacity-bounded namespace allocation with bounded retry.

Namespaces under one root are named ``<root>``, ``<root>-1``, ``<root>-2``...
and each holds at most ``namespace_capacity`` rules. Documents are read,
merged and written back whole; within one process writes under the same
root are serialised, across processes the last writer wins.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import structlog

from src.core.config import PrometheusConfig, get_settings
from src.core.types import DesiredAlarm, InvocationContext
from src.rulestore.documents import (
    PrometheusRule,
    RuleGroupNamespace,
    dump_namespace,
    merge_rule,
    parse_namespace,
    placeholder_namespace,
    remove_rules,
)
from src.rulestore.exceptions import (
    NamespaceDocumentError,
    RetryExhaustedError,
    RuleStoreError,
    RuleStoreUnavailableError,
)
from src.rulestore.rules import rule_for_alarm, supports_rule

logger = structlog.stdlib.get_logger()

T = TypeVar("T")

# Errors that retrying cannot fix.
_TERMINAL_ERRORS = (RuleStoreUnavailableError, NamespaceDocumentError, RetryExhaustedError)


class RuleNamespaceStore(Protocol):
    """The subset of AmpClient the manager drives."""

    async def list_namespaces(self, prefix: str) -> list[str]: ...

    async def describe_namespace(self, name: str) -> str: ...

    async def create_namespace(self, name: str, document: str) -> None: ...

    async def put_namespace(self, name: str, document: str) -> None: ...


def namespace_suffix(root: str, name: str) -> int | None:
    """Numeric suffix of ``name`` under ``root``; the bare root is 0.

    Returns None for names that merely share the prefix
    (``AutoAlarm-EC2Extra`` is not under ``AutoAlarm-EC2``).
    """
    if name == root:
        return 0
    match = re.fullmatch(re.escape(root) + r"-(\d+)", name)
    return int(match.group(1)) if match else None


class RuleStoreManager:
    def __init__(
        self,
        client: RuleNamespaceStore,
        config: PrometheusConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or get_settings().prometheus
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, root: str) -> asyncio.Lock:
        lock = self._locks.get(root)
        if lock is None:
            lock = self._locks[root] = asyncio.Lock()
        return lock

    # ── Bounded retry ────────────────────────────────────────────

    async def _retry(
        self,
        action: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        ctx: InvocationContext | None = None,
    ) -> T:
        """Run one backend call with a fixed attempt count and fixed delay.

        Each attempt is bounded by ``min(call_timeout, remaining deadline)``;
        a timeout counts as a retryable failure.
        """
        attempts = max(self._config.retry_attempts, 1)
        last_exc: BaseException | None = None

        for attempt in range(1, attempts + 1):
            timeout = self._config.call_timeout_secs
            if ctx is not None:
                remaining = ctx.remaining()
                if remaining is not None:
                    if remaining <= 0:
                        raise RetryExhaustedError(
                            f"{action}: invocation deadline reached after {attempt - 1} attempt(s)"
                        ) from last_exc
                    timeout = min(timeout, remaining)
            try:
                return await asyncio.wait_for(fn(*args), timeout=timeout)
            except _TERMINAL_ERRORS:
                raise
            except (RuleStoreError, TimeoutError) as exc:
                last_exc = exc
                logger.warning(
                    "rule_store_call_failed",
                    action=action,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(exc) or type(exc).__name__,
                )
                if attempt < attempts:
                    await asyncio.sleep(self._config.retry_delay_secs)

        raise RetryExhaustedError(f"{action} failed after {attempts} attempt(s)") from last_exc

    # ── Reads ────────────────────────────────────────────────────

    async def _load_namespaces(
        self, root: str, ctx: InvocationContext | None
    ) -> tuple[list[RuleGroupNamespace], int]:
        """Describe every namespace under ``root`` in ascending suffix order.

        Returns:
            (documents, highest suffix seen or -1 when there are none).
        """
        names = await self._retry("list_namespaces", self._client.list_namespaces, root, ctx=ctx)
        candidates = sorted(
            (suffix, name)
            for name in names
            if (suffix := namespace_suffix(root, name)) is not None
        )
        max_suffix = candidates[-1][0] if candidates else -1

        docs: list[RuleGroupNamespace] = []
        for _, name in candidates:
            data = await self._retry(
                "describe_namespace", self._client.describe_namespace, name, ctx=ctx
            )
            docs.append(parse_namespace(name, data))
        return docs, max_suffix

    def _choose_target(
        self, docs: list[RuleGroupNamespace], group_name: str, alert: str
    ) -> RuleGroupNamespace | None:
        capacity = self._config.namespace_capacity

        # An existing rule is replaced where it lives, whatever the capacity.
        # A group can span namespaces once the one holding it fills up.
        for doc in docs:
            group = doc.find_group(group_name)
            if group is not None and group.find_rule(alert) is not None:
                return doc

        for doc in docs:
            if doc.find_group(group_name) is not None and doc.rule_count < capacity:
                return doc

        for doc in docs:
            if doc.rule_count < capacity:
                return doc
        return None

    def _placeholder(self, name: str) -> RuleGroupNamespace:
        return placeholder_namespace(
            name, self._config.placeholder_group, self._config.placeholder_rule
        )

    # ── Writes ───────────────────────────────────────────────────

    async def put_rule(
        self,
        root: str,
        group_name: str,
        rule: PrometheusRule,
        *,
        ctx: InvocationContext | None = None,
    ) -> bool:
        """Insert or replace ``rule`` in ``group_name`` under ``root``.

        Returns:
            True if a namespace was written, False if the rule was already
            present unchanged.
        """
        async with self._lock_for(root):
            docs, max_suffix = await self._load_namespaces(root, ctx)
            target = self._choose_target(docs, group_name, rule.alert)

            if target is None:
                name = root if max_suffix < 0 else f"{root}-{max_suffix + 1}"
                seeded, _ = merge_rule(self._placeholder(name), group_name, rule)
                await self._retry(
                    "create_namespace",
                    self._client.create_namespace,
                    name,
                    dump_namespace(seeded),
                    ctx=ctx,
                )
                logger.info(
                    "rule_namespace_allocated",
                    root=root,
                    namespace=name,
                    full_namespaces=len(docs),
                )
                return True

            merged, changed = merge_rule(target, group_name, rule)
            if not changed:
                logger.debug("rule_unchanged", namespace=target.name, rule=rule.alert)
                return False

            await self._retry(
                "put_namespace",
                self._client.put_namespace,
                target.name,
                dump_namespace(merged),
                ctx=ctx,
            )
            logger.info(
                "rule_upserted",
                namespace=target.name,
                group=group_name,
                rule=rule.alert,
                rule_count=merged.rule_count,
            )
            return True

    async def upsert_rule(
        self,
        root: str,
        group_name: str,
        rule_name: str,
        expression: str,
        for_duration: str,
        severity: str,
        *,
        ctx: InvocationContext | None = None,
    ) -> bool:
        rule = PrometheusRule(
            alert=rule_name,
            expr=expression,
            for_=for_duration,
            labels={"severity": severity},
        )
        return await self.put_rule(root, group_name, rule, ctx=ctx)

    async def delete_rules(
        self,
        root: str,
        group_name: str,
        keep: set[str] | None = None,
        *,
        ctx: InvocationContext | None = None,
    ) -> int:
        """Remove ``group_name``'s rules not in ``keep`` from every namespace.

        ``keep=None`` removes the whole group. A namespace left without
        groups is re-seeded with the placeholder.

        Returns:
            Number of namespaces written.
        """
        written = 0
        async with self._lock_for(root):
            docs, _ = await self._load_namespaces(root, ctx)
            for doc in docs:
                updated, changed = remove_rules(doc, group_name, keep)
                if not changed:
                    continue
                if not updated.groups:
                    updated = self._placeholder(doc.name)
                await self._retry(
                    "put_namespace",
                    self._client.put_namespace,
                    doc.name,
                    dump_namespace(updated),
                    ctx=ctx,
                )
                written += 1
                logger.info(
                    "rules_deleted",
                    namespace=doc.name,
                    group=group_name,
                    removed=doc.rule_count - updated.rule_count,
                )
        return written

    async def sync_alarms(
        self,
        root: str,
        group_name: str,
        alarms: list[DesiredAlarm],
        *,
        ctx: InvocationContext | None = None,
    ) -> list[str]:
        """Converge ``group_name`` onto the rules for ``alarms``.

        Upserts run before stale rules are removed. Alarms with no PromQL
        form are ignored here; the caller keeps them on CloudWatch.

        Returns:
            Names of the rules now present.
        """
        rules = [rule_for_alarm(a) for a in alarms if supports_rule(a)]
        for rule in rules:
            await self.put_rule(root, group_name, rule, ctx=ctx)
        names = [r.alert for r in rules]
        await self.delete_rules(root, group_name, keep=set(names), ctx=ctx)
        return names
