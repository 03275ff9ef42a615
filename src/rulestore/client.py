"""Async wrapper around the boto3 Amazon Managed Prometheus (``amp``) client."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from types import TracebackType
from typing import Any, TypeVar

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.core.aws import make_client
from src.core.config import AwsConfig, PrometheusConfig, get_settings
from src.rulestore.exceptions import RuleStoreError, RuleStoreUnavailableError

logger = structlog.stdlib.get_logger()

T = TypeVar("T")


class AmpClient:
    """Rule groups namespace operations for one Prometheus workspace.

    Every method is a single network round-trip. Retries, timeouts and
    capacity management live in RuleStoreManager.
    """

    def __init__(
        self,
        aws_config: AwsConfig | None = None,
        config: PrometheusConfig | None = None,
    ) -> None:
        settings = get_settings()
        self._aws = aws_config or settings.aws
        self._config = config or settings.prometheus
        self._sdk: Any | None = None

    async def connect(self) -> None:
        if not self._config.enabled:
            raise RuleStoreUnavailableError("No Prometheus workspace configured")
        self._sdk = await asyncio.to_thread(make_client, "amp", self._aws)
        logger.debug("amp_client_connected", workspace_id=self.workspace_id)

    async def close(self) -> None:
        self._sdk = None

    async def __aenter__(self) -> AmpClient:
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
    def workspace_id(self) -> str:
        return self._config.workspace_id

    @property
    def sdk(self) -> Any:
        if self._sdk is None:
            raise RuleStoreError("Client not connected. Call connect() first.")
        return self._sdk

    async def _call(self, action: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise RuleStoreError(f"AMP {action} failed: {exc}") from exc

    def _list_namespaces(self, prefix: str) -> list[str]:
        paginator = self.sdk.get_paginator("list_rule_groups_namespaces")
        names: list[str] = []
        for page in paginator.paginate(workspaceId=self.workspace_id, name=prefix):
            names.extend(ns["name"] for ns in page.get("ruleGroupsNamespaces", []))
        return names

    async def list_namespaces(self, prefix: str) -> list[str]:
        """Names of every namespace whose name starts with ``prefix``."""
        names = await self._call("list_rule_groups_namespaces", self._list_namespaces, prefix)
        return [n for n in names if n.startswith(prefix)]

    async def describe_namespace(self, name: str) -> str:
        """The namespace's YAML rule document."""
        resp = await self._call(
            "describe_rule_groups_namespace",
            self.sdk.describe_rule_groups_namespace,
            workspaceId=self.workspace_id,
            name=name,
        )
        data = resp["ruleGroupsNamespace"]["data"]
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    async def create_namespace(self, name: str, document: str) -> None:
        await self._call(
            "create_rule_groups_namespace",
            self.sdk.create_rule_groups_namespace,
            workspaceId=self.workspace_id,
            name=name,
            data=document.encode("utf-8"),
        )
        logger.info("rule_namespace_created", namespace=name)

    async def put_namespace(self, name: str, document: str) -> None:
        """Replace the namespace's whole document."""
        await self._call(
            "put_rule_groups_namespace",
            self.sdk.put_rule_groups_namespace,
            workspaceId=self.workspace_id,
            name=name,
            data=document.encode("utf-8"),
        )
        logger.info("rule_namespace_written", namespace=name)
