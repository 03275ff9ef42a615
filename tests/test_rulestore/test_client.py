"""Tests for the Amazon Managed Prometheus client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from src.core.config import AwsConfig, PrometheusConfig, reset_settings
from src.rulestore.client import AmpClient
from src.rulestore.exceptions import RuleStoreError, RuleStoreUnavailableError


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    reset_settings()


@pytest.fixture()
def mock_sdk() -> MagicMock:
    return MagicMock()


@pytest.fixture()
async def client(mock_sdk: MagicMock) -> AmpClient:
    with patch("src.rulestore.client.make_client", return_value=mock_sdk):
        c = AmpClient(AwsConfig(), PrometheusConfig(workspace_id="ws-1"))
        await c.connect()
        yield c  # type: ignore[misc]
        await c.close()


class TestConnect:
    async def test_requires_workspace(self) -> None:
        c = AmpClient(AwsConfig(), PrometheusConfig(workspace_id=""))
        with pytest.raises(RuleStoreUnavailableError):
            await c.connect()

    def test_sdk_before_connect_raises(self) -> None:
        c = AmpClient(AwsConfig(), PrometheusConfig(workspace_id="ws-1"))
        with pytest.raises(RuleStoreError, match="not connected"):
            _ = c.sdk

    async def test_context_manager(self, mock_sdk: MagicMock) -> None:
        with patch("src.rulestore.client.make_client", return_value=mock_sdk) as make:
            async with AmpClient(AwsConfig(), PrometheusConfig(workspace_id="ws-1")) as c:
                assert c.sdk is mock_sdk
            make.assert_called_once()
            assert make.call_args.args[0] == "amp"
        with pytest.raises(RuleStoreError):
            _ = c.sdk


class TestNamespaces:
    async def test_list_filters_by_prefix(self, client: AmpClient, mock_sdk: MagicMock) -> None:
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"ruleGroupsNamespaces": [{"name": "AutoAlarm-EC2"}, {"name": "AutoAlarm-EC2-1"}]},
            {"ruleGroupsNamespaces": [{"name": "Other"}]},
        ]
        mock_sdk.get_paginator.return_value = paginator

        names = await client.list_namespaces("AutoAlarm-EC2")

        assert names == ["AutoAlarm-EC2", "AutoAlarm-EC2-1"]
        mock_sdk.get_paginator.assert_called_once_with("list_rule_groups_namespaces")
        paginator.paginate.assert_called_once_with(workspaceId="ws-1", name="AutoAlarm-EC2")

    async def test_describe_decodes_bytes(self, client: AmpClient, mock_sdk: MagicMock) -> None:
        mock_sdk.describe_rule_groups_namespace.return_value = {
            "ruleGroupsNamespace": {"name": "n", "data": b"groups: []\n"},
        }
        assert await client.describe_namespace("n") == "groups: []\n"
        mock_sdk.describe_rule_groups_namespace.assert_called_once_with(
            workspaceId="ws-1", name="n"
        )

    async def test_create_encodes_document(self, client: AmpClient, mock_sdk: MagicMock) -> None:
        await client.create_namespace("n", "groups: []\n")
        mock_sdk.create_rule_groups_namespace.assert_called_once_with(
            workspaceId="ws-1", name="n", data=b"groups: []\n"
        )

    async def test_put_encodes_document(self, client: AmpClient, mock_sdk: MagicMock) -> None:
        await client.put_namespace("n", "groups: []\n")
        mock_sdk.put_rule_groups_namespace.assert_called_once_with(
            workspaceId="ws-1", name="n", data=b"groups: []\n"
        )

    async def test_sdk_error_wrapped(self, client: AmpClient, mock_sdk: MagicMock) -> None:
        mock_sdk.put_rule_groups_namespace.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}},
            "PutRuleGroupsNamespace",
        )
        with pytest.raises(RuleStoreError, match="put_rule_groups_namespace"):
            await client.put_namespace("n", "groups: []\n")
