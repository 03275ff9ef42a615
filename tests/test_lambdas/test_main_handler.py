"""Tests for the Lambda entrypoints — wiring, deadline and response shape."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.alarms.realarm import SweepResult
from src.core.config import EngineConfig, PrometheusConfig, Settings, reset_settings
from src.core.types import BatchItemFailure, BatchResult, InvocationContext
from src.lambdas import main_handler, realarm_handler


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    reset_settings()


def _lambda_context(remaining_ms: int = 60_000) -> SimpleNamespace:
    return SimpleNamespace(
        aws_request_id="req-123",
        get_remaining_time_in_millis=lambda: remaining_ms,
    )


class TestInvocationContext:
    def test_deadline_leaves_margin(self) -> None:
        settings = Settings(engine=EngineConfig(deadline_margin_secs=5))
        ctx = main_handler.invocation_context(_lambda_context(30_000), settings)
        assert ctx.request_id == "req-123"
        remaining = ctx.remaining()
        assert remaining is not None
        assert 24 < remaining <= 25

    def test_nearly_expired_invocation(self) -> None:
        settings = Settings(engine=EngineConfig(deadline_margin_secs=5))
        ctx = main_handler.invocation_context(_lambda_context(1_000), settings)
        assert ctx.expired

    def test_no_context_is_unbounded(self) -> None:
        ctx = main_handler.invocation_context(None, Settings())
        assert ctx.remaining() is None


class TestHandler:
    def test_returns_partial_batch_response(self) -> None:
        result = BatchResult(failures=[BatchItemFailure(item_identifier="m-2")])
        event = {"Records": [{"messageId": "m-1"}, {"messageId": "m-2"}]}

        with (
            patch.object(main_handler, "setup_logging"),
            patch.object(
                main_handler, "process_messages", AsyncMock(return_value=result)
            ) as process,
        ):
            response = main_handler.handler(event, _lambda_context())

        assert response == {"batchItemFailures": [{"itemIdentifier": "m-2"}]}
        messages, ctx, _ = process.await_args.args
        assert messages == event["Records"]
        assert isinstance(ctx, InvocationContext)
        assert ctx.request_id == "req-123"

    def test_empty_event(self) -> None:
        with (
            patch.object(main_handler, "setup_logging"),
            patch.object(
                main_handler, "process_messages", AsyncMock(return_value=BatchResult())
            ),
        ):
            assert main_handler.handler({}, None) == {"batchItemFailures": []}


class TestProcessMessages:
    async def test_end_to_end_with_mocked_backends(self) -> None:
        cloudwatch = MagicMock()
        cloudwatch.__aenter__ = AsyncMock(return_value=cloudwatch)
        cloudwatch.__aexit__ = AsyncMock(return_value=None)
        cloudwatch.list_alarm_names = AsyncMock(return_value=[])
        cloudwatch.put_metric_alarm = AsyncMock()
        cloudwatch.put_anomaly_detector = AsyncMock()
        cloudwatch.delete_alarms = AsyncMock()

        body = {
            "source": "aws.tag",
            "detail-type": "Tag Change on Resource",
            "resources": ["arn:aws:sqs:us-east-1:123456789012:orders"],
            "detail": {"tags": {"autoalarm:enabled": "true"}},
        }
        messages = [
            {"messageId": "m-1", "body": json.dumps(body)},
            {"messageId": "m-2", "body": "garbage"},
        ]

        with (
            patch.object(main_handler, "CloudWatchClient", return_value=cloudwatch),
            patch.object(main_handler, "TagFetcher"),
        ):
            result = await main_handler.process_messages(
                messages, InvocationContext(), Settings()
            )

        assert result.failures == []
        cloudwatch.list_alarm_names.assert_awaited_once_with("AutoAlarm-SQS-orders-")
        assert cloudwatch.put_metric_alarm.await_count > 0

    async def test_amp_client_connected_when_workspace_set(self) -> None:
        cloudwatch = MagicMock()
        cloudwatch.__aenter__ = AsyncMock(return_value=cloudwatch)
        cloudwatch.__aexit__ = AsyncMock(return_value=None)
        amp = MagicMock()
        amp.connect = AsyncMock()
        amp.close = AsyncMock()
        settings = Settings(prometheus=PrometheusConfig(workspace_id="ws-1"))

        with (
            patch.object(main_handler, "CloudWatchClient", return_value=cloudwatch),
            patch.object(main_handler, "TagFetcher"),
            patch.object(main_handler, "AmpClient", return_value=amp),
        ):
            result = await main_handler.process_messages([], InvocationContext(), settings)

        assert result.failures == []
        amp.connect.assert_awaited_once()
        amp.close.assert_awaited_once()


class TestRealarmHandler:
    def test_reports_counts(self) -> None:
        swept = SweepResult(reset=["a", "b"], skipped=["scale"])
        with (
            patch.object(main_handler, "setup_logging"),
            patch.object(realarm_handler, "sweep", AsyncMock(return_value=swept)),
        ):
            assert realarm_handler.handler({}, _lambda_context()) == {"reset": 2, "skipped": 1}
