"""SQS-triggered Lambda entrypoint for the alarm engine.

Returns the partial batch response, so only failed records are redelivered::

    {"batchItemFailures": [{"itemIdentifier": "<messageId>"}, ...]}
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from src.alarms.cloudwatch import CloudWatchClient
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.types import BatchResult, EventRecord, InvocationContext
from src.dispatch.dispatcher import BatchDispatcher
from src.dispatch.factory import create_dispatcher
from src.resources.tags import TagFetcher
from src.rulestore.client import AmpClient

logger = structlog.stdlib.get_logger()

_logging_configured = False


def configure() -> Settings:
    """Settings plus one-time logging setup per execution environment."""
    global _logging_configured  # noqa: PLW0603
    settings = get_settings()
    if not _logging_configured:
        setup_logging(settings.logging.level, settings.logging.format)
        _logging_configured = True
    return settings


def invocation_context(context: Any, settings: Settings) -> InvocationContext:
    """Deadline is the Lambda's remaining time minus a safety margin."""
    if context is None:
        return InvocationContext()
    remaining = context.get_remaining_time_in_millis() / 1000.0
    return InvocationContext.with_budget(
        getattr(context, "aws_request_id", ""),
        remaining - settings.engine.deadline_margin_secs,
    )


async def _with_dispatcher(
    settings: Settings,
    run: Callable[[BatchDispatcher], Awaitable[BatchResult]],
) -> BatchResult:
    amp: AmpClient | None = None
    if settings.prometheus.enabled:
        amp = AmpClient(settings.aws, settings.prometheus)
        await amp.connect()
    try:
        async with CloudWatchClient(settings.aws, settings.cloudwatch) as cloudwatch:
            dispatcher = create_dispatcher(
                settings,
                alarm_store=cloudwatch,
                tag_source=TagFetcher(settings.aws),
                rule_namespaces=amp,
                metric_source=cloudwatch,
            )
            return await run(dispatcher)
    finally:
        if amp is not None:
            await amp.close()


async def process_messages(
    messages: Sequence[dict[str, Any]],
    ctx: InvocationContext,
    settings: Settings,
) -> BatchResult:
    """Parse and process one batch of raw SQS records."""

    async def run(dispatcher: BatchDispatcher) -> BatchResult:
        return await dispatcher.process_messages(messages, ctx)

    return await _with_dispatcher(settings, run)


async def process_records(
    records: Sequence[EventRecord],
    ctx: InvocationContext,
    settings: Settings,
) -> BatchResult:
    """Process already-parsed records (operator CLI)."""

    async def run(dispatcher: BatchDispatcher) -> BatchResult:
        return await dispatcher.process_batch(records, ctx)

    return await _with_dispatcher(settings, run)


def handler(event: dict[str, Any], context: Any) -> dict[str, list[dict[str, str]]]:
    settings = configure()
    ctx = invocation_context(context, settings)
    messages = event.get("Records") or []
    logger.info(
        "invocation_started",
        request_id=ctx.request_id,
        records=len(messages),
        remaining_secs=ctx.remaining(),
        prometheus_enabled=settings.prometheus.enabled,
    )
    result = asyncio.run(process_messages(messages, ctx, settings))
    return result.to_response()
