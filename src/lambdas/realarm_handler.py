"""Scheduled Lambda entrypoint for the re-alarm sweep."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.alarms.cloudwatch import CloudWatchClient
from src.alarms.realarm import ReAlarmSweeper, SweepResult
from src.core.config import Settings
from src.lambdas.main_handler import configure

logger = structlog.stdlib.get_logger()


async def sweep(settings: Settings) -> SweepResult:
    async with CloudWatchClient(settings.aws, settings.cloudwatch) as cloudwatch:
        return await ReAlarmSweeper(cloudwatch).sweep()


def handler(event: dict[str, Any], context: Any) -> dict[str, int]:
    settings = configure()
    logger.info("realarm_invoked", request_id=getattr(context, "aws_request_id", ""))
    result = asyncio.run(sweep(settings))
    return {
        "reset": len(result.reset),
        "skipped": len(result.skipped),
    }
