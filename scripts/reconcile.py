#!/usr/bin/env python3
"""Operator CLI — reconcile (or retire) the alarms of specific resources.

Runs the same pipeline as the Lambda, with live tag lookups.

Usage::

    python -m scripts.reconcile --arn arn:aws:sqs:us-east-1:123456789012:orders
    python -m scripts.reconcile --arn i-0abc123 --arn arn:aws:rds:us-east-1:123456789012:db:main
    python -m scripts.reconcile --arn i-0abc123 --retire
    python -m scripts.reconcile --arn i-0abc123 --config config/settings.yaml --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.core.types import EventKind, EventRecord, InvocationContext
from src.lambdas.main_handler import process_records
from src.resources.registry import ResourceRegistry

logger = structlog.get_logger(__name__)


def build_records(arns: list[str], retire: bool = False) -> list[EventRecord]:
    """One record per ARN, identified by its position on the command line."""
    kind = EventKind.DELETE if retire else EventKind.TAG_CHANGE
    return [
        EventRecord(source_id=f"cli-{i}", event_kind=kind, resource_identifier=arn)
        for i, arn in enumerate(arns, start=1)
    ]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile AutoAlarm alarms for the given resources.",
    )
    parser.add_argument(
        "--arn",
        action="append",
        required=True,
        dest="arns",
        help="Resource ARN (or EC2 instance id); repeatable",
    )
    parser.add_argument(
        "--retire",
        action="store_true",
        help="Delete the resources' alarms instead of reconciling them",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: $AUTOALARM_CONFIG or config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    registry = ResourceRegistry(alarm_prefix=settings.cloudwatch.alarm_prefix)
    unsupported = [arn for arn in args.arns if registry.classify(arn) is None]
    for arn in unsupported:
        print(f"UNSUPPORTED  {arn}", file=sys.stderr)
    arns = [arn for arn in args.arns if arn not in unsupported]
    if not arns:
        return 2

    records = build_records(arns, retire=args.retire)
    result = await process_records(records, InvocationContext(request_id="cli"), settings)

    by_id = {r.source_id: r.resource_identifier for r in records}
    for failure in result.failures:
        print(f"FAILED  {by_id[failure.item_identifier]}", file=sys.stderr)
    logger.info("cli_complete", records=len(records), failed=len(result.failures))
    return 1 if result.failures else 0


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(run(parse_args(argv))))


if __name__ == "__main__":
    main()
