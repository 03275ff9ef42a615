"""Batch dispatcher — routes each record to the first matching handler.

Records of one batch run concurrently and fail independently: a handler
error marks only that record for redelivery.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import structlog

from src.core.types import (
    BatchItemFailure,
    BatchResult,
    EventKind,
    EventRecord,
    InvocationContext,
)
from src.dispatch.exceptions import RecordParseError
from src.dispatch.records import parse_sqs_record
from src.resources.exceptions import UnsupportedResourceError

logger = structlog.stdlib.get_logger()


class RecordHandler(Protocol):
    def matches(self, record: EventRecord) -> bool: ...

    async def handle(self, record: EventRecord, ctx: InvocationContext) -> None: ...


class RecordOutcome(StrEnum):
    PROCESSED = "processed"
    FAILED = "failed"
    UNMATCHED = "unmatched"
    DROPPED = "dropped"


@dataclass
class BatchStats:
    """Counts for the most recent batch."""

    processed: int = 0
    failed: int = 0
    unmatched: int = 0
    dropped: int = 0

    def add(self, outcome: RecordOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class BatchDispatcher:
    """Dispatches a batch of records to priority-ordered handlers.

    - Handlers are tried in registration order; the first match wins, so
      register nested resource types before the broader ones.
    - Unmatched and unparseable records are logged and dropped, not failed:
      redelivery cannot help them.
    - Any other handler error, or a record still running at the invocation
      deadline, adds that record to the batch failures.
    """

    def __init__(self, handlers: Sequence[RecordHandler], max_concurrency: int = 10) -> None:
        self._handlers = list(handlers)
        self._max_concurrency = max(max_concurrency, 1)
        self._stats = BatchStats()

    @property
    def stats(self) -> BatchStats:
        return self._stats

    def _match(self, record: EventRecord) -> RecordHandler | None:
        for handler in self._handlers:
            if handler.matches(record):
                return handler
        return None

    def _recognised(self, identifier: str) -> bool:
        probe = EventRecord(
            source_id="", event_kind=EventKind.TAG_CHANGE, resource_identifier=identifier
        )
        return self._match(probe) is not None

    # ── Entry points ─────────────────────────────────────────────

    async def process_messages(
        self, messages: Sequence[dict[str, Any]], ctx: InvocationContext
    ) -> BatchResult:
        """Parse raw SQS records, then process them as one batch."""
        records: list[EventRecord] = []
        dropped = 0
        for message in messages:
            try:
                records.append(parse_sqs_record(message, accept=self._recognised))
            except RecordParseError as exc:
                logger.warning(
                    "record_unparseable",
                    message_id=message.get("messageId"),
                    error=str(exc),
                )
                dropped += 1
        result = await self.process_batch(records, ctx)
        self._stats.dropped += dropped
        return result

    async def process_batch(
        self, records: Sequence[EventRecord], ctx: InvocationContext
    ) -> BatchResult:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def run(record: EventRecord) -> RecordOutcome:
            async with semaphore:
                return await self._process_record(record, ctx)

        outcomes = await asyncio.gather(*(run(r) for r in records))

        stats = BatchStats()
        failures: list[BatchItemFailure] = []
        for record, outcome in zip(records, outcomes):
            stats.add(outcome)
            if outcome is RecordOutcome.FAILED:
                failures.append(BatchItemFailure(item_identifier=record.source_id))
        self._stats = stats

        logger.info(
            "batch_processed",
            request_id=ctx.request_id,
            records=len(records),
            processed=stats.processed,
            failed=stats.failed,
            unmatched=stats.unmatched,
            dropped=stats.dropped,
        )
        return BatchResult(failures=failures)

    # ── Per record ───────────────────────────────────────────────

    async def _process_record(
        self, record: EventRecord, ctx: InvocationContext
    ) -> RecordOutcome:
        with structlog.contextvars.bound_contextvars(
            record_id=record.source_id,
            resource_id=record.resource_identifier,
        ):
            handler = self._match(record)
            if handler is None:
                logger.warning("record_unmatched", event_kind=record.event_kind)
                return RecordOutcome.UNMATCHED

            try:
                await asyncio.wait_for(handler.handle(record, ctx), timeout=ctx.remaining())
            except TimeoutError:
                logger.error("record_deadline_exceeded", handler=type(handler).__name__)
                return RecordOutcome.FAILED
            except UnsupportedResourceError as exc:
                logger.warning("record_unsupported", error=str(exc))
                return RecordOutcome.DROPPED
            except Exception:
                logger.exception("record_failed", handler=type(handler).__name__)
                return RecordOutcome.FAILED

            return RecordOutcome.PROCESSED
