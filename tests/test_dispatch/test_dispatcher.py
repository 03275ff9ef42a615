"""Tests for the batch dispatcher.

Verifies:
- Per-record failure isolation
- First-match handler priority
- Unmatched, unparseable and unsupported records are dropped
- Deadline overruns mark the record failed
- Stats tracking
"""

from __future__ import annotations

import asyncio
import json
import time

from src.core.types import EventKind, EventRecord, InvocationContext
from src.dispatch.dispatcher import BatchDispatcher, BatchStats, RecordOutcome
from src.resources.exceptions import UnsupportedResourceError


class FakeHandler:
    """Matches identifiers starting with ``prefix``; records what it handled."""

    def __init__(
        self,
        prefix: str,
        fail_on: set[str] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.prefix = prefix
        self.fail_on = fail_on or set()
        self.delay = delay
        self.error = error
        self.handled: list[str] = []

    def matches(self, record: EventRecord) -> bool:
        return record.resource_identifier.startswith(self.prefix)

    async def handle(self, record: EventRecord, ctx: InvocationContext) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if record.source_id in self.fail_on:
            raise self.error or RuntimeError(f"boom {record.source_id}")
        self.handled.append(record.source_id)


def _record(source_id: str, identifier: str = "arn:aws:ec2:r:1:instance/i-1") -> EventRecord:
    return EventRecord(
        source_id=source_id,
        event_kind=EventKind.TAG_CHANGE,
        resource_identifier=identifier,
    )


def _ctx() -> InvocationContext:
    return InvocationContext(request_id="req-1")


class TestIsolation:
    async def test_one_failure_does_not_abort_batch(self) -> None:
        handler = FakeHandler("arn:", fail_on={"2"})
        dispatcher = BatchDispatcher([handler])

        result = await dispatcher.process_batch(
            [_record("1"), _record("2"), _record("3")], _ctx()
        )

        assert [f.item_identifier for f in result.failures] == ["2"]
        assert sorted(handler.handled) == ["1", "3"]
        assert result.to_response() == {"batchItemFailures": [{"itemIdentifier": "2"}]}

    async def test_all_succeed(self) -> None:
        dispatcher = BatchDispatcher([FakeHandler("arn:")])
        result = await dispatcher.process_batch([_record("1"), _record("2")], _ctx())
        assert result.failures == []
        assert dispatcher.stats.processed == 2

    async def test_empty_batch(self) -> None:
        result = await BatchDispatcher([FakeHandler("arn:")]).process_batch([], _ctx())
        assert result.to_response() == {"batchItemFailures": []}


class TestRouting:
    async def test_first_match_wins(self) -> None:
        specific = FakeHandler("arn:aws:elasticloadbalancing:r:1:targetgroup/")
        broad = FakeHandler("arn:aws:elasticloadbalancing:")
        dispatcher = BatchDispatcher([specific, broad])

        await dispatcher.process_batch(
            [
                _record("tg", "arn:aws:elasticloadbalancing:r:1:targetgroup/a/1"),
                _record("lb", "arn:aws:elasticloadbalancing:r:1:loadbalancer/app/a/1"),
            ],
            _ctx(),
        )

        assert specific.handled == ["tg"]
        assert broad.handled == ["lb"]

    async def test_unmatched_is_dropped_not_failed(self) -> None:
        dispatcher = BatchDispatcher([FakeHandler("arn:aws:sqs:")])
        result = await dispatcher.process_batch([_record("1", "arn:aws:s3:::b")], _ctx())
        assert result.failures == []
        assert dispatcher.stats.unmatched == 1

    async def test_unsupported_resource_dropped(self) -> None:
        handler = FakeHandler("arn:", fail_on={"1"}, error=UnsupportedResourceError("nlb"))
        dispatcher = BatchDispatcher([handler])
        result = await dispatcher.process_batch([_record("1")], _ctx())
        assert result.failures == []
        assert dispatcher.stats.dropped == 1


class TestDeadline:
    async def test_record_running_past_deadline_fails(self) -> None:
        slow = FakeHandler("arn:", delay=5.0)
        dispatcher = BatchDispatcher([slow])
        ctx = InvocationContext(request_id="r", deadline=time.monotonic() + 0.05)

        result = await dispatcher.process_batch([_record("1")], ctx)

        assert [f.item_identifier for f in result.failures] == ["1"]
        assert slow.handled == []


class TestConcurrency:
    async def test_records_run_concurrently(self) -> None:
        handler = FakeHandler("arn:", delay=0.05)
        dispatcher = BatchDispatcher([handler], max_concurrency=10)

        start = time.monotonic()
        await dispatcher.process_batch([_record(str(i)) for i in range(10)], _ctx())

        assert len(handler.handled) == 10
        assert time.monotonic() - start < 0.4

    async def test_concurrency_limit(self) -> None:
        active = 0
        peak = 0

        class Counting(FakeHandler):
            async def handle(self, record: EventRecord, ctx: InvocationContext) -> None:
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        dispatcher = BatchDispatcher([Counting("arn:")], max_concurrency=2)
        await dispatcher.process_batch([_record(str(i)) for i in range(6)], _ctx())
        assert peak == 2


class TestProcessMessages:
    def _message(self, message_id: str, resource: str) -> dict[str, str]:
        body = {
            "source": "aws.tag",
            "detail-type": "Tag Change on Resource",
            "resources": [resource],
            "detail": {"tags": {"autoalarm:enabled": "true"}},
        }
        return {"messageId": message_id, "body": json.dumps(body)}

    async def test_unparseable_message_dropped(self) -> None:
        handler = FakeHandler("arn:")
        dispatcher = BatchDispatcher([handler])

        result = await dispatcher.process_messages(
            [
                self._message("a", "arn:aws:ec2:r:1:instance/i-1"),
                {"messageId": "b", "body": "not json"},
            ],
            _ctx(),
        )

        assert result.failures == []
        assert handler.handled == ["a"]
        assert dispatcher.stats.processed == 1
        assert dispatcher.stats.dropped == 1

    async def test_failure_reported_by_message_id(self) -> None:
        dispatcher = BatchDispatcher([FakeHandler("arn:", fail_on={"m-2"})])
        result = await dispatcher.process_messages(
            [self._message("m-1", "arn:x"), self._message("m-2", "arn:y")], _ctx()
        )
        assert result.to_response() == {"batchItemFailures": [{"itemIdentifier": "m-2"}]}


class TestStats:
    def test_outcome_values_match_fields(self) -> None:
        stats = BatchStats()
        for outcome in RecordOutcome:
            stats.add(outcome)
        assert (stats.processed, stats.failed, stats.unmatched, stats.dropped) == (1, 1, 1, 1)

    async def test_stats_reset_per_batch(self) -> None:
        dispatcher = BatchDispatcher([FakeHandler("arn:", fail_on={"1"})])
        await dispatcher.process_batch([_record("1")], _ctx())
        assert dispatcher.stats.failed == 1
        await dispatcher.process_batch([_record("2")], _ctx())
        assert dispatcher.stats.failed == 0
        assert dispatcher.stats.processed == 1
