"""Tests for the operator CLI."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from scripts import reconcile
from src.core.config import reset_settings
from src.core.types import BatchItemFailure, BatchResult, EventKind


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    reset_settings()


class TestArgs:
    def test_repeatable_arn(self) -> None:
        args = reconcile.parse_args(["--arn", "i-1", "--arn", "i-2"])
        assert args.arns == ["i-1", "i-2"]
        assert args.retire is False

    def test_arn_required(self) -> None:
        with pytest.raises(SystemExit):
            reconcile.parse_args([])


class TestBuildRecords:
    def test_reconcile_records_fetch_live_tags(self) -> None:
        records = reconcile.build_records(["i-1", "i-2"])
        assert [r.source_id for r in records] == ["cli-1", "cli-2"]
        assert all(r.event_kind is EventKind.TAG_CHANGE for r in records)
        assert all(r.tags == {} for r in records)

    def test_retire(self) -> None:
        (record,) = reconcile.build_records(["i-1"], retire=True)
        assert record.event_kind is EventKind.DELETE


class TestRun:
    async def test_exit_code_and_failures(self, capsys: pytest.CaptureFixture[str]) -> None:
        result = BatchResult(failures=[BatchItemFailure(item_identifier="cli-2")])
        args = reconcile.parse_args(["--arn", "i-1", "--arn", "i-2"])

        with (
            patch.object(reconcile, "setup_logging"),
            patch.object(reconcile, "process_records", AsyncMock(return_value=result)),
        ):
            assert await reconcile.run(args) == 1

        assert "FAILED  i-2" in capsys.readouterr().err

    async def test_success(self) -> None:
        args = reconcile.parse_args(["--arn", "i-1"])
        with (
            patch.object(reconcile, "setup_logging"),
            patch.object(reconcile, "process_records", AsyncMock(return_value=BatchResult())),
        ):
            assert await reconcile.run(args) == 0

    async def test_unsupported_arns_skipped(self, capsys: pytest.CaptureFixture[str]) -> None:
        args = reconcile.parse_args(["--arn", "arn:aws:s3:::bucket", "--arn", "i-1"])
        process = AsyncMock(return_value=BatchResult())
        with (
            patch.object(reconcile, "setup_logging"),
            patch.object(reconcile, "process_records", process),
        ):
            assert await reconcile.run(args) == 0

        records = process.await_args.args[0]
        assert [r.resource_identifier for r in records] == ["i-1"]
        assert "UNSUPPORTED  arn:aws:s3:::bucket" in capsys.readouterr().err

    async def test_nothing_supported(self) -> None:
        args = reconcile.parse_args(["--arn", "arn:aws:s3:::bucket"])
        process = AsyncMock()
        with (
            patch.object(reconcile, "setup_logging"),
            patch.object(reconcile, "process_records", process),
        ):
            assert await reconcile.run(args) == 2
        process.assert_not_awaited()
