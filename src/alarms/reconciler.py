"""Metric-alarm reconciler — diff desired vs observed alarms and converge."""

from __future__ import annotations

from typing import Protocol

import structlog
from pydantic import BaseModel, Field

from src.alarms.exceptions import AlarmError
from src.core.types import AlarmVariant, DesiredAlarm

logger = structlog.stdlib.get_logger()


class MetricAlarmStore(Protocol):
    """The subset of CloudWatchClient the reconciler drives."""

    async def list_alarm_names(self, prefix: str) -> list[str]: ...

    async def put_metric_alarm(self, alarm: DesiredAlarm) -> None: ...

    async def put_anomaly_detector(self, alarm: DesiredAlarm) -> None: ...

    async def delete_alarms(self, names: list[str]) -> None: ...


class ReconcileResult(BaseModel):
    """What one reconcile pass changed."""

    prefix: str
    upserted: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class AlarmReconciler:
    """Converges the alarms under one resource's name prefix onto a desired set.

    Order of operations:
    1. List observed alarm names by prefix.
    2. Upsert every desired alarm (anomaly alarms register their detector
       first; a detector failure skips only that alarm).
    3. Delete ``observed - desired``.

    Upserts run before deletes so a resource is never left without coverage.
    Entries fail independently; if any did, AlarmError is raised after the
    pass so the record is redelivered and the next pass repairs the rest.
    """

    def __init__(self, backend: MetricAlarmStore) -> None:
        self._backend = backend

    async def reconcile(self, prefix: str, desired: list[DesiredAlarm]) -> ReconcileResult:
        result = ReconcileResult(prefix=prefix)
        observed = await self._backend.list_alarm_names(prefix)

        for alarm in desired:
            if await self._upsert(alarm):
                result.upserted.append(alarm.name)
            else:
                result.failed.append(alarm.name)

        desired_names = {alarm.name for alarm in desired}
        stale = sorted(set(observed) - desired_names)
        if stale:
            await self._backend.delete_alarms(stale)
            result.deleted.extend(stale)

        logger.info(
            "alarms_reconciled",
            prefix=prefix,
            observed=len(observed),
            upserted=len(result.upserted),
            deleted=len(result.deleted),
            failed=len(result.failed),
        )

        if result.failed:
            raise AlarmError(
                f"{len(result.failed)} alarm(s) under {prefix} failed to apply: "
                f"{', '.join(result.failed)}"
            )
        return result

    async def retire(self, prefix: str) -> ReconcileResult:
        """Delete every alarm under ``prefix`` (resource deleted or disabled)."""
        return await self.reconcile(prefix, [])

    async def _upsert(self, alarm: DesiredAlarm) -> bool:
        try:
            if alarm.variant is AlarmVariant.ANOMALY:
                await self._backend.put_anomaly_detector(alarm)
            await self._backend.put_metric_alarm(alarm)
        except AlarmError:
            logger.exception("alarm_upsert_failed", alarm_name=alarm.name)
            return False
        return True
