"""Re-alarm sweep — push alarms stuck in ALARM back to OK so they notify again."""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from pydantic import BaseModel, Field

from src.alarms.exceptions import AlarmError

logger = structlog.stdlib.get_logger()

RESET_REASON = "Resetting state from reAlarm sweep"


class AlarmStateStore(Protocol):
    async def list_alarms(self, state: str | None = None) -> list[dict[str, Any]]: ...

    async def set_alarm_state(self, name: str, state: str, reason: str) -> None: ...


class SweepResult(BaseModel):
    reset: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


def _has_autoscaling_action(alarm: dict[str, Any]) -> bool:
    return any("autoscaling" in action for action in alarm.get("AlarmActions") or [])


class ReAlarmSweeper:
    """Resets every ALARM-state alarm to OK, except ones driving autoscaling.

    Resetting an alarm that is still breaching makes CloudWatch re-evaluate
    it and transition back to ALARM, which re-sends its notifications.
    """

    def __init__(self, store: AlarmStateStore, name_prefix: str | None = None) -> None:
        self._store = store
        self._name_prefix = name_prefix

    async def sweep(self) -> SweepResult:
        result = SweepResult()
        alarms = await self._store.list_alarms(state="ALARM")

        for alarm in alarms:
            name = alarm.get("AlarmName", "")
            if self._name_prefix and not name.startswith(self._name_prefix):
                continue
            if _has_autoscaling_action(alarm):
                logger.info("realarm_skipped_autoscaling", alarm_name=name)
                result.skipped.append(name)
                continue
            try:
                await self._store.set_alarm_state(name, "OK", RESET_REASON)
            except AlarmError:
                logger.exception("realarm_reset_failed", alarm_name=name)
                result.failed.append(name)
                continue
            result.reset.append(name)

        logger.info(
            "realarm_sweep_complete",
            in_alarm=len(alarms),
            reset=len(result.reset),
            skipped=len(result.skipped),
            failed=len(result.failed),
        )
        if result.failed:
            raise AlarmError(f"Failed to reset {len(result.failed)} alarm(s)")
        return result
