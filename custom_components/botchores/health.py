"""Health lamps for chore instances.

Each instance has three lamps, one per remote timer level (scheduler,
conductor, task). They roll up into a per-instance summary and an overall
summary for the bot.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .models import (
    NANOS_PER_MILLISECOND,
    NANOS_PER_SECOND,
    ChoreInstance,
    ConductorStatus,
    SchedulerStatus,
    TaskStatus,
)

OVERDUE_GRACE_NS = 5 * 60 * NANOS_PER_SECOND
LONG_CONDUCTOR_NS = 60 * 60 * NANOS_PER_SECOND
DAY_NS = 24 * 60 * 60 * NANOS_PER_SECOND


class Lamp(str, Enum):
    """Lamp colour, ordered here from least to most severe."""

    OFF = "off"
    OK = "ok"
    ACTIVE = "active"
    WARN = "warn"
    ERROR = "error"


LAMP_SEVERITY = {
    Lamp.OFF: 0,
    Lamp.OK: 1,
    Lamp.ACTIVE: 2,
    Lamp.WARN: 3,
    Lamp.ERROR: 4,
}

# Chores with a hard deadline between runs
CHORE_DEADLINES = {
    "confirm-following": (
        182 * DAY_NS,
        "NNS 6-month followee confirmation deadline",
    ),
}


@dataclass(frozen=True)
class LampState:
    lamp: Lamp
    label: str


def scheduler_lamp(chore: ChoreInstance, now_ns: int) -> LampState:
    if not chore.enabled:
        return LampState(Lamp.OFF, "Stopped")
    if chore.paused:
        return LampState(Lamp.OFF, "Paused")
    if chore.stop_requested:
        return LampState(Lamp.ERROR, "Stop requested")

    if chore.scheduler_status is SchedulerStatus.SCHEDULED:
        last_run = chore.last_completed_run_at or 0
        next_run = chore.next_scheduled_run_at or 0
        interval_ns = chore.interval_seconds * NANOS_PER_SECOND

        deadline = CHORE_DEADLINES.get(chore.chore_type_id)
        if deadline:
            deadline_ns, deadline_label = deadline
            if last_run and next_run and next_run > last_run + deadline_ns:
                days_left = round((last_run + deadline_ns - now_ns) / DAY_NS)
                if days_left > 0:
                    return LampState(
                        Lamp.WARN,
                        f"Next run is after {deadline_label} ({days_left} days left)",
                    )
                return LampState(Lamp.WARN, f"{deadline_label} has passed!")
            if not last_run and next_run and interval_ns > deadline_ns:
                return LampState(Lamp.WARN, f"Interval exceeds {deadline_label}")

        if last_run and interval_ns and now_ns - last_run > interval_ns * 3:
            return LampState(Lamp.WARN, "Overdue: last run was over 3 intervals ago")
        if next_run and now_ns > next_run + OVERDUE_GRACE_NS:
            return LampState(Lamp.WARN, "Overdue: scheduled time has passed")
        return LampState(Lamp.OK, "Scheduled")

    if chore.is_active:
        return LampState(Lamp.OK, "Conductor active")
    return LampState(Lamp.WARN, "Enabled but no timer set")


def conductor_lamp(chore: ChoreInstance, now_ns: int) -> LampState:
    if chore.conductor_status is ConductorStatus.IDLE:
        return LampState(Lamp.OFF, "Idle")
    if chore.stop_requested:
        return LampState(Lamp.ERROR, "Stop requested")

    label = (
        "Polling for task"
        if chore.conductor_status is ConductorStatus.POLLING
        else "Running"
    )
    started = chore.conductor_started_at
    if started and now_ns - started > LONG_CONDUCTOR_NS:
        minutes = round((now_ns - started) / (60 * NANOS_PER_SECOND))
        return LampState(Lamp.WARN, f"{label}: running for {minutes} min")
    return LampState(Lamp.ACTIVE, label)


def task_lamp(chore: ChoreInstance, now_ns: int) -> LampState:
    if chore.task_status is TaskStatus.RUNNING:
        started = chore.task_started_at
        timeout_ns = chore.task_timeout_seconds * NANOS_PER_SECOND
        if started and timeout_ns and now_ns - started > timeout_ns:
            return LampState(Lamp.WARN, "Stale: exceeded timeout")
        if chore.current_task_id:
            return LampState(Lamp.ACTIVE, f"Running: {chore.current_task_id}")
        return LampState(Lamp.ACTIVE, "Running")

    if chore.last_task_succeeded is False:
        return LampState(
            Lamp.ERROR, f"Last task failed: {chore.last_task_error or 'Unknown error'}"
        )
    return LampState(Lamp.OFF, "Idle")


def summarize(lamps: Iterable[Lamp]) -> Lamp:
    """The most severe lamp, or OFF for none."""
    return max(lamps, key=LAMP_SEVERITY.__getitem__, default=Lamp.OFF)


def chore_lamp(chore: ChoreInstance, now_ns: int) -> Lamp:
    return summarize(
        (
            scheduler_lamp(chore, now_ns).lamp,
            conductor_lamp(chore, now_ns).lamp,
            task_lamp(chore, now_ns).lamp,
        )
    )


def all_chores_lamp(chores: Iterable[ChoreInstance], now_ns: int) -> Lamp:
    return summarize(chore_lamp(chore, now_ns) for chore in chores)


def summary_label(lamp: Lamp, context: str) -> str:
    labels = {
        Lamp.ERROR: "Error",
        Lamp.WARN: "Attention needed",
        Lamp.ACTIVE: "Active",
        Lamp.OK: "Healthy",
    }
    return f"{context}: {labels.get(lamp, 'Idle')}"


def format_relative(target_ns: int, now_ns: int) -> str:
    """Short countdown label such as 'in 4m 05s' or 'overdue'."""
    diff_ms = (target_ns - now_ns) // NANOS_PER_MILLISECOND
    if diff_ms < 0:
        return "overdue"
    if diff_ms < 60_000:
        return f"in {diff_ms // 1000}s"
    if diff_ms < 300_000:
        return f"in {diff_ms // 60_000}m {(diff_ms % 60_000) // 1000:02d}s"
    if diff_ms < 3_600_000:
        return f"in {round(diff_ms / 60_000)} min"
    if diff_ms < 86_400_000:
        return (
            f"in {diff_ms // 3_600_000}h {round((diff_ms % 3_600_000) / 60_000)}m"
        )
    return f"in {diff_ms // 86_400_000}d"


def schedule_overview(
    chores: Iterable[ChoreInstance],
    now_ns: int,
) -> list[dict[str, str]]:
    """Enabled chores with a next run, running ones first, then soonest first."""
    upcoming = [
        chore
        for chore in chores
        if chore.enabled and chore.next_scheduled_run_at is not None
    ]
    upcoming.sort(key=lambda c: (not c.is_active, c.next_scheduled_run_at))
    return [
        {
            "chore_id": chore.chore_id,
            "name": chore.display_name,
            "when": (
                "running"
                if chore.is_active
                else format_relative(chore.next_scheduled_run_at, now_ns)
            ),
        }
        for chore in upcoming
    ]
