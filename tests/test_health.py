"""Tests for chore health lamps."""
from __future__ import annotations

from custom_components.botchores.health import (
    DAY_NS,
    Lamp,
    all_chores_lamp,
    chore_lamp,
    conductor_lamp,
    format_relative,
    schedule_overview,
    scheduler_lamp,
    summarize,
    summary_label,
    task_lamp,
)
from custom_components.botchores.models import (
    NANOS_PER_MILLISECOND,
    NANOS_PER_SECOND,
    ConductorStatus,
    SchedulerStatus,
    TaskStatus,
)

from .common import NOW_NS, make_chore


def _scheduled(**overrides):
    values = {
        "enabled": True,
        "scheduler_status": SchedulerStatus.SCHEDULED,
        "next_scheduled_run_at": NOW_NS + 600 * NANOS_PER_SECOND,
        "last_completed_run_at": NOW_NS - 600 * NANOS_PER_SECOND,
    }
    values.update(overrides)
    return make_chore("collect-maturity", **values)


class TestSchedulerLamp:
    """Tests for scheduler_lamp."""

    def test_stopped(self):
        """Test stopped chores are off."""
        assert scheduler_lamp(make_chore(), NOW_NS).lamp is Lamp.OFF

    def test_paused(self):
        """Test paused chores are off."""
        state = scheduler_lamp(_scheduled(paused=True), NOW_NS)
        assert state.lamp is Lamp.OFF
        assert state.label == "Paused"

    def test_scheduled(self):
        """Test a healthy schedule is ok."""
        assert scheduler_lamp(_scheduled(), NOW_NS).lamp is Lamp.OK

    def test_stop_requested(self):
        """Test a pending stop is an error."""
        assert scheduler_lamp(_scheduled(stop_requested=True), NOW_NS).lamp is Lamp.ERROR

    def test_overdue(self):
        """Test a run long past its time warns."""
        chore = _scheduled(next_scheduled_run_at=NOW_NS - 600 * NANOS_PER_SECOND)
        state = scheduler_lamp(chore, NOW_NS)
        assert state.lamp is Lamp.WARN
        assert "scheduled time has passed" in state.label

    def test_stale_last_run(self):
        """Test no run for three intervals warns."""
        chore = _scheduled(last_completed_run_at=NOW_NS - 4 * 3600 * NANOS_PER_SECOND)
        assert "3 intervals" in scheduler_lamp(chore, NOW_NS).label

    def test_enabled_without_timer(self):
        """Test an enabled chore with an idle scheduler warns."""
        chore = _scheduled(scheduler_status=SchedulerStatus.IDLE)
        assert scheduler_lamp(chore, NOW_NS).lamp is Lamp.WARN

    def test_enabled_idle_but_conducting(self):
        """Test an idle scheduler is fine while the conductor works."""
        chore = _scheduled(
            scheduler_status=SchedulerStatus.IDLE,
            conductor_status=ConductorStatus.RUNNING,
        )
        assert scheduler_lamp(chore, NOW_NS).lamp is Lamp.OK

    def test_deadline_warning(self):
        """Test chores with a hard deadline warn when the next run is too late."""
        chore = make_chore(
            "confirm-following",
            enabled=True,
            interval_seconds=200 * 86_400,
            scheduler_status=SchedulerStatus.SCHEDULED,
            last_completed_run_at=NOW_NS - 10 * DAY_NS,
            next_scheduled_run_at=NOW_NS + 190 * DAY_NS,
        )
        state = scheduler_lamp(chore, NOW_NS)
        assert state.lamp is Lamp.WARN
        assert "172 days left" in state.label


class TestConductorAndTaskLamps:
    """Tests for conductor_lamp and task_lamp."""

    def test_conductor_idle(self):
        """Test an idle conductor is off."""
        assert conductor_lamp(make_chore(), NOW_NS).lamp is Lamp.OFF

    def test_conductor_polling(self):
        """Test a polling conductor is active."""
        chore = make_chore(
            conductor_status=ConductorStatus.POLLING,
            conductor_started_at=NOW_NS - NANOS_PER_SECOND,
        )
        state = conductor_lamp(chore, NOW_NS)
        assert state.lamp is Lamp.ACTIVE
        assert state.label == "Polling for task"

    def test_conductor_long_running(self):
        """Test a conductor running over an hour warns."""
        chore = make_chore(
            conductor_status=ConductorStatus.RUNNING,
            conductor_started_at=NOW_NS - 2 * 3600 * NANOS_PER_SECOND,
        )
        assert conductor_lamp(chore, NOW_NS).lamp is Lamp.WARN

    def test_task_running(self):
        """Test a running task shows its id."""
        chore = make_chore(
            task_status=TaskStatus.RUNNING,
            current_task_id="neuron-1",
            task_started_at=NOW_NS - NANOS_PER_SECOND,
        )
        assert task_lamp(chore, NOW_NS).label == "Running: neuron-1"

    def test_task_stale(self):
        """Test a task past its timeout warns."""
        chore = make_chore(
            task_status=TaskStatus.RUNNING,
            task_started_at=NOW_NS - 601 * NANOS_PER_SECOND,
        )
        assert task_lamp(chore, NOW_NS).lamp is Lamp.WARN

    def test_task_failed(self):
        """Test the last failure is an error."""
        chore = make_chore(last_task_succeeded=False, last_task_error="ledger busy")
        state = task_lamp(chore, NOW_NS)
        assert state.lamp is Lamp.ERROR
        assert "ledger busy" in state.label


class TestRollup:
    """Tests for lamp summaries."""

    def test_summarize_picks_most_severe(self):
        """Test the most severe lamp wins."""
        assert summarize([Lamp.OK, Lamp.WARN, Lamp.ACTIVE]) is Lamp.WARN

    def test_summarize_empty(self):
        """Test no lamps is off."""
        assert summarize([]) is Lamp.OFF

    def test_chore_and_all(self):
        """Test per-chore and overall summaries."""
        healthy = _scheduled()
        failed = make_chore("refresh-stake", last_task_succeeded=False)

        assert chore_lamp(healthy, NOW_NS) is Lamp.OK
        assert all_chores_lamp([healthy, failed], NOW_NS) is Lamp.ERROR

    def test_summary_label(self):
        """Test summary labels."""
        assert summary_label(Lamp.WARN, "Chores") == "Chores: Attention needed"
        assert summary_label(Lamp.OFF, "Chores") == "Chores: Idle"


class TestScheduleOverview:
    """Tests for format_relative and schedule_overview."""

    def test_format_relative(self):
        """Test countdown labels."""
        ms = NANOS_PER_MILLISECOND
        assert format_relative(NOW_NS - ms, NOW_NS) == "overdue"
        assert format_relative(NOW_NS + 45_000 * ms, NOW_NS) == "in 45s"
        assert format_relative(NOW_NS + 245_000 * ms, NOW_NS) == "in 4m 05s"
        assert format_relative(NOW_NS + 1_800_000 * ms, NOW_NS) == "in 30 min"
        assert format_relative(NOW_NS + 9_000_000 * ms, NOW_NS) == "in 2h 30m"
        assert format_relative(NOW_NS + 3 * 86_400_000 * ms, NOW_NS) == "in 3d"

    def test_running_first_then_soonest(self):
        """Test running chores lead, then by next run."""
        later = _scheduled(next_scheduled_run_at=NOW_NS + 7200 * NANOS_PER_SECOND)
        sooner = make_chore(
            "distribute-funds",
            enabled=True,
            next_scheduled_run_at=NOW_NS + 60 * NANOS_PER_SECOND,
        )
        running = make_chore(
            "refresh-stake",
            enabled=True,
            next_scheduled_run_at=NOW_NS + 9000 * NANOS_PER_SECOND,
            conductor_status=ConductorStatus.RUNNING,
        )
        stopped = make_chore("split-neuron")

        overview = schedule_overview([later, sooner, running, stopped], NOW_NS)

        assert [item["chore_id"] for item in overview] == [
            "refresh-stake",
            "distribute-funds",
            "collect-maturity",
        ]
        assert overview[0]["when"] == "running"
        assert overview[1]["when"] == "in 1m 00s"
