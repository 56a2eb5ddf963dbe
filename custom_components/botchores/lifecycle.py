"""Chore lifecycle commands.

A chore instance sits on two independent axes. The enablement axis
(stopped, running, paused) is driven from here; the activity axis (conductor
idle or working) is only ever reported by the bot, so a stopped chore can
still be busy with a manually triggered run.

Each command is a single agent call. Preconditions are checked against the
coordinator's current view before calling out; a failed call leaves local
state untouched.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from homeassistant.core import HomeAssistant

from .const import MAX_INTERVAL_SECONDS, MIN_INTERVAL_SECONDS
from .errors import AgentError, ChoreCallError, ChoreValidationError
from .models import (
    NANOS_PER_MILLISECOND,
    NANOS_PER_SECOND,
    ChoreInstance,
    ChoreState,
    SchedulerStatus,
)
from .verifier import PendingWrite, WriteVerifier

if TYPE_CHECKING:
    from .coordinator import BotChoresDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def validate_interval(
    interval_seconds: int,
    max_interval_seconds: int | None = None,
) -> None:
    """Raise ChoreValidationError if the interval bounds are out of range."""
    if not MIN_INTERVAL_SECONDS <= interval_seconds <= MAX_INTERVAL_SECONDS:
        raise ChoreValidationError(
            f"Interval must be between {MIN_INTERVAL_SECONDS} and "
            f"{MAX_INTERVAL_SECONDS} seconds, got {interval_seconds}"
        )
    if max_interval_seconds is None:
        return
    if max_interval_seconds <= interval_seconds:
        raise ChoreValidationError(
            "Max interval must be greater than the interval "
            f"({max_interval_seconds} <= {interval_seconds})"
        )
    if max_interval_seconds > MAX_INTERVAL_SECONDS:
        raise ChoreValidationError(
            f"Max interval must be at most {MAX_INTERVAL_SECONDS} seconds, "
            f"got {max_interval_seconds}"
        )


def _base36(value: int) -> str:
    digits = ""
    while True:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
        if not value:
            return digits


class ChoreLifecycleController:
    """Start, stop, pause, resume, trigger and reschedule chore instances."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: BotChoresDataUpdateCoordinator,
        verifier: WriteVerifier,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.hass = hass
        self.coordinator = coordinator
        self.verifier = verifier
        self._clock = clock

    @property
    def api(self):
        return self.coordinator.api_client

    def _require(self, chore_id: str) -> ChoreInstance:
        instance = self.coordinator.get_instance(chore_id)
        if instance is None:
            raise ChoreValidationError(f"Unknown chore {chore_id}")
        return instance

    def _require_state(
        self,
        chore_id: str,
        *allowed: ChoreState,
        action: str,
    ) -> ChoreInstance:
        instance = self._require(chore_id)
        if instance.state not in allowed:
            raise ChoreValidationError(
                f"Cannot {action} chore {chore_id} while it is {instance.state.value}"
            )
        return instance

    async def _async_call(
        self,
        action: str,
        chore_id: str,
        call: Awaitable[Any],
    ) -> Any:
        """Await an agent call, converting failures to an operator message."""
        _LOGGER.debug("%s chore %s", action.capitalize(), chore_id)
        try:
            return await call
        except AgentError as err:
            _LOGGER.error("Failed to %s chore %s: %s", action, chore_id, err)
            raise ChoreCallError(f"Failed to {action} chore {chore_id}: {err}") from err

    async def _async_reload(self) -> None:
        """Silent refresh; a failure here does not fail the command."""
        await self.coordinator.async_refresh()

    # Enablement axis

    async def async_start(self, chore_id: str) -> None:
        """Enable a stopped chore; its first run is due after one interval."""
        instance = self._require_state(chore_id, ChoreState.STOPPED, action="start")
        await self._async_call("start", chore_id, self.api.start_chore(chore_id))

        config = self.coordinator.get_config(chore_id) or instance
        now_ns = self._clock()
        self.coordinator.async_patch_instance(
            chore_id,
            enabled=True,
            paused=False,
            scheduler_status=SchedulerStatus.SCHEDULED,
            next_scheduled_run_at=now_ns + config.interval_seconds * NANOS_PER_SECOND,
        )
        await self._async_reload()

    async def async_schedule_start(self, chore_id: str, start_at_ns: int) -> None:
        """Enable a stopped chore with its first run pinned at start_at_ns."""
        self._require_state(chore_id, ChoreState.STOPPED, action="schedule")
        if start_at_ns <= self._clock():
            raise ChoreValidationError("Scheduled start time must be in the future")

        await self._async_call(
            "schedule",
            chore_id,
            self.api.schedule_start_chore(chore_id, start_at_ns),
        )
        self.coordinator.async_patch_instance(
            chore_id,
            enabled=True,
            paused=False,
            scheduler_status=SchedulerStatus.SCHEDULED,
            next_scheduled_run_at=start_at_ns,
        )
        await self._async_reload()

    async def async_pause(self, chore_id: str) -> None:
        """Pause a running chore, keeping its schedule."""
        self._require_state(chore_id, ChoreState.RUNNING, action="pause")
        await self._async_call("pause", chore_id, self.api.pause_chore(chore_id))
        self.coordinator.async_patch_instance(chore_id, paused=True)
        await self._async_reload()

    async def async_resume(self, chore_id: str) -> None:
        """Resume a paused chore."""
        self._require_state(chore_id, ChoreState.PAUSED, action="resume")
        await self._async_call("resume", chore_id, self.api.resume_chore(chore_id))
        self.coordinator.async_patch_instance(chore_id, paused=False)
        await self._async_reload()

    async def async_stop(self, chore_id: str) -> None:
        """Disable a running or paused chore and clear its schedule."""
        self._require_state(
            chore_id, ChoreState.RUNNING, ChoreState.PAUSED, action="stop"
        )
        await self._async_call("stop", chore_id, self.api.stop_chore(chore_id))
        self.coordinator.async_patch_instance(
            chore_id,
            enabled=False,
            paused=False,
            scheduler_status=SchedulerStatus.IDLE,
            next_scheduled_run_at=None,
        )
        await self._async_reload()

    # Activity axis

    async def async_trigger(self, chore_id: str) -> None:
        """Ask the bot for one run now, whatever the enablement."""
        instance = self._require(chore_id)
        if instance.is_active:
            raise ChoreValidationError(f"Chore {chore_id} is already running")
        await self._async_call("trigger", chore_id, self.api.trigger_chore(chore_id))
        await self._async_reload()

    # Schedule configuration

    async def async_set_interval(
        self,
        chore_id: str,
        interval_seconds: int,
        max_interval_seconds: int | None = None,
    ) -> None:
        """Set the interval and, when given, the randomized window's upper bound.

        The two values are separate agent calls. If the second fails the first
        stays applied and the error says so.
        """
        self._require(chore_id)
        validate_interval(interval_seconds, max_interval_seconds)

        await self._async_call(
            "set interval of",
            chore_id,
            self.api.set_chore_interval(chore_id, interval_seconds),
        )
        if max_interval_seconds is not None:
            try:
                await self.api.set_chore_max_interval(chore_id, max_interval_seconds)
            except AgentError as err:
                _LOGGER.error(
                    "Max interval of chore %s failed after interval was set: %s",
                    chore_id,
                    err,
                )
                await self._async_reload()
                raise ChoreCallError(
                    f"Interval of chore {chore_id} was set to {interval_seconds}s "
                    f"but setting the max interval failed: {err}"
                ) from err
        await self._async_reload()

    async def async_clear_max_interval(self, chore_id: str) -> None:
        """Return to a fixed interval."""
        self._require(chore_id)
        await self._async_call(
            "clear max interval of",
            chore_id,
            self.api.set_chore_max_interval(chore_id, None),
        )
        await self._async_reload()

    async def async_set_next_run(self, chore_id: str, next_run_ns: int) -> PendingWrite:
        """Overwrite the next scheduled run and verify it later."""
        instance = self._require(chore_id)
        if not instance.enabled:
            raise ChoreValidationError(
                f"Cannot set the next run of chore {chore_id} while it is stopped"
            )
        await self._async_call(
            "set next run of",
            chore_id,
            self.api.set_chore_next_run(chore_id, next_run_ns),
        )
        write = self.verifier.begin(chore_id, "next_scheduled_run_at", next_run_ns)
        self.verifier.async_schedule_confirm(write)
        return write

    # Instances

    async def async_create_instance(self, chore_type_id: str, label: str) -> str:
        """Create a new labelled instance of a chore type and return its id."""
        label = label.strip()
        if not label:
            raise ChoreValidationError("Instance label must not be empty")
        known_types = {i.chore_type_id for i in self.coordinator.instances.values()}
        if known_types and chore_type_id not in known_types:
            raise ChoreValidationError(f"Unknown chore type {chore_type_id}")

        instance_id = (
            f"{chore_type_id}-{_base36(self._clock() // NANOS_PER_MILLISECOND)}"
        )
        created = await self._async_call(
            "create",
            instance_id,
            self.api.create_chore_instance(chore_type_id, instance_id, label),
        )
        if not created:
            raise ChoreCallError(f"Failed to create instance {label!r} of {chore_type_id}")
        _LOGGER.info("Created chore instance %s (%s)", instance_id, label)
        await self._async_reload()
        return instance_id

    async def async_rename_instance(self, chore_id: str, label: str) -> None:
        self._require(chore_id)
        label = label.strip()
        if not label:
            raise ChoreValidationError("Instance label must not be empty")
        renamed = await self._async_call(
            "rename", chore_id, self.api.rename_chore_instance(chore_id, label)
        )
        if not renamed:
            raise ChoreCallError(f"Failed to rename chore {chore_id}")
        self.coordinator.async_patch_instance(chore_id, instance_label=label)

    async def async_delete_instance(self, chore_id: str) -> None:
        """Delete a stopped instance."""
        self._require_state(chore_id, ChoreState.STOPPED, action="delete")
        deleted = await self._async_call(
            "delete", chore_id, self.api.delete_chore_instance(chore_id)
        )
        if not deleted:
            raise ChoreCallError(f"Failed to delete chore {chore_id}")
        _LOGGER.info("Deleted chore instance %s", chore_id)
        await self._async_reload()
