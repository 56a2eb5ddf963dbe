"""Self re-arming status refresh for a bot's chores."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.event import async_call_later

from .const import (
    REFRESH_ACTIVE_DELAY_MS,
    REFRESH_AFTER_RUN_MARGIN_MS,
    REFRESH_IDLE_DELAY_MS,
)
from .models import NANOS_PER_MILLISECOND, ChoreInstance

if TYPE_CHECKING:
    from .coordinator import BotChoresDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)


def compute_refresh_delay(instances: Iterable[ChoreInstance], now_ns: int) -> int:
    """Return the delay in milliseconds until the next status poll."""
    soonest: int | None = None
    for instance in instances:
        if instance.is_active:
            return REFRESH_ACTIVE_DELAY_MS
        next_run = instance.next_scheduled_run_at
        if instance.enabled and next_run is not None and next_run > now_ns:
            if soonest is None or next_run < soonest:
                soonest = next_run

    if soonest is None:
        return REFRESH_IDLE_DELAY_MS

    until_run_ms = (soonest - now_ns) // NANOS_PER_MILLISECOND
    return min(until_run_ms + REFRESH_AFTER_RUN_MARGIN_MS, REFRESH_IDLE_DELAY_MS)


class RefreshScheduler:
    """Owns the single refresh timer of one coordinator.

    Every coordinator update recomputes the delay from the freshest instance
    set and re-arms the timer; every firing performs a silent refresh, which
    in turn re-arms. Arming always cancels the previous timer first.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: BotChoresDataUpdateCoordinator,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.hass = hass
        self.coordinator = coordinator
        self._clock = clock
        self._cancel_timer: Callable[[], None] | None = None
        self._remove_listener: Callable[[], None] | None = None
        self.next_delay_ms: int | None = None

    @property
    def armed(self) -> bool:
        return self._cancel_timer is not None

    @callback
    def async_start(self) -> None:
        """Follow coordinator updates and arm from the current data."""
        if self._remove_listener is None:
            self._remove_listener = self.coordinator.async_add_listener(
                self._handle_coordinator_update
            )
        self.async_rearm()

    @callback
    def async_stop(self) -> None:
        """Cancel the timer and stop following the coordinator."""
        self._cancel()
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        _LOGGER.debug("Chore refresh loop stopped")

    @callback
    def async_rearm(self) -> None:
        """Recompute the delay and arm a fresh timer."""
        self._cancel()

        instances = self.coordinator.instances
        if not instances:
            _LOGGER.debug("No chore instances, refresh loop idle")
            self.next_delay_ms = None
            return

        delay_ms = compute_refresh_delay(instances.values(), self._clock())
        self.next_delay_ms = delay_ms
        self._cancel_timer = async_call_later(
            self.hass, delay_ms / 1000, self._async_fire
        )
        _LOGGER.debug("Next chore refresh in %s ms", delay_ms)

    @callback
    def _handle_coordinator_update(self) -> None:
        self.async_rearm()

    @callback
    def _cancel(self) -> None:
        if self._cancel_timer is not None:
            self._cancel_timer()
            self._cancel_timer = None

    async def _async_fire(self, _now: datetime) -> None:
        """Silently refetch statuses, then re-arm."""
        self._cancel_timer = None
        await self.coordinator.async_refresh()
        # A failed refresh may not notify listeners; re-arm from what we have
        if self._remove_listener is not None and not self.armed:
            self.async_rearm()
