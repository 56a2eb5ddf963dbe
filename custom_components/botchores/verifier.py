"""Optimistic write followed by a delayed authoritative check."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from homeassistant.core import HomeAssistant

from .const import DOMAIN, EVENT_WRITE_MISMATCH, VERIFY_DELAY_SECONDS
from .errors import AgentError
from .models import ChoreInstance

if TYPE_CHECKING:
    from .coordinator import BotChoresDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)


class WriteState(str, Enum):
    """Phase of a verified write."""

    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    MISMATCH = "mismatch"
    UNVERIFIED = "unverified"


@dataclass
class PendingWrite:
    """A requested field value and what the bot later reported."""

    chore_id: str
    field: str
    requested: Any
    state: WriteState = WriteState.TENTATIVE
    confirmed: Any = None

    @property
    def message(self) -> str:
        if self.state is WriteState.MISMATCH:
            return (
                f"Chore {self.chore_id}: requested {self.field}={self.requested}"
                f" but the bot reports {self.confirmed}"
            )
        return f"Chore {self.chore_id}: {self.field} {self.state.value}"


class WriteVerifier:
    """Applies tentative state, then reconciles it with the bot's state."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: BotChoresDataUpdateCoordinator,
        delay: float = VERIFY_DELAY_SECONDS,
    ) -> None:
        self.hass = hass
        self.coordinator = coordinator
        self.delay = delay

    def begin(self, chore_id: str, field: str, requested: Any) -> PendingWrite:
        """Phase one: patch local state so it reflects the request."""
        write = PendingWrite(chore_id=chore_id, field=field, requested=requested)
        self.coordinator.async_patch_instance(chore_id, **{field: requested})
        return write

    async def async_confirm(
        self,
        write: PendingWrite,
        fetch: Callable[[], Awaitable[list[ChoreInstance]]] | None = None,
    ) -> PendingWrite:
        """Phase two: wait, refetch and reconcile."""
        await asyncio.sleep(self.delay)

        fetch = fetch or self.coordinator.api_client.get_chore_statuses
        try:
            statuses = await fetch()
        except AgentError as err:
            write.state = WriteState.UNVERIFIED
            _LOGGER.warning(
                "Could not verify %s of chore %s: %s", write.field, write.chore_id, err
            )
            return write

        instance = next((s for s in statuses if s.chore_id == write.chore_id), None)
        write.confirmed = None if instance is None else getattr(instance, write.field)
        if write.confirmed == write.requested:
            write.state = WriteState.CONFIRMED
            _LOGGER.debug("Verified %s of chore %s", write.field, write.chore_id)
        else:
            write.state = WriteState.MISMATCH
            await self._async_report_mismatch(write)

        # The authoritative value replaces the tentative one either way
        if instance is not None:
            self.coordinator.async_patch_instance(
                write.chore_id, **{write.field: write.confirmed}
            )
        return write

    def async_schedule_confirm(self, write: PendingWrite) -> asyncio.Task:
        """Run phase two in the background."""
        return self.hass.async_create_background_task(
            self.async_confirm(write),
            f"{DOMAIN} verify {write.chore_id} {write.field}",
        )

    async def _async_report_mismatch(self, write: PendingWrite) -> None:
        _LOGGER.warning("%s", write.message)
        self.hass.bus.async_fire(
            EVENT_WRITE_MISMATCH,
            {
                "chore_id": write.chore_id,
                "field": write.field,
                "requested": write.requested,
                "confirmed": write.confirmed,
            },
        )
        try:
            await self.hass.services.async_call(
                "persistent_notification",
                "create",
                {
                    "title": "Chore change not confirmed",
                    "message": write.message,
                    "notification_id": f"{DOMAIN}_{write.chore_id}_{write.field}",
                },
            )
        except Exception as err:
            _LOGGER.error("Failed to send mismatch notification: %s", err)
