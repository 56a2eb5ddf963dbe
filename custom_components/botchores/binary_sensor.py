"""Binary sensor platform for Bot Chores."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.core import callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import COORDINATOR, DOMAIN

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import BotChoresDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Bot Chores binary sensor platform."""
    coordinator: BotChoresDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id][
        COORDINATOR
    ]

    _LOGGER.debug("Setting up Bot Chores binary sensor platform")
    current_sensors: dict[str, BotChoreActiveSensor] = {}

    @callback
    def async_update_activity_sensors() -> None:
        new_entities = [
            BotChoreActiveSensor(coordinator, chore_id)
            for chore_id in coordinator.instances
            if active_unique_id(chore_id) not in current_sensors
        ]
        current_sensors.update((entity.unique_id, entity) for entity in new_entities)

        needed_ids = {active_unique_id(chore_id) for chore_id in coordinator.instances}
        entity_registry = er.async_get(hass)
        for unique_id in list(current_sensors):
            if unique_id in needed_ids:
                continue
            current_sensors.pop(unique_id)
            entity_id = entity_registry.async_get_entity_id(
                "binary_sensor", DOMAIN, unique_id
            )
            if entity_id:
                entity_registry.async_remove(entity_id)
                _LOGGER.debug("Removed binary sensor %s", entity_id)

        if new_entities:
            async_add_entities(new_entities)

    async_add_entities([BotChoresApiConnectedSensor(coordinator)])
    async_update_activity_sensors()
    entry.async_on_unload(coordinator.async_add_listener(async_update_activity_sensors))


def active_unique_id(chore_id: str) -> str:
    return f"{DOMAIN}_{chore_id}_active"


class BotChoresApiConnectedSensor(CoordinatorEntity, BinarySensorEntity):
    """Whether the last status refresh reached the bot."""

    def __init__(self, coordinator: BotChoresDataUpdateCoordinator) -> None:
        """Initialize the binary sensor."""
        super().__init__(coordinator)
        canister_id = coordinator.api_client.canister_id
        self._attr_unique_id = f"{DOMAIN}_{canister_id}_api_connected"
        self._attr_name = "API connected"
        self._attr_device_class = BinarySensorDeviceClass.CONNECTIVITY
        self._attr_has_entity_name = True

    @property
    def available(self) -> bool:
        # Always available so the disconnected state is visible
        return True

    @property
    def is_on(self) -> bool:
        """Return True if the bot answered the last refresh."""
        return bool(self.coordinator.last_update_success and self.coordinator.data)

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device info."""
        canister_id = self.coordinator.api_client.canister_id
        return {
            "identifiers": {(DOMAIN, canister_id)},
            "name": f"Bot {canister_id}",
            "manufacturer": "Bot Chores",
            "model": "Chore bot",
        }


class BotChoreActiveSensor(CoordinatorEntity, BinarySensorEntity):
    """On while the chore's conductor is doing work."""

    def __init__(
        self,
        coordinator: BotChoresDataUpdateCoordinator,
        chore_id: str,
    ) -> None:
        """Initialize the binary sensor."""
        super().__init__(coordinator)
        self.chore_id = chore_id
        self._attr_unique_id = active_unique_id(chore_id)
        self._attr_name = "Active"
        self._attr_device_class = BinarySensorDeviceClass.RUNNING
        self._attr_has_entity_name = True

    @property
    def available(self) -> bool:
        return (
            super().available
            and self.coordinator.get_instance(self.chore_id) is not None
        )

    @property
    def is_on(self) -> bool:
        chore = self.coordinator.get_instance(self.chore_id)
        return chore is not None and chore.is_active

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        chore = self.coordinator.get_instance(self.chore_id)
        if chore is None:
            return {}
        return {
            "conductor_status": chore.conductor_status.value,
            "task_status": chore.task_status.value,
            "current_task_id": chore.current_task_id,
            "conductor_invocations": chore.conductor_invocation_count,
        }

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device info."""
        return {
            "identifiers": {(DOMAIN, f"chore_{self.chore_id}")},
            "via_device": (DOMAIN, self.coordinator.api_client.canister_id),
        }
