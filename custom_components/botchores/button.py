"""Button platform for Bot Chores."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.button import ButtonEntity
from homeassistant.core import callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import COORDINATOR, DOMAIN, LIFECYCLE

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import BotChoresDataUpdateCoordinator
    from .lifecycle import ChoreLifecycleController

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Bot Chores button platform."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinator: BotChoresDataUpdateCoordinator = entry_data[COORDINATOR]
    lifecycle: ChoreLifecycleController = entry_data[LIFECYCLE]

    # Track current buttons by unique_id
    current_buttons: dict[str, BotChoreTriggerButton] = {}

    @callback
    def async_update_buttons() -> None:
        """Keep one trigger button per chore instance."""
        if not coordinator.data:
            return

        needed_ids: set[str] = set()
        new_buttons: list[BotChoreTriggerButton] = []

        for chore_id in coordinator.instances:
            unique_id = f"{DOMAIN}_{chore_id}_trigger"
            needed_ids.add(unique_id)
            if unique_id not in current_buttons:
                button = BotChoreTriggerButton(coordinator, lifecycle, chore_id)
                current_buttons[unique_id] = button
                new_buttons.append(button)

        # Deleted instances lose their button
        entity_registry = er.async_get(hass)
        for unique_id in list(current_buttons.keys()):
            if unique_id not in needed_ids:
                current_buttons.pop(unique_id)
                entity_id = entity_registry.async_get_entity_id(
                    "button", DOMAIN, unique_id
                )
                if entity_id:
                    entity_registry.async_remove(entity_id)
                    _LOGGER.debug("Removed button %s", entity_id)

        if new_buttons:
            async_add_entities(new_buttons)
            _LOGGER.debug("Added %d trigger buttons", len(new_buttons))

    async_update_buttons()

    entry.async_on_unload(coordinator.async_add_listener(async_update_buttons))


class BotChoreTriggerButton(CoordinatorEntity, ButtonEntity):
    """Button asking the bot to run a chore once, now."""

    def __init__(
        self,
        coordinator: BotChoresDataUpdateCoordinator,
        lifecycle: ChoreLifecycleController,
        chore_id: str,
    ) -> None:
        """Initialize the button."""
        super().__init__(coordinator)
        self.lifecycle = lifecycle
        self.chore_id = chore_id

        self._attr_unique_id = f"{DOMAIN}_{chore_id}_trigger"
        self._attr_name = "Run now"
        self._attr_icon = "mdi:play-circle-outline"
        self._attr_has_entity_name = True

    @property
    def available(self) -> bool:
        """Unavailable while a run is already in progress."""
        chore = self.coordinator.get_instance(self.chore_id)
        return super().available and chore is not None and not chore.is_active

    async def async_press(self) -> None:
        """Handle button press - trigger the chore."""
        _LOGGER.debug("Triggering chore %s from button", self.chore_id)
        await self.lifecycle.async_trigger(self.chore_id)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return additional attributes."""
        chore = self.coordinator.get_instance(self.chore_id)
        return {
            "chore_id": self.chore_id,
            "chore_type_id": chore.chore_type_id if chore else None,
        }

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device info."""
        return {
            "identifiers": {(DOMAIN, f"chore_{self.chore_id}")},
            "via_device": (DOMAIN, self.coordinator.api_client.canister_id),
        }
