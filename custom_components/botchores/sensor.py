"""Sensor platform for Bot Chores."""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity
from homeassistant.core import callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import COORDINATOR, DOMAIN
from .health import (
    all_chores_lamp,
    chore_lamp,
    conductor_lamp,
    schedule_overview,
    scheduler_lamp,
    summary_label,
    task_lamp,
)
from .models import ChoreInstance, ChoreState, ns_to_datetime

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
    """Set up Bot Chores sensor platform."""
    coordinator: BotChoresDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id][
        COORDINATOR
    ]

    async_add_entities([BotChoresHealthSensor(coordinator)])

    # Track per-instance sensors by unique_id
    current_sensors: dict[str, BotChoreSensorBase] = {}

    @callback
    def async_update_instance_sensors() -> None:
        """Keep state and next run sensors in step with the chore instances."""
        needed_ids: set[str] = set()
        new_entities: list[SensorEntity] = []

        for chore_id in coordinator.instances:
            for sensor_class in (BotChoreStateSensor, BotChoreNextRunSensor):
                unique_id = sensor_class.unique_id_for(chore_id)
                needed_ids.add(unique_id)
                if unique_id not in current_sensors:
                    sensor = sensor_class(coordinator, chore_id)
                    current_sensors[unique_id] = sensor
                    new_entities.append(sensor)

        # Deleted instances lose their sensors
        entity_registry = er.async_get(hass)
        for unique_id in list(current_sensors):
            if unique_id not in needed_ids:
                current_sensors.pop(unique_id)
                entity_id = entity_registry.async_get_entity_id(
                    "sensor", DOMAIN, unique_id
                )
                if entity_id:
                    entity_registry.async_remove(entity_id)
                    _LOGGER.debug("Removed sensor %s", entity_id)

        if new_entities:
            _LOGGER.debug("Adding %d chore instance sensors", len(new_entities))
            async_add_entities(new_entities)

    async_update_instance_sensors()

    entry.async_on_unload(
        coordinator.async_add_listener(async_update_instance_sensors)
    )


def _bot_device_info(coordinator: BotChoresDataUpdateCoordinator) -> dict[str, Any]:
    canister_id = coordinator.api_client.canister_id
    return {
        "identifiers": {(DOMAIN, canister_id)},
        "name": f"Bot {canister_id}",
        "manufacturer": "Bot Chores",
        "model": "Chore bot",
    }


class BotChoreSensorBase(CoordinatorEntity, SensorEntity):
    """Base class for per-instance sensors."""

    key: str

    @classmethod
    def unique_id_for(cls, chore_id: str) -> str:
        return f"{DOMAIN}_{chore_id}_{cls.key}"

    def __init__(
        self,
        coordinator: BotChoresDataUpdateCoordinator,
        chore_id: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self.chore_id = chore_id
        self._attr_unique_id = self.unique_id_for(chore_id)
        self._attr_has_entity_name = True

    @property
    def chore(self) -> ChoreInstance | None:
        return self.coordinator.get_instance(self.chore_id)

    @property
    def available(self) -> bool:
        return super().available and self.chore is not None

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device info."""
        chore = self.chore
        return {
            "identifiers": {(DOMAIN, f"chore_{self.chore_id}")},
            "name": chore.display_name if chore else self.chore_id,
            "manufacturer": "Bot Chores",
            "model": chore.chore_type_id if chore else "Chore",
            "via_device": (DOMAIN, self.coordinator.api_client.canister_id),
        }


class BotChoreStateSensor(BotChoreSensorBase):
    """Enablement state of a chore instance, with its health lamps."""

    key = "state"

    def __init__(
        self,
        coordinator: BotChoresDataUpdateCoordinator,
        chore_id: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, chore_id)
        self._attr_name = "State"
        self._attr_icon = "mdi:robot-outline"
        self._attr_device_class = SensorDeviceClass.ENUM
        self._attr_options = [state.value for state in ChoreState]

    @property
    def native_value(self) -> str | None:
        chore = self.chore
        return chore.state.value if chore else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return lamps, activity and counters."""
        chore = self.chore
        if chore is None:
            return {}
        config = self.coordinator.get_config(self.chore_id)
        now_ns = time.time_ns()
        scheduler = scheduler_lamp(chore, now_ns)
        conductor = conductor_lamp(chore, now_ns)
        task = task_lamp(chore, now_ns)
        return {
            "chore_type_id": chore.chore_type_id,
            "instance_label": chore.instance_label,
            "health": chore_lamp(chore, now_ns).value,
            "scheduler": scheduler.lamp.value,
            "scheduler_label": scheduler.label,
            "conductor": conductor.lamp.value,
            "conductor_label": conductor.label,
            "task": task.lamp.value,
            "task_label": task.label,
            "current_task_id": chore.current_task_id,
            "interval_seconds": config.interval_seconds,
            "max_interval_seconds": config.max_interval_seconds,
            "task_timeout_seconds": config.task_timeout_seconds,
            "total_runs": chore.total_run_count,
            "total_successes": chore.total_success_count,
            "total_failures": chore.total_failure_count,
            "last_error": chore.last_error,
            "last_error_at": ns_to_datetime(chore.last_error_at),
            "last_completed_run_at": ns_to_datetime(chore.last_completed_run_at),
        }


class BotChoreNextRunSensor(BotChoreSensorBase):
    """Next scheduled run of a chore instance."""

    key = "next_run"

    def __init__(
        self,
        coordinator: BotChoresDataUpdateCoordinator,
        chore_id: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, chore_id)
        self._attr_name = "Next run"
        self._attr_icon = "mdi:calendar-clock"
        self._attr_device_class = SensorDeviceClass.TIMESTAMP

    @property
    def native_value(self) -> datetime | None:
        chore = self.chore
        if chore is None or not chore.enabled:
            return None
        return ns_to_datetime(chore.next_scheduled_run_at)


class BotChoresHealthSensor(CoordinatorEntity, SensorEntity):
    """Rolled-up health of every chore on the bot."""

    def __init__(self, coordinator: BotChoresDataUpdateCoordinator) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{DOMAIN}_{coordinator.api_client.canister_id}_health"
        self._attr_name = "Chores health"
        self._attr_icon = "mdi:heart-pulse"
        self._attr_has_entity_name = True

    @property
    def native_value(self) -> str:
        return all_chores_lamp(self.coordinator.instances.values(), time.time_ns()).value

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        now_ns = time.time_ns()
        instances = self.coordinator.instances.values()
        return {
            "summary": summary_label(all_chores_lamp(instances, now_ns), "Chores"),
            "instance_count": len(self.coordinator.instances),
            "active_count": sum(1 for chore in instances if chore.is_active),
            "schedule": schedule_overview(instances, now_ns),
        }

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device info."""
        return _bot_device_info(self.coordinator)
