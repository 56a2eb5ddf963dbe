"""DataUpdateCoordinator for Bot Chores."""
from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api_client import BotChoresApiClient
from .const import DOMAIN
from .errors import AgentError
from .models import ChoreConfig, ChoreInstance, ChoreSnapshot

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

_LOGGER = logging.getLogger(__name__)


class BotChoresDataUpdateCoordinator(DataUpdateCoordinator[ChoreSnapshot]):
    """Holds the latest chore statuses and configs of one bot.

    There is no fixed update interval: the RefreshScheduler decides when the
    next silent refresh happens.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        api_client: BotChoresApiClient,
        config_entry: ConfigEntry | None = None,
    ) -> None:
        """Initialize the coordinator."""
        self.api_client = api_client

        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=DOMAIN,
            update_interval=None,
        )

    async def _async_update_data(self) -> ChoreSnapshot:
        """Fetch chore statuses and configs from the bot."""
        try:
            statuses = await self.api_client.get_chore_statuses()
            try:
                configs = await self.api_client.get_chore_configs()
            except AgentError as err:
                # Older bots do not expose configs; statuses still carry intervals
                _LOGGER.warning("Could not fetch chore configs: %s", err)
                configs = {}
        except AgentError as err:
            _LOGGER.error("Error fetching chore statuses: %s", err)
            raise UpdateFailed(f"Error communicating with agent: {err}") from err

        return ChoreSnapshot(
            instances={status.chore_id: status for status in statuses},
            configs=configs,
        )

    @property
    def instances(self) -> dict[str, ChoreInstance]:
        """Known chore instances keyed by chore id."""
        if not self.data:
            return {}
        return self.data.instances

    def get_instance(self, chore_id: str) -> ChoreInstance | None:
        return self.instances.get(chore_id)

    def get_config(self, chore_id: str) -> ChoreConfig | None:
        """Config for an instance, falling back to the status fields."""
        if self.data and chore_id in self.data.configs:
            return self.data.configs[chore_id]
        instance = self.get_instance(chore_id)
        if instance is None:
            return None
        return ChoreConfig(
            interval_seconds=instance.interval_seconds,
            max_interval_seconds=instance.max_interval_seconds,
            task_timeout_seconds=instance.task_timeout_seconds,
        )

    def instances_by_type(self) -> dict[str, list[ChoreInstance]]:
        """Group instances by chore type, keeping first-seen order."""
        result: dict[str, list[ChoreInstance]] = {}
        for instance in self.instances.values():
            result.setdefault(instance.chore_type_id, []).append(instance)
        return result

    @callback
    def async_patch_instance(self, chore_id: str, **changes: Any) -> ChoreInstance | None:
        """Apply an optimistic local change to one instance.

        Listeners (entities, the refresh scheduler) are notified as if fresh
        data had arrived. The next refresh overwrites the patch.
        """
        instance = self.get_instance(chore_id)
        if instance is None or self.data is None:
            _LOGGER.debug("Not patching unknown chore %s", chore_id)
            return None

        patched = dataclasses.replace(instance, **changes)
        self.async_set_updated_data(
            ChoreSnapshot(
                instances={**self.data.instances, chore_id: patched},
                configs=self.data.configs,
            )
        )
        return patched
