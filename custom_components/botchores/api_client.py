"""Agent client for a bot canister behind an HTTP gateway."""
from __future__ import annotations

import logging
from typing import Any

import aiohttp
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import (
    API_CANISTERS,
    CALL_QUERY,
    CALL_UPDATE,
    METHOD_ADD_DISTRIBUTION_LIST,
    METHOD_CREATE_CHORE_INSTANCE,
    METHOD_DELETE_CHORE_INSTANCE,
    METHOD_GET_CHORE_CONFIGS,
    METHOD_GET_CHORE_STATUSES,
    METHOD_GET_COLLECT_MATURITY_SETTINGS,
    METHOD_GET_DISTRIBUTION_LISTS,
    METHOD_PAUSE_CHORE,
    METHOD_REMOVE_DISTRIBUTION_LIST,
    METHOD_RENAME_CHORE_INSTANCE,
    METHOD_RESUME_CHORE,
    METHOD_SCHEDULE_START_CHORE,
    METHOD_SET_CHORE_INTERVAL,
    METHOD_SET_CHORE_MAX_INTERVAL,
    METHOD_SET_CHORE_NEXT_RUN,
    METHOD_SET_COLLECT_MATURITY_DESTINATION,
    METHOD_SET_COLLECT_MATURITY_THRESHOLD,
    METHOD_START_CHORE,
    METHOD_STOP_CHORE,
    METHOD_TRIGGER_CHORE,
    METHOD_UPDATE_DISTRIBUTION_LIST,
)
from .errors import AgentConnectionError, AgentRejectedError
from .models import (
    Account,
    ChoreConfig,
    ChoreInstance,
    CollectMaturitySettings,
    DistributionList,
    DistributionListInput,
    to_opt,
)

_LOGGER = logging.getLogger(__name__)


class BotChoresApiClient:
    """Agent for the chore and distribution surface of one bot canister."""

    def __init__(
        self,
        hass: HomeAssistant,
        gateway_url: str,
        canister_id: str,
        api_token: str | None = None,
    ) -> None:
        """Initialize the API client."""
        self.hass = hass
        self.gateway_url = gateway_url.rstrip("/")
        self.canister_id = canister_id
        self.api_token = api_token
        self.session = async_get_clientsession(hass)

    async def _request(
        self,
        kind: str,
        method: str,
        *args: Any,
    ) -> Any:
        """Invoke a canister method through the gateway."""
        url = f"{self.gateway_url}{API_CANISTERS}/{self.canister_id}/{kind}/{method}"
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        try:
            async with self.session.request(
                "POST",
                url,
                json={"args": list(args)},
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=10),
            ) as response:
                response.raise_for_status()
                payload = await response.json()
        except aiohttp.ClientError as err:
            _LOGGER.error("Error communicating with agent gateway: %s", err)
            raise AgentConnectionError(str(err)) from err
        except TimeoutError as err:
            _LOGGER.error("Timed out calling %s", method)
            raise AgentConnectionError(f"Timed out calling {method}") from err

        if "reject" in payload:
            _LOGGER.debug("Canister rejected %s: %s", method, payload["reject"])
            raise AgentRejectedError(payload["reject"])
        return payload.get("result")

    async def _query(self, method: str, *args: Any) -> Any:
        return await self._request(CALL_QUERY, method, *args)

    async def _call(self, method: str, *args: Any) -> Any:
        return await self._request(CALL_UPDATE, method, *args)

    # Chore status endpoints
    async def get_chore_statuses(self) -> list[ChoreInstance]:
        """Get the status of every chore instance."""
        result = await self._query(METHOD_GET_CHORE_STATUSES)
        return [ChoreInstance.from_wire(item) for item in result or []]

    async def get_chore_configs(self) -> dict[str, ChoreConfig]:
        """Get the scheduling config of every chore instance."""
        result = await self._query(METHOD_GET_CHORE_CONFIGS)
        return {
            chore_id: ChoreConfig.from_wire(config)
            for chore_id, config in result or []
        }

    # Chore lifecycle endpoints
    async def start_chore(self, chore_id: str) -> None:
        await self._call(METHOD_START_CHORE, chore_id)

    async def stop_chore(self, chore_id: str) -> None:
        await self._call(METHOD_STOP_CHORE, chore_id)

    async def pause_chore(self, chore_id: str) -> None:
        await self._call(METHOD_PAUSE_CHORE, chore_id)

    async def resume_chore(self, chore_id: str) -> None:
        await self._call(METHOD_RESUME_CHORE, chore_id)

    async def trigger_chore(self, chore_id: str) -> None:
        await self._call(METHOD_TRIGGER_CHORE, chore_id)

    async def schedule_start_chore(self, chore_id: str, start_at_ns: int) -> None:
        """Enable a chore with its first run pinned at start_at_ns."""
        await self._call(METHOD_SCHEDULE_START_CHORE, chore_id, start_at_ns)

    async def set_chore_next_run(self, chore_id: str, next_run_ns: int) -> None:
        await self._call(METHOD_SET_CHORE_NEXT_RUN, chore_id, next_run_ns)

    async def set_chore_interval(self, chore_id: str, seconds: int) -> None:
        await self._call(METHOD_SET_CHORE_INTERVAL, chore_id, seconds)

    async def set_chore_max_interval(
        self,
        chore_id: str,
        seconds: int | None,
    ) -> None:
        """Set or clear (None) the randomized scheduling window."""
        await self._call(METHOD_SET_CHORE_MAX_INTERVAL, chore_id, to_opt(seconds))

    # Chore instance endpoints
    async def create_chore_instance(
        self,
        type_id: str,
        instance_id: str,
        label: str,
    ) -> bool:
        """Create a new instance of a chore type."""
        return bool(
            await self._call(METHOD_CREATE_CHORE_INSTANCE, type_id, instance_id, label)
        )

    async def rename_chore_instance(self, chore_id: str, label: str) -> bool:
        return bool(await self._call(METHOD_RENAME_CHORE_INSTANCE, chore_id, label))

    async def delete_chore_instance(self, chore_id: str) -> bool:
        """Delete a stopped chore instance."""
        return bool(await self._call(METHOD_DELETE_CHORE_INSTANCE, chore_id))

    # Collect maturity endpoints
    async def get_collect_maturity_settings(
        self,
        chore_id: str,
    ) -> CollectMaturitySettings:
        result = await self._query(METHOD_GET_COLLECT_MATURITY_SETTINGS, chore_id)
        return CollectMaturitySettings.from_wire(result or {})

    async def set_collect_maturity_threshold(
        self,
        chore_id: str,
        amount: int | None,
    ) -> None:
        await self._call(METHOD_SET_COLLECT_MATURITY_THRESHOLD, chore_id, to_opt(amount))

    async def set_collect_maturity_destination(
        self,
        chore_id: str,
        account: Account | None,
    ) -> None:
        await self._call(
            METHOD_SET_COLLECT_MATURITY_DESTINATION,
            chore_id,
            to_opt(None if account is None else account.to_wire()),
        )

    # Distribution endpoints
    async def get_distribution_lists(self, chore_id: str) -> list[DistributionList]:
        """Get the distribution lists of a chore instance."""
        result = await self._query(METHOD_GET_DISTRIBUTION_LISTS, chore_id)
        return [DistributionList.from_wire(item) for item in result or []]

    async def add_distribution_list(
        self,
        chore_id: str,
        definition: DistributionListInput,
    ) -> int:
        """Add a distribution list and return its server-assigned id."""
        return int(
            await self._call(
                METHOD_ADD_DISTRIBUTION_LIST, chore_id, definition.to_wire()
            )
        )

    async def update_distribution_list(
        self,
        chore_id: str,
        list_id: int,
        definition: DistributionListInput,
    ) -> None:
        """Replace a distribution list in full."""
        await self._call(
            METHOD_UPDATE_DISTRIBUTION_LIST, chore_id, list_id, definition.to_wire()
        )

    async def remove_distribution_list(self, chore_id: str, list_id: int) -> None:
        await self._call(METHOD_REMOVE_DISTRIBUTION_LIST, chore_id, list_id)
