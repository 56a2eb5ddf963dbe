"""Config flow for Bot Chores integration."""
from __future__ import annotations

import logging
from typing import Any

import aiohttp
import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResult
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from .const import (
    API_CANISTERS,
    CALL_QUERY,
    CONF_API_TOKEN,
    CONF_CANISTER_ID,
    CONF_GATEWAY_URL,
    DEFAULT_GATEWAY_URL,
    DOMAIN,
    METHOD_GET_CHORE_STATUSES,
)

_LOGGER = logging.getLogger(__name__)

# Configuration step schemas
STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_GATEWAY_URL, default=DEFAULT_GATEWAY_URL): cv.string,
        vol.Required(CONF_CANISTER_ID): cv.string,
        vol.Optional(CONF_API_TOKEN): cv.string,
    }
)


async def validate_input(
    hass: HomeAssistant,  # noqa: ARG001
    data: dict[str, Any],
) -> dict[str, Any]:
    """Validate that the gateway answers chore queries for the canister.

    Data has the keys from STEP_USER_DATA_SCHEMA with values provided by the user.
    """
    gateway_url = data[CONF_GATEWAY_URL].rstrip("/")
    canister_id = data[CONF_CANISTER_ID].strip()
    url = (
        f"{gateway_url}{API_CANISTERS}/{canister_id}/{CALL_QUERY}/"
        f"{METHOD_GET_CHORE_STATUSES}"
    )
    headers = {}
    if data.get(CONF_API_TOKEN):
        headers["Authorization"] = f"Bearer {data[CONF_API_TOKEN]}"

    async with aiohttp.ClientSession() as session:
        try:
            async with session.post(
                url,
                json={"args": []},
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=10),
            ) as response:
                if response.status != 200:
                    raise CannotConnect(
                        f"Gateway returned status {response.status}"
                    )
                payload = await response.json()
        except aiohttp.ClientError as err:
            _LOGGER.error("Cannot connect to agent gateway: %s", err)
            raise CannotConnect(f"Cannot connect to gateway: {err}") from err

    if "reject" in payload:
        raise NotABot(payload["reject"])

    return {
        "title": f"Bot {canister_id}",
        CONF_GATEWAY_URL: gateway_url,
        CONF_CANISTER_ID: canister_id,
    }


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Bot Chores."""

    VERSION = 1

    async def async_step_user(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> FlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                info = await validate_input(self.hass, user_input)
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except NotABot:
                errors["base"] = "not_a_bot"
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Unexpected exception")
                errors["base"] = "unknown"
            else:
                await self.async_set_unique_id(info[CONF_CANISTER_ID])
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=info["title"],
                    data={
                        **user_input,
                        CONF_GATEWAY_URL: info[CONF_GATEWAY_URL],
                        CONF_CANISTER_ID: info[CONF_CANISTER_ID],
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )


class CannotConnect(HomeAssistantError):
    """Error to indicate we cannot connect."""


class NotABot(HomeAssistantError):
    """Error to indicate the canister does not expose the chore API."""
