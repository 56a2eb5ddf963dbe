"""The Bot Chores integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import voluptuous as vol
from homeassistant.core import SupportsResponse
from homeassistant.helpers import config_validation as cv

from .api_client import BotChoresApiClient
from .const import (
    ATTR_CHORE_ID,
    ATTR_CHORE_TYPE_ID,
    ATTR_INTERVAL_SECONDS,
    ATTR_LABEL,
    ATTR_LIST_ID,
    ATTR_MAX_DISTRIBUTION_AMOUNT,
    ATTR_MAX_INTERVAL_SECONDS,
    ATTR_NAME,
    ATTR_NEXT_RUN_AT,
    ATTR_OWNER,
    ATTR_PERCENT,
    ATTR_SOURCE_SUBACCOUNT,
    ATTR_START_AT,
    ATTR_SUBACCOUNT,
    ATTR_TARGETS,
    ATTR_THRESHOLD_AMOUNT,
    ATTR_TOKEN_LEDGER_ID,
    COLLECT_MATURITY,
    CONF_API_TOKEN,
    CONF_CANISTER_ID,
    CONF_GATEWAY_URL,
    COORDINATOR,
    DISTRIBUTION_EDITORS,
    DOMAIN,
    LIFECYCLE,
    PLATFORMS,
    REFRESH_SCHEDULER,
    SERVICE_ADD_DISTRIBUTION_LIST,
    SERVICE_CLEAR_CHORE_MAX_INTERVAL,
    SERVICE_CREATE_CHORE_INSTANCE,
    SERVICE_DELETE_CHORE_INSTANCE,
    SERVICE_GET_COLLECT_SETTINGS,
    SERVICE_GET_DISTRIBUTION_LISTS,
    SERVICE_PAUSE_CHORE,
    SERVICE_REFRESH_DATA,
    SERVICE_REMOVE_DISTRIBUTION_LIST,
    SERVICE_RENAME_CHORE_INSTANCE,
    SERVICE_RESUME_CHORE,
    SERVICE_SCHEDULE_START_CHORE,
    SERVICE_SET_CHORE_INTERVAL,
    SERVICE_SET_CHORE_NEXT_RUN,
    SERVICE_SET_COLLECT_DESTINATION,
    SERVICE_SET_COLLECT_THRESHOLD,
    SERVICE_START_CHORE,
    SERVICE_STOP_CHORE,
    SERVICE_TRIGGER_CHORE,
    SERVICE_UPDATE_DISTRIBUTION_LIST,
    UPDATE_LISTENER,
)
from .coordinator import BotChoresDataUpdateCoordinator
from .distribution import (
    CollectMaturityController,
    DistributionListDraft,
    DistributionListEditor,
    TargetDraft,
    account_from_input,
    describe_collect_settings,
    describe_list,
)
from .errors import ChoreValidationError
from .lifecycle import ChoreLifecycleController
from .models import datetime_to_ns
from .refresh import RefreshScheduler
from .verifier import WriteVerifier

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse

_LOGGER = logging.getLogger(__name__)

# Service schemas
CHORE_SCHEMA = vol.Schema({vol.Required(ATTR_CHORE_ID): cv.string})

SERVICE_SCHEDULE_START_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Required(ATTR_START_AT): cv.datetime,
    }
)

SERVICE_SET_NEXT_RUN_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Required(ATTR_NEXT_RUN_AT): cv.datetime,
    }
)

# Bounds are enforced by the lifecycle controller so the operator gets one message
SERVICE_SET_INTERVAL_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Required(ATTR_INTERVAL_SECONDS): vol.Coerce(int),
        vol.Optional(ATTR_MAX_INTERVAL_SECONDS): vol.Coerce(int),
    }
)

SERVICE_CREATE_INSTANCE_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_TYPE_ID): cv.string,
        vol.Required(ATTR_LABEL): cv.string,
    }
)

SERVICE_RENAME_INSTANCE_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Required(ATTR_LABEL): cv.string,
    }
)

SERVICE_SET_COLLECT_THRESHOLD_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Optional(ATTR_THRESHOLD_AMOUNT): vol.Coerce(int),
    }
)

SERVICE_SET_COLLECT_DESTINATION_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Optional(ATTR_OWNER): cv.string,
        vol.Optional(ATTR_SUBACCOUNT): cv.string,
    }
)

TARGET_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_OWNER): cv.string,
        vol.Optional(ATTR_SUBACCOUNT): cv.string,
        vol.Optional(ATTR_PERCENT): vol.All(
            vol.Coerce(float), vol.Range(min=0, max=100)
        ),
    }
)

DISTRIBUTION_LIST_FIELDS = {
    vol.Required(ATTR_CHORE_ID): cv.string,
    vol.Required(ATTR_NAME): cv.string,
    vol.Required(ATTR_TOKEN_LEDGER_ID): cv.string,
    vol.Optional(ATTR_SOURCE_SUBACCOUNT): cv.string,
    vol.Optional(ATTR_THRESHOLD_AMOUNT, default=0): vol.Coerce(int),
    vol.Optional(ATTR_MAX_DISTRIBUTION_AMOUNT, default=0): vol.Coerce(int),
    vol.Required(ATTR_TARGETS): vol.All(cv.ensure_list, [TARGET_SCHEMA]),
}

SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA = vol.Schema(DISTRIBUTION_LIST_FIELDS)

SERVICE_UPDATE_DISTRIBUTION_LIST_SCHEMA = vol.Schema(
    {**DISTRIBUTION_LIST_FIELDS, vol.Required(ATTR_LIST_ID): cv.positive_int}
)

SERVICE_REMOVE_DISTRIBUTION_LIST_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CHORE_ID): cv.string,
        vol.Required(ATTR_LIST_ID): cv.positive_int,
    }
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Bot Chores from a config entry."""
    _LOGGER.debug("Setting up Bot Chores integration")

    hass.data.setdefault(DOMAIN, {})

    api_client = BotChoresApiClient(
        hass,
        entry.data[CONF_GATEWAY_URL],
        entry.data[CONF_CANISTER_ID],
        entry.data.get(CONF_API_TOKEN),
    )

    coordinator = BotChoresDataUpdateCoordinator(hass, api_client, config_entry=entry)

    # Fetch initial data
    await coordinator.async_config_entry_first_refresh()

    verifier = WriteVerifier(hass, coordinator)
    refresh_scheduler = RefreshScheduler(hass, coordinator)

    hass.data[DOMAIN][entry.entry_id] = {
        COORDINATOR: coordinator,
        LIFECYCLE: ChoreLifecycleController(hass, coordinator, verifier),
        REFRESH_SCHEDULER: refresh_scheduler,
        DISTRIBUTION_EDITORS: {},
        COLLECT_MATURITY: {},
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    refresh_scheduler.async_start()

    # A changed entry (e.g. another canister) restarts everything
    hass.data[DOMAIN][entry.entry_id][UPDATE_LISTENER] = entry.add_update_listener(
        async_reload_entry
    )

    await async_setup_services(hass)

    _LOGGER.info(
        "Bot Chores integration setup complete for canister %s",
        entry.data[CONF_CANISTER_ID],
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.debug("Unloading Bot Chores integration")

    entry_data = hass.data[DOMAIN][entry.entry_id]
    entry_data[REFRESH_SCHEDULER].async_stop()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        entry_data[UPDATE_LISTENER]()
        hass.data[DOMAIN].pop(entry.entry_id)

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry after its configuration changed."""
    await hass.config_entries.async_reload(entry.entry_id)


def _entry_for_chore(hass: HomeAssistant, chore_id: str) -> dict:
    """Find the entry whose bot knows the chore."""
    for data in hass.data.get(DOMAIN, {}).values():
        if COORDINATOR in data and data[COORDINATOR].get_instance(chore_id) is not None:
            return data
    raise ChoreValidationError(f"Unknown chore {chore_id}")


def get_distribution_editor(
    hass: HomeAssistant,
    chore_id: str,
) -> DistributionListEditor:
    """Return the cached editor for a chore's distribution lists."""
    data = _entry_for_chore(hass, chore_id)
    editors = data[DISTRIBUTION_EDITORS]
    if chore_id not in editors:
        editors[chore_id] = DistributionListEditor(
            data[COORDINATOR].api_client, chore_id
        )
    return editors[chore_id]


def get_collect_controller(
    hass: HomeAssistant,
    chore_id: str,
) -> CollectMaturityController:
    data = _entry_for_chore(hass, chore_id)
    controllers = data[COLLECT_MATURITY]
    if chore_id not in controllers:
        controllers[chore_id] = CollectMaturityController(
            data[COORDINATOR].api_client, chore_id
        )
    return controllers[chore_id]


def _draft_from_call(call: ServiceCall) -> DistributionListDraft:
    return DistributionListDraft(
        name=call.data[ATTR_NAME],
        token_ledger_id=call.data[ATTR_TOKEN_LEDGER_ID],
        source_subaccount=call.data.get(ATTR_SOURCE_SUBACCOUNT),
        threshold_amount=call.data[ATTR_THRESHOLD_AMOUNT],
        max_distribution_amount=call.data[ATTR_MAX_DISTRIBUTION_AMOUNT],
        targets=[
            TargetDraft(
                owner=target[ATTR_OWNER],
                subaccount=target.get(ATTR_SUBACCOUNT),
                percent=target.get(ATTR_PERCENT),
            )
            for target in call.data[ATTR_TARGETS]
        ],
        list_id=call.data.get(ATTR_LIST_ID),
    )


def _log_allocation(draft: DistributionListDraft) -> None:
    summary = draft.preview().summary()
    if summary:
        _LOGGER.info("Distribution list %s: %s", draft.name, summary)


async def async_setup_services(hass: HomeAssistant) -> None:
    """Set up services for Bot Chores."""
    if hass.services.has_service(DOMAIN, SERVICE_REFRESH_DATA):
        return

    def lifecycle_for(call: ServiceCall) -> ChoreLifecycleController:
        return _entry_for_chore(hass, call.data[ATTR_CHORE_ID])[LIFECYCLE]

    async def handle_start_chore(call: ServiceCall) -> None:
        await lifecycle_for(call).async_start(call.data[ATTR_CHORE_ID])

    async def handle_stop_chore(call: ServiceCall) -> None:
        await lifecycle_for(call).async_stop(call.data[ATTR_CHORE_ID])

    async def handle_pause_chore(call: ServiceCall) -> None:
        await lifecycle_for(call).async_pause(call.data[ATTR_CHORE_ID])

    async def handle_resume_chore(call: ServiceCall) -> None:
        await lifecycle_for(call).async_resume(call.data[ATTR_CHORE_ID])

    async def handle_trigger_chore(call: ServiceCall) -> None:
        await lifecycle_for(call).async_trigger(call.data[ATTR_CHORE_ID])

    async def handle_schedule_start_chore(call: ServiceCall) -> None:
        """Handle schedule_start_chore service call."""
        await lifecycle_for(call).async_schedule_start(
            call.data[ATTR_CHORE_ID],
            datetime_to_ns(call.data[ATTR_START_AT]),
        )

    async def handle_set_chore_interval(call: ServiceCall) -> None:
        """Handle set_chore_interval service call."""
        _LOGGER.debug(
            "Setting interval of %s to %s (max %s)",
            call.data[ATTR_CHORE_ID],
            call.data[ATTR_INTERVAL_SECONDS],
            call.data.get(ATTR_MAX_INTERVAL_SECONDS),
        )
        await lifecycle_for(call).async_set_interval(
            call.data[ATTR_CHORE_ID],
            call.data[ATTR_INTERVAL_SECONDS],
            call.data.get(ATTR_MAX_INTERVAL_SECONDS),
        )

    async def handle_clear_chore_max_interval(call: ServiceCall) -> None:
        await lifecycle_for(call).async_clear_max_interval(call.data[ATTR_CHORE_ID])

    async def handle_set_chore_next_run(call: ServiceCall) -> None:
        """Handle set_chore_next_run service call."""
        await lifecycle_for(call).async_set_next_run(
            call.data[ATTR_CHORE_ID],
            datetime_to_ns(call.data[ATTR_NEXT_RUN_AT]),
        )

    async def handle_create_chore_instance(call: ServiceCall) -> None:
        """Handle create_chore_instance service call."""
        entries = [
            data for data in hass.data.get(DOMAIN, {}).values() if LIFECYCLE in data
        ]
        type_id = call.data[ATTR_CHORE_TYPE_ID]
        target = next(
            (
                data
                for data in entries
                if type_id in data[COORDINATOR].instances_by_type()
            ),
            entries[0] if entries else None,
        )
        if target is None:
            raise ChoreValidationError(f"No bot configured to create {type_id} in")
        await target[LIFECYCLE].async_create_instance(type_id, call.data[ATTR_LABEL])

    async def handle_rename_chore_instance(call: ServiceCall) -> None:
        await lifecycle_for(call).async_rename_instance(
            call.data[ATTR_CHORE_ID], call.data[ATTR_LABEL]
        )

    async def handle_delete_chore_instance(call: ServiceCall) -> None:
        await lifecycle_for(call).async_delete_instance(call.data[ATTR_CHORE_ID])

    async def handle_set_collect_threshold(call: ServiceCall) -> None:
        """Handle set_collect_maturity_threshold; no amount clears it."""
        controller = get_collect_controller(hass, call.data[ATTR_CHORE_ID])
        await controller.async_set_threshold(call.data.get(ATTR_THRESHOLD_AMOUNT))

    async def handle_set_collect_destination(call: ServiceCall) -> None:
        """Handle set_collect_maturity_destination; no owner clears it."""
        controller = get_collect_controller(hass, call.data[ATTR_CHORE_ID])
        destination = None
        if ATTR_OWNER in call.data:
            destination = account_from_input(
                call.data[ATTR_OWNER], call.data.get(ATTR_SUBACCOUNT)
            )
        await controller.async_set_destination(destination)

    async def handle_add_distribution_list(call: ServiceCall) -> None:
        """Handle add_distribution_list service call."""
        editor = get_distribution_editor(hass, call.data[ATTR_CHORE_ID])
        draft = _draft_from_call(call)
        await editor.async_add(draft)
        _log_allocation(draft)

    async def handle_update_distribution_list(call: ServiceCall) -> None:
        """Handle update_distribution_list service call."""
        editor = get_distribution_editor(hass, call.data[ATTR_CHORE_ID])
        draft = _draft_from_call(call)
        await editor.async_update(call.data[ATTR_LIST_ID], draft)
        _log_allocation(draft)

    async def handle_remove_distribution_list(call: ServiceCall) -> None:
        editor = get_distribution_editor(hass, call.data[ATTR_CHORE_ID])
        await editor.async_remove(call.data[ATTR_LIST_ID])

    async def handle_get_distribution_lists(call: ServiceCall) -> ServiceResponse:
        """Return the stored lists of a chore with their effective shares."""
        editor = get_distribution_editor(hass, call.data[ATTR_CHORE_ID])
        lists = await editor.async_load()
        return {
            "chore_id": editor.chore_id,
            "lists": [describe_list(item) for item in lists.values()],
        }

    async def handle_get_collect_settings(call: ServiceCall) -> ServiceResponse:
        controller = get_collect_controller(hass, call.data[ATTR_CHORE_ID])
        settings = await controller.async_load()
        return {
            "chore_id": controller.chore_id,
            **describe_collect_settings(settings),
        }

    async def handle_refresh_data(_call: ServiceCall) -> None:
        """Handle refresh_data service call."""
        _LOGGER.debug("Refreshing Bot Chores data")
        for data in hass.data.get(DOMAIN, {}).values():
            if COORDINATOR in data:
                await data[COORDINATOR].async_request_refresh()

    services = [
        (SERVICE_START_CHORE, handle_start_chore, CHORE_SCHEMA),
        (SERVICE_STOP_CHORE, handle_stop_chore, CHORE_SCHEMA),
        (SERVICE_PAUSE_CHORE, handle_pause_chore, CHORE_SCHEMA),
        (SERVICE_RESUME_CHORE, handle_resume_chore, CHORE_SCHEMA),
        (SERVICE_TRIGGER_CHORE, handle_trigger_chore, CHORE_SCHEMA),
        (
            SERVICE_SCHEDULE_START_CHORE,
            handle_schedule_start_chore,
            SERVICE_SCHEDULE_START_SCHEMA,
        ),
        (SERVICE_SET_CHORE_INTERVAL, handle_set_chore_interval, SERVICE_SET_INTERVAL_SCHEMA),
        (SERVICE_CLEAR_CHORE_MAX_INTERVAL, handle_clear_chore_max_interval, CHORE_SCHEMA),
        (SERVICE_SET_CHORE_NEXT_RUN, handle_set_chore_next_run, SERVICE_SET_NEXT_RUN_SCHEMA),
        (
            SERVICE_CREATE_CHORE_INSTANCE,
            handle_create_chore_instance,
            SERVICE_CREATE_INSTANCE_SCHEMA,
        ),
        (
            SERVICE_RENAME_CHORE_INSTANCE,
            handle_rename_chore_instance,
            SERVICE_RENAME_INSTANCE_SCHEMA,
        ),
        (SERVICE_DELETE_CHORE_INSTANCE, handle_delete_chore_instance, CHORE_SCHEMA),
        (
            SERVICE_SET_COLLECT_THRESHOLD,
            handle_set_collect_threshold,
            SERVICE_SET_COLLECT_THRESHOLD_SCHEMA,
        ),
        (
            SERVICE_SET_COLLECT_DESTINATION,
            handle_set_collect_destination,
            SERVICE_SET_COLLECT_DESTINATION_SCHEMA,
        ),
        (
            SERVICE_ADD_DISTRIBUTION_LIST,
            handle_add_distribution_list,
            SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA,
        ),
        (
            SERVICE_UPDATE_DISTRIBUTION_LIST,
            handle_update_distribution_list,
            SERVICE_UPDATE_DISTRIBUTION_LIST_SCHEMA,
        ),
        (
            SERVICE_REMOVE_DISTRIBUTION_LIST,
            handle_remove_distribution_list,
            SERVICE_REMOVE_DISTRIBUTION_LIST_SCHEMA,
        ),
        (SERVICE_REFRESH_DATA, handle_refresh_data, None),
    ]

    for name, handler, schema in services:
        hass.services.async_register(DOMAIN, name, handler, schema=schema)

    for name, handler in (
        (SERVICE_GET_DISTRIBUTION_LISTS, handle_get_distribution_lists),
        (SERVICE_GET_COLLECT_SETTINGS, handle_get_collect_settings),
    ):
        hass.services.async_register(
            DOMAIN,
            name,
            handler,
            schema=CHORE_SCHEMA,
            supports_response=SupportsResponse.ONLY,
        )

    _LOGGER.debug("Bot Chores services registered")
