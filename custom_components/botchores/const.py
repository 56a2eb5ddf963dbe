"""Constants for the Bot Chores integration."""
from typing import Final

# Integration domain
DOMAIN: Final = "botchores"

# Configuration
CONF_GATEWAY_URL: Final = "gateway_url"
CONF_CANISTER_ID: Final = "canister_id"
CONF_API_TOKEN: Final = "api_token"

# Defaults
DEFAULT_GATEWAY_URL: Final = "http://localhost:4943"

# Platforms
PLATFORMS: Final = ["sensor", "button", "binary_sensor"]

# Refresh scheduling (milliseconds)
REFRESH_ACTIVE_DELAY_MS: Final = 5_000
REFRESH_IDLE_DELAY_MS: Final = 60_000
REFRESH_AFTER_RUN_MARGIN_MS: Final = 3_000

# Write verification
VERIFY_DELAY_SECONDS: Final = 2.5

# Chore interval bounds (seconds)
MIN_INTERVAL_SECONDS: Final = 60
MAX_INTERVAL_SECONDS: Final = 31_536_000

# Distribution
TOTAL_BASIS_POINTS: Final = 10_000
SUBACCOUNT_LENGTH: Final = 32

# Events
EVENT_WRITE_MISMATCH: Final = f"{DOMAIN}_write_mismatch"

# Service names
SERVICE_START_CHORE: Final = "start_chore"
SERVICE_STOP_CHORE: Final = "stop_chore"
SERVICE_PAUSE_CHORE: Final = "pause_chore"
SERVICE_RESUME_CHORE: Final = "resume_chore"
SERVICE_TRIGGER_CHORE: Final = "trigger_chore"
SERVICE_SCHEDULE_START_CHORE: Final = "schedule_start_chore"
SERVICE_SET_CHORE_INTERVAL: Final = "set_chore_interval"
SERVICE_CLEAR_CHORE_MAX_INTERVAL: Final = "clear_chore_max_interval"
SERVICE_SET_CHORE_NEXT_RUN: Final = "set_chore_next_run"
SERVICE_CREATE_CHORE_INSTANCE: Final = "create_chore_instance"
SERVICE_RENAME_CHORE_INSTANCE: Final = "rename_chore_instance"
SERVICE_DELETE_CHORE_INSTANCE: Final = "delete_chore_instance"
SERVICE_SET_COLLECT_THRESHOLD: Final = "set_collect_maturity_threshold"
SERVICE_SET_COLLECT_DESTINATION: Final = "set_collect_maturity_destination"
SERVICE_ADD_DISTRIBUTION_LIST: Final = "add_distribution_list"
SERVICE_UPDATE_DISTRIBUTION_LIST: Final = "update_distribution_list"
SERVICE_REMOVE_DISTRIBUTION_LIST: Final = "remove_distribution_list"
SERVICE_GET_DISTRIBUTION_LISTS: Final = "get_distribution_lists"
SERVICE_GET_COLLECT_SETTINGS: Final = "get_collect_maturity_settings"
SERVICE_REFRESH_DATA: Final = "refresh_data"

# Service parameters
ATTR_CHORE_ID: Final = "chore_id"
ATTR_CHORE_TYPE_ID: Final = "chore_type_id"
ATTR_LABEL: Final = "label"
ATTR_START_AT: Final = "start_at"
ATTR_NEXT_RUN_AT: Final = "next_run_at"
ATTR_INTERVAL_SECONDS: Final = "interval_seconds"
ATTR_MAX_INTERVAL_SECONDS: Final = "max_interval_seconds"
ATTR_THRESHOLD_AMOUNT: Final = "threshold_amount"
ATTR_OWNER: Final = "owner"
ATTR_SUBACCOUNT: Final = "subaccount"
ATTR_LIST_ID: Final = "list_id"
ATTR_NAME: Final = "name"
ATTR_TOKEN_LEDGER_ID: Final = "token_ledger_id"
ATTR_SOURCE_SUBACCOUNT: Final = "source_subaccount"
ATTR_MAX_DISTRIBUTION_AMOUNT: Final = "max_distribution_amount"
ATTR_TARGETS: Final = "targets"
ATTR_PERCENT: Final = "percent"

# Agent gateway
API_CANISTERS: Final = "/api/canisters"
CALL_QUERY: Final = "query"
CALL_UPDATE: Final = "call"

# Agent methods
METHOD_GET_CHORE_STATUSES: Final = "getChoreStatuses"
METHOD_GET_CHORE_CONFIGS: Final = "getChoreConfigs"
METHOD_START_CHORE: Final = "startChore"
METHOD_STOP_CHORE: Final = "stopChore"
METHOD_PAUSE_CHORE: Final = "pauseChore"
METHOD_RESUME_CHORE: Final = "resumeChore"
METHOD_TRIGGER_CHORE: Final = "triggerChore"
METHOD_SCHEDULE_START_CHORE: Final = "scheduleStartChore"
METHOD_SET_CHORE_NEXT_RUN: Final = "setChoreNextRun"
METHOD_SET_CHORE_INTERVAL: Final = "setChoreInterval"
METHOD_SET_CHORE_MAX_INTERVAL: Final = "setChoreMaxInterval"
METHOD_CREATE_CHORE_INSTANCE: Final = "createChoreInstance"
METHOD_RENAME_CHORE_INSTANCE: Final = "renameChoreInstance"
METHOD_DELETE_CHORE_INSTANCE: Final = "deleteChoreInstance"
METHOD_GET_COLLECT_MATURITY_SETTINGS: Final = "getCollectMaturitySettings"
METHOD_SET_COLLECT_MATURITY_THRESHOLD: Final = "setCollectMaturityThreshold"
METHOD_SET_COLLECT_MATURITY_DESTINATION: Final = "setCollectMaturityDestination"
METHOD_GET_DISTRIBUTION_LISTS: Final = "getDistributionLists"
METHOD_ADD_DISTRIBUTION_LIST: Final = "addDistributionList"
METHOD_UPDATE_DISTRIBUTION_LIST: Final = "updateDistributionList"
METHOD_REMOVE_DISTRIBUTION_LIST: Final = "removeDistributionList"

# hass.data keys
COORDINATOR: Final = "coordinator"
LIFECYCLE: Final = "lifecycle"
REFRESH_SCHEDULER: Final = "refresh_scheduler"
DISTRIBUTION_EDITORS: Final = "distribution_editors"
COLLECT_MATURITY: Final = "collect_maturity"
UPDATE_LISTENER: Final = "update_listener"
