"""Tests for Bot Chores services."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import voluptuous as vol
from homeassistant.core import SupportsResponse

from custom_components.botchores import (
    SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA,
    SERVICE_SET_INTERVAL_SCHEMA,
    SERVICE_SET_NEXT_RUN_SCHEMA,
    async_setup_services,
)
from custom_components.botchores.const import (
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
    ATTR_SUBACCOUNT,
    ATTR_TARGETS,
    ATTR_THRESHOLD_AMOUNT,
    ATTR_TOKEN_LEDGER_ID,
    COLLECT_MATURITY,
    COORDINATOR,
    DISTRIBUTION_EDITORS,
    DOMAIN,
    LIFECYCLE,
    SERVICE_ADD_DISTRIBUTION_LIST,
    SERVICE_CREATE_CHORE_INSTANCE,
    SERVICE_GET_COLLECT_SETTINGS,
    SERVICE_GET_DISTRIBUTION_LISTS,
    SERVICE_PAUSE_CHORE,
    SERVICE_REFRESH_DATA,
    SERVICE_REMOVE_DISTRIBUTION_LIST,
    SERVICE_SET_CHORE_INTERVAL,
    SERVICE_SET_CHORE_NEXT_RUN,
    SERVICE_SET_COLLECT_DESTINATION,
    SERVICE_SET_COLLECT_THRESHOLD,
    SERVICE_START_CHORE,
    SERVICE_UPDATE_DISTRIBUTION_LIST,
)
from custom_components.botchores.errors import (
    ChoreValidationError,
    DistributionValidationError,
)
from custom_components.botchores.models import (
    Account,
    CollectMaturitySettings,
    DistributionList,
    DistributionTarget,
    datetime_to_ns,
)

TOKEN = "ryjl3-tyaaa-aaaaa-aaaba-cai"


@pytest.fixture
def mock_lifecycle():
    """Return a mocked lifecycle controller."""
    return AsyncMock()


@pytest.fixture
def mock_hass(mock_coordinator, mock_lifecycle):
    """Return a mocked Home Assistant instance with one bot."""
    hass = MagicMock()
    hass.data = {
        DOMAIN: {
            "test_entry_id": {
                COORDINATOR: mock_coordinator,
                LIFECYCLE: mock_lifecycle,
                DISTRIBUTION_EDITORS: {},
                COLLECT_MATURITY: {},
            }
        }
    }
    hass.services = MagicMock()
    hass.services.has_service.return_value = False
    hass.services.async_register = MagicMock()
    return hass


@pytest.fixture
async def handlers(mock_hass):
    """Set up services and return handlers by name."""
    await async_setup_services(mock_hass)
    return {
        call[0][1]: call[0][2]
        for call in mock_hass.services.async_register.call_args_list
    }


def _call(**data):
    call = MagicMock()
    call.data = data
    return call


class TestServiceRegistration:
    """Tests for service registration."""

    @pytest.mark.asyncio
    async def test_all_services_registered(self, handlers):
        """Test that all services are registered."""
        assert len(handlers) == 20
        assert SERVICE_START_CHORE in handlers
        assert SERVICE_REFRESH_DATA in handlers

    @pytest.mark.asyncio
    async def test_read_services_return_responses(self, mock_hass, handlers):
        """Test the list and settings lookups only answer with a response."""
        registrations = {
            call[0][1]: call[1]
            for call in mock_hass.services.async_register.call_args_list
        }

        for name in (SERVICE_GET_DISTRIBUTION_LISTS, SERVICE_GET_COLLECT_SETTINGS):
            assert registrations[name]["supports_response"] is SupportsResponse.ONLY
        assert "supports_response" not in registrations[SERVICE_START_CHORE]

    @pytest.mark.asyncio
    async def test_not_registered_twice(self, mock_hass):
        """Test a second bot does not register services again."""
        mock_hass.services.has_service.return_value = True

        await async_setup_services(mock_hass)

        mock_hass.services.async_register.assert_not_called()


class TestSchemas:
    """Tests for service schemas."""

    def test_interval_coerced(self):
        """Test intervals are coerced to integers."""
        data = SERVICE_SET_INTERVAL_SCHEMA(
            {ATTR_CHORE_ID: "collect-maturity", ATTR_INTERVAL_SECONDS: "3600"}
        )
        assert data[ATTR_INTERVAL_SECONDS] == 3600

    def test_distribution_defaults(self):
        """Test amounts default to zero."""
        data = SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA(
            {
                ATTR_CHORE_ID: "distribute-funds",
                ATTR_NAME: "Team",
                ATTR_TOKEN_LEDGER_ID: TOKEN,
                ATTR_TARGETS: [{ATTR_OWNER: "alice"}],
            }
        )
        assert data[ATTR_THRESHOLD_AMOUNT] == 0
        assert data[ATTR_MAX_DISTRIBUTION_AMOUNT] == 0

    @pytest.mark.parametrize("percent", ["nan", "inf", 150, -1])
    def test_percent_must_be_a_share(self, percent):
        """Test percentages outside 0..100 are rejected by the schema."""
        with pytest.raises(vol.Invalid):
            SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA(
                {
                    ATTR_CHORE_ID: "distribute-funds",
                    ATTR_NAME: "Team",
                    ATTR_TOKEN_LEDGER_ID: TOKEN,
                    ATTR_TARGETS: [{ATTR_OWNER: "alice", ATTR_PERCENT: percent}],
                }
            )

    def test_targets_require_owner(self):
        """Test each target needs an owner."""
        with pytest.raises(vol.Invalid):
            SERVICE_ADD_DISTRIBUTION_LIST_SCHEMA(
                {
                    ATTR_CHORE_ID: "distribute-funds",
                    ATTR_NAME: "Team",
                    ATTR_TOKEN_LEDGER_ID: TOKEN,
                    ATTR_TARGETS: [{ATTR_PERCENT: 10}],
                }
            )


class TestLifecycleServices:
    """Tests for chore lifecycle services."""

    @pytest.mark.asyncio
    async def test_start_chore(self, handlers, mock_lifecycle):
        """Test start_chore goes to the lifecycle controller."""
        await handlers[SERVICE_START_CHORE](_call(**{ATTR_CHORE_ID: "refresh-stake"}))

        mock_lifecycle.async_start.assert_awaited_once_with("refresh-stake")

    @pytest.mark.asyncio
    async def test_pause_chore(self, handlers, mock_lifecycle):
        """Test pause_chore goes to the lifecycle controller."""
        await handlers[SERVICE_PAUSE_CHORE](_call(**{ATTR_CHORE_ID: "collect-maturity"}))

        mock_lifecycle.async_pause.assert_awaited_once_with("collect-maturity")

    @pytest.mark.asyncio
    async def test_set_interval(self, handlers, mock_lifecycle):
        """Test the optional max interval is passed through."""
        await handlers[SERVICE_SET_CHORE_INTERVAL](
            _call(
                **{
                    ATTR_CHORE_ID: "collect-maturity",
                    ATTR_INTERVAL_SECONDS: 3600,
                    ATTR_MAX_INTERVAL_SECONDS: 7200,
                }
            )
        )

        mock_lifecycle.async_set_interval.assert_awaited_once_with(
            "collect-maturity", 3600, 7200
        )

    @pytest.mark.asyncio
    async def test_set_next_run_converts_time(self, handlers, mock_lifecycle):
        """Test datetimes are sent as nanoseconds."""
        when = datetime(2030, 1, 1, tzinfo=timezone.utc)

        await handlers[SERVICE_SET_CHORE_NEXT_RUN](
            _call(**{ATTR_CHORE_ID: "collect-maturity", ATTR_NEXT_RUN_AT: when})
        )

        mock_lifecycle.async_set_next_run.assert_awaited_once_with(
            "collect-maturity", datetime_to_ns(when)
        )

    @pytest.mark.asyncio
    async def test_set_next_run_local_time(
        self, handlers, mock_lifecycle, new_york_time_zone
    ):
        """Test a selector time without zone is the Home Assistant local time."""
        data = SERVICE_SET_NEXT_RUN_SCHEMA(
            {ATTR_CHORE_ID: "collect-maturity", ATTR_NEXT_RUN_AT: "2030-01-01 09:00:00"}
        )

        await handlers[SERVICE_SET_CHORE_NEXT_RUN](_call(**data))

        mock_lifecycle.async_set_next_run.assert_awaited_once_with(
            "collect-maturity", 1_893_506_400_000_000_000
        )

    @pytest.mark.asyncio
    async def test_create_instance(self, handlers, mock_lifecycle):
        """Test instance creation targets the bot that has the type."""
        await handlers[SERVICE_CREATE_CHORE_INSTANCE](
            _call(**{ATTR_CHORE_TYPE_ID: "distribute-funds", ATTR_LABEL: "Team"})
        )

        mock_lifecycle.async_create_instance.assert_awaited_once_with(
            "distribute-funds", "Team"
        )

    @pytest.mark.asyncio
    async def test_unknown_chore_with_two_bots(self, handlers, mock_hass):
        """Test an unknown chore is rejected when the bot is ambiguous."""
        other = MagicMock()
        other.get_instance.return_value = None
        mock_hass.data[DOMAIN]["other_entry"] = {COORDINATOR: other, LIFECYCLE: AsyncMock()}

        with pytest.raises(ChoreValidationError, match="Unknown chore"):
            await handlers[SERVICE_START_CHORE](_call(**{ATTR_CHORE_ID: "nope"}))

    @pytest.mark.asyncio
    async def test_unknown_chore_with_one_bot(self, handlers, mock_api_client):
        """Test an unknown chore is rejected even when only one bot is set up."""
        with pytest.raises(ChoreValidationError, match="Unknown chore"):
            await handlers[SERVICE_GET_DISTRIBUTION_LISTS](_call(**{ATTR_CHORE_ID: "nope"}))

        mock_api_client.get_distribution_lists.assert_not_called()

    @pytest.mark.asyncio
    async def test_refresh_data(self, handlers, mock_coordinator):
        """Test refresh_data requests a refresh."""
        await handlers[SERVICE_REFRESH_DATA](_call())

        mock_coordinator.async_request_refresh.assert_awaited_once()


class TestDistributionServices:
    """Tests for distribution and collect services."""

    @pytest.mark.asyncio
    async def test_add_distribution_list(self, handlers, mock_api_client):
        """Test a list is validated and submitted."""
        await handlers[SERVICE_ADD_DISTRIBUTION_LIST](
            _call(
                **{
                    ATTR_CHORE_ID: "distribute-funds",
                    ATTR_NAME: "Team",
                    ATTR_TOKEN_LEDGER_ID: TOKEN,
                    ATTR_THRESHOLD_AMOUNT: 0,
                    ATTR_MAX_DISTRIBUTION_AMOUNT: 0,
                    ATTR_TARGETS: [
                        {ATTR_OWNER: "alice", ATTR_PERCENT: 40},
                        {ATTR_OWNER: "bob"},
                    ],
                }
            )
        )

        chore_id, definition = mock_api_client.add_distribution_list.call_args[0]
        assert chore_id == "distribute-funds"
        assert [t.basis_points for t in definition.targets] == [4000, None]

    @pytest.mark.asyncio
    async def test_add_invalid_list(self, handlers, mock_api_client):
        """Test invalid lists never reach the agent."""
        with pytest.raises(DistributionValidationError):
            await handlers[SERVICE_ADD_DISTRIBUTION_LIST](
                _call(
                    **{
                        ATTR_CHORE_ID: "distribute-funds",
                        ATTR_NAME: "Team",
                        ATTR_TOKEN_LEDGER_ID: TOKEN,
                        ATTR_THRESHOLD_AMOUNT: 0,
                        ATTR_MAX_DISTRIBUTION_AMOUNT: 0,
                        ATTR_TARGETS: [{ATTR_OWNER: "alice", ATTR_SUBACCOUNT: "abc"}],
                    }
                )
            )

        mock_api_client.add_distribution_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_distribution_list(self, handlers, mock_api_client):
        """Test updates replace the list by id."""
        await handlers[SERVICE_UPDATE_DISTRIBUTION_LIST](
            _call(
                **{
                    ATTR_CHORE_ID: "distribute-funds",
                    ATTR_LIST_ID: 3,
                    ATTR_NAME: "Team",
                    ATTR_TOKEN_LEDGER_ID: TOKEN,
                    ATTR_THRESHOLD_AMOUNT: 0,
                    ATTR_MAX_DISTRIBUTION_AMOUNT: 0,
                    ATTR_TARGETS: [{ATTR_OWNER: "alice"}],
                }
            )
        )

        assert mock_api_client.update_distribution_list.call_args[0][:2] == (
            "distribute-funds",
            3,
        )

    @pytest.mark.asyncio
    async def test_remove_distribution_list(self, handlers, mock_api_client):
        """Test removal by id."""
        await handlers[SERVICE_REMOVE_DISTRIBUTION_LIST](
            _call(**{ATTR_CHORE_ID: "distribute-funds", ATTR_LIST_ID: 3})
        )

        mock_api_client.remove_distribution_list.assert_awaited_once_with(
            "distribute-funds", 3
        )

    @pytest.mark.asyncio
    async def test_collect_threshold_cleared(self, handlers, mock_api_client):
        """Test omitting the amount clears the threshold."""
        await handlers[SERVICE_SET_COLLECT_THRESHOLD](
            _call(**{ATTR_CHORE_ID: "collect-maturity"})
        )

        mock_api_client.set_collect_maturity_threshold.assert_awaited_once_with(
            "collect-maturity", None
        )

    @pytest.mark.asyncio
    async def test_collect_destination(self, handlers, mock_api_client):
        """Test a destination account is built from the call."""
        await handlers[SERVICE_SET_COLLECT_DESTINATION](
            _call(**{ATTR_CHORE_ID: "collect-maturity", ATTR_OWNER: "alice"})
        )

        mock_api_client.set_collect_maturity_destination.assert_awaited_once_with(
            "collect-maturity", Account(owner="alice")
        )

    @pytest.mark.asyncio
    async def test_get_distribution_lists(self, handlers, mock_api_client):
        """Test stored lists come back with effective shares and leftovers."""
        mock_api_client.get_distribution_lists.return_value = [
            DistributionList(
                id=3,
                name="Team",
                token_ledger_id=TOKEN,
                threshold_amount=0,
                max_distribution_amount=0,
                targets=(
                    DistributionTarget(account=Account(owner="alice"), basis_points=4000),
                ),
            )
        ]

        response = await handlers[SERVICE_GET_DISTRIBUTION_LISTS](
            _call(**{ATTR_CHORE_ID: "distribute-funds"})
        )

        mock_api_client.get_distribution_lists.assert_awaited_once_with("distribute-funds")
        assert response["chore_id"] == "distribute-funds"
        stored = response["lists"][0]
        assert stored["id"] == 3
        assert stored["targets"][0]["effective_percent"] == 40
        assert stored["undistributed_percent"] == 60
        assert stored["summary"] == "60% undistributed"

    @pytest.mark.asyncio
    async def test_get_collect_settings(self, handlers, mock_api_client):
        """Test collect settings are returned in human units."""
        mock_api_client.get_collect_maturity_settings.return_value = (
            CollectMaturitySettings(
                threshold_amount=500,
                destination=Account(owner="alice", subaccount=bytes(32)),
            )
        )

        response = await handlers[SERVICE_GET_COLLECT_SETTINGS](
            _call(**{ATTR_CHORE_ID: "collect-maturity"})
        )

        assert response == {
            "chore_id": "collect-maturity",
            "threshold_amount": 500,
            "destination": {"owner": "alice", "subaccount": "00" * 32},
        }
