"""Fixtures for Bot Chores tests."""
from __future__ import annotations

import dataclasses
from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.util import dt as dt_util

from custom_components.botchores.coordinator import BotChoresDataUpdateCoordinator
from custom_components.botchores.models import (
    NANOS_PER_SECOND,
    ConductorStatus,
    SchedulerStatus,
)

from .common import CANISTER_ID, NOW_NS, make_chore


@pytest.fixture
def sample_instances():
    """One chore in each enablement state."""
    return {
        "collect-maturity": make_chore(
            "collect-maturity",
            chore_type_id="collect-maturity",
            chore_name="Collect Maturity",
            enabled=True,
            scheduler_status=SchedulerStatus.SCHEDULED,
            next_scheduled_run_at=NOW_NS + 600 * NANOS_PER_SECOND,
            last_completed_run_at=NOW_NS - 3000 * NANOS_PER_SECOND,
        ),
        "distribute-funds": make_chore(
            "distribute-funds",
            chore_type_id="distribute-funds",
            enabled=True,
            paused=True,
            scheduler_status=SchedulerStatus.SCHEDULED,
            next_scheduled_run_at=NOW_NS + 1200 * NANOS_PER_SECOND,
        ),
        "refresh-stake": make_chore(
            "refresh-stake",
            chore_type_id="refresh-stake",
            chore_name="Refresh Stake",
        ),
    }


@pytest.fixture
def mock_api_client():
    """Return a mocked agent client."""
    client = AsyncMock()
    client.canister_id = CANISTER_ID
    client.get_chore_statuses.return_value = []
    client.get_chore_configs.return_value = {}
    client.create_chore_instance.return_value = True
    client.rename_chore_instance.return_value = True
    client.delete_chore_instance.return_value = True
    client.get_distribution_lists.return_value = []
    client.add_distribution_list.return_value = 7
    return client


@pytest.fixture
def mock_coordinator(mock_api_client, sample_instances):
    """Return a mocked coordinator holding the sample instances."""
    coordinator = MagicMock()
    coordinator.api_client = mock_api_client
    coordinator.data = MagicMock()
    coordinator.data.configs = {}
    coordinator.instances = dict(sample_instances)
    coordinator.last_update_success = True
    coordinator.get_instance = lambda chore_id: coordinator.instances.get(chore_id)
    coordinator.get_config = lambda chore_id: BotChoresDataUpdateCoordinator.get_config(
        coordinator, chore_id
    )

    def patch_instance(chore_id, **changes):
        instance = coordinator.instances.get(chore_id)
        if instance is None:
            return None
        patched = dataclasses.replace(instance, **changes)
        coordinator.instances[chore_id] = patched
        return patched

    coordinator.async_patch_instance = MagicMock(side_effect=patch_instance)
    coordinator.async_refresh = AsyncMock()
    coordinator.async_request_refresh = AsyncMock()
    return coordinator


@pytest.fixture
def new_york_time_zone():
    """Run the test with Home Assistant configured for New York."""
    dt_util.set_default_time_zone(dt_util.get_time_zone("America/New_York"))
    yield
    dt_util.set_default_time_zone(dt_util.UTC)


@pytest.fixture
def active_chore():
    """A chore whose conductor is busy."""
    return make_chore(
        "refresh-stake",
        chore_type_id="refresh-stake",
        conductor_status=ConductorStatus.RUNNING,
        conductor_started_at=NOW_NS - 30 * NANOS_PER_SECOND,
    )
