"""Shared helpers for Bot Chores tests."""
from __future__ import annotations

from custom_components.botchores.models import NANOS_PER_SECOND, ChoreInstance

NOW_NS = 1_700_000_000 * NANOS_PER_SECOND
CANISTER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"


class AsyncContextManagerMock:
    """Helper class to mock async context managers."""

    def __init__(self, return_value):
        self.return_value = return_value

    async def __aenter__(self):
        return self.return_value

    async def __aexit__(self, *args):
        pass


def make_chore(chore_id: str = "distribute-funds", **overrides) -> ChoreInstance:
    """Build a chore instance with sensible defaults."""
    values = {
        "chore_id": chore_id,
        "chore_type_id": chore_id,
        "chore_name": "Distribute Funds",
        "interval_seconds": 3600,
        "task_timeout_seconds": 600,
    }
    values.update(overrides)
    return ChoreInstance(**values)
