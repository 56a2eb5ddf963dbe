"""Distribution list editing and collect-maturity settings."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .allocation import Allocation, allocate, basis_points_to_percent, percent_to_basis_points
from .const import SUBACCOUNT_LENGTH, TOTAL_BASIS_POINTS
from .errors import AgentError, ChoreCallError, DistributionValidationError
from .models import (
    Account,
    CollectMaturitySettings,
    DistributionList,
    DistributionListInput,
    DistributionTarget,
)

if TYPE_CHECKING:
    from .api_client import BotChoresApiClient

_LOGGER = logging.getLogger(__name__)


def parse_subaccount(value: str | bytes | None) -> bytes | None:
    """Decode a hex subaccount; blank means none."""
    if value is None or isinstance(value, bytes):
        return value
    value = value.strip().removeprefix("0x")
    if not value:
        return None
    return bytes.fromhex(value)


def subaccount_problems(value: str | bytes | None, what: str) -> list[str]:
    try:
        decoded = parse_subaccount(value)
    except ValueError:
        return [f"{what} is not valid hex"]
    if decoded is not None and len(decoded) != SUBACCOUNT_LENGTH:
        return [f"{what} must be {SUBACCOUNT_LENGTH} bytes, got {len(decoded)}"]
    return []


def account_from_input(owner: str, subaccount: str | bytes | None = None) -> Account:
    """Build an Account from operator input, validating it."""
    problems = []
    if not owner or not owner.strip():
        problems.append("Account owner must not be empty")
    problems.extend(subaccount_problems(subaccount, "Subaccount"))
    if problems:
        raise DistributionValidationError(problems)
    return Account(owner=owner.strip(), subaccount=parse_subaccount(subaccount))


@dataclass
class TargetDraft:
    """A recipient as the operator enters it; percent None means unassigned."""

    owner: str = ""
    subaccount: str | None = None
    percent: float | None = None

    @property
    def basis_points(self) -> int | None:
        if self.percent is None:
            return None
        return percent_to_basis_points(self.percent)


@dataclass
class DistributionListDraft:
    """Editable distribution list in human units."""

    name: str = ""
    token_ledger_id: str = ""
    source_subaccount: str | None = None
    threshold_amount: int = 0
    max_distribution_amount: int = 0
    targets: list[TargetDraft] = field(default_factory=list)
    list_id: int | None = None

    @classmethod
    def new(cls) -> DistributionListDraft:
        """Start a list from scratch with one empty recipient."""
        return cls(targets=[TargetDraft()])

    @classmethod
    def from_list(cls, existing: DistributionList) -> DistributionListDraft:
        """Start editing a stored list."""
        return cls(
            name=existing.name,
            token_ledger_id=existing.token_ledger_id,
            source_subaccount=(
                existing.source_subaccount.hex() if existing.source_subaccount else None
            ),
            threshold_amount=existing.threshold_amount,
            max_distribution_amount=existing.max_distribution_amount,
            targets=[
                TargetDraft(
                    owner=target.account.owner,
                    subaccount=(
                        target.account.subaccount.hex()
                        if target.account.subaccount
                        else None
                    ),
                    percent=(
                        None
                        if target.basis_points is None
                        else basis_points_to_percent(target.basis_points)
                    ),
                )
                for target in existing.targets
            ],
            list_id=existing.id,
        )

    @property
    def is_edit(self) -> bool:
        return self.list_id is not None

    def validate(self) -> list[str]:
        """Return every problem with the draft; empty means submittable."""
        problems: list[str] = []
        if not self.name.strip():
            problems.append("Name must not be empty")
        if not self.token_ledger_id.strip():
            problems.append("A token must be selected")
        problems.extend(subaccount_problems(self.source_subaccount, "Source subaccount"))
        if self.threshold_amount < 0:
            problems.append("Threshold amount must not be negative")
        if self.max_distribution_amount < 0:
            problems.append("Max distribution amount must not be negative")
        if not self.targets:
            problems.append("At least one target is required")

        for index, target in enumerate(self.targets, start=1):
            if not target.owner.strip():
                problems.append(f"Target {index} has no account owner")
            problems.extend(
                subaccount_problems(target.subaccount, f"Target {index} subaccount")
            )
            if target.percent is not None and not (
                math.isfinite(target.percent)
                and 0 <= target.basis_points <= TOTAL_BASIS_POINTS
            ):
                problems.append(f"Target {index} percentage must be between 0 and 100")
        return problems

    def to_targets(self) -> tuple[DistributionTarget, ...]:
        return tuple(
            DistributionTarget(
                account=Account(
                    owner=target.owner.strip(),
                    subaccount=parse_subaccount(target.subaccount),
                ),
                basis_points=target.basis_points,
            )
            for target in self.targets
        )

    def to_input(self) -> DistributionListInput:
        """Build the submission payload, raising if the draft is invalid."""
        problems = self.validate()
        if problems:
            raise DistributionValidationError(problems)
        return DistributionListInput(
            name=self.name.strip(),
            token_ledger_id=self.token_ledger_id.strip(),
            source_subaccount=parse_subaccount(self.source_subaccount),
            threshold_amount=self.threshold_amount,
            max_distribution_amount=self.max_distribution_amount,
            targets=self.to_targets(),
        )

    def preview(self) -> Allocation:
        """Effective shares as they would be after submission."""
        return allocate(
            DistributionTarget(account=Account(owner=t.owner), basis_points=t.basis_points)
            for t in self.targets
        )


def review(existing: DistributionList) -> Allocation:
    """Effective shares of a stored list."""
    return allocate(existing.targets)


def _hex(value: bytes | None) -> str | None:
    return value.hex() if value else None


def describe_list(existing: DistributionList) -> dict[str, Any]:
    """A stored list in human units, with the shares it actually pays out."""
    allocation = review(existing)
    return {
        "id": existing.id,
        "name": existing.name,
        "token_ledger_id": existing.token_ledger_id,
        "source_subaccount": _hex(existing.source_subaccount),
        "threshold_amount": existing.threshold_amount,
        "max_distribution_amount": existing.max_distribution_amount,
        "targets": [
            {
                "owner": target.account.owner,
                "subaccount": _hex(target.account.subaccount),
                "percent": (
                    None
                    if target.basis_points is None
                    else basis_points_to_percent(target.basis_points)
                ),
                "effective_percent": effective,
            }
            for target, effective in zip(
                existing.targets, allocation.effective_percents, strict=True
            )
        ],
        "undistributed_percent": allocation.undistributed_percent,
        "summary": allocation.summary(),
    }


def describe_collect_settings(settings: CollectMaturitySettings) -> dict[str, Any]:
    destination = settings.destination
    return {
        "threshold_amount": settings.threshold_amount,
        "destination": (
            None
            if destination is None
            else {"owner": destination.owner, "subaccount": _hex(destination.subaccount)}
        ),
    }


class DistributionListEditor:
    """Adds, replaces and removes the distribution lists of one chore."""

    def __init__(self, api_client: BotChoresApiClient, chore_id: str) -> None:
        self.api_client = api_client
        self.chore_id = chore_id
        self.lists: dict[int, DistributionList] = {}

    async def async_load(self) -> dict[int, DistributionList]:
        """Replace the cached lists with the bot's."""
        try:
            lists = await self.api_client.get_distribution_lists(self.chore_id)
        except AgentError as err:
            raise ChoreCallError(
                f"Failed to load distribution lists of {self.chore_id}: {err}"
            ) from err
        self.lists = {item.id: item for item in lists}
        return self.lists

    async def _async_reconcile(self) -> None:
        try:
            await self.async_load()
        except ChoreCallError as err:
            _LOGGER.warning("Could not reload distribution lists: %s", err)

    async def async_add(self, draft: DistributionListDraft) -> int:
        """Submit a new list and return its id."""
        definition = draft.to_input()
        try:
            list_id = await self.api_client.add_distribution_list(
                self.chore_id, definition
            )
        except AgentError as err:
            _LOGGER.error("Failed to add distribution list %s: %s", definition.name, err)
            raise ChoreCallError(f"Failed to add distribution list: {err}") from err
        _LOGGER.info("Added distribution list %s to %s", list_id, self.chore_id)
        draft.list_id = list_id
        await self._async_reconcile()
        return list_id

    async def async_update(self, list_id: int, draft: DistributionListDraft) -> None:
        """Replace a whole list with the draft."""
        definition = draft.to_input()
        try:
            await self.api_client.update_distribution_list(
                self.chore_id, list_id, definition
            )
        except AgentError as err:
            _LOGGER.error("Failed to update distribution list %s: %s", list_id, err)
            raise ChoreCallError(
                f"Failed to update distribution list {list_id}: {err}"
            ) from err
        await self._async_reconcile()

    async def async_remove(self, list_id: int) -> None:
        try:
            await self.api_client.remove_distribution_list(self.chore_id, list_id)
        except AgentError as err:
            _LOGGER.error("Failed to remove distribution list %s: %s", list_id, err)
            raise ChoreCallError(
                f"Failed to remove distribution list {list_id}: {err}"
            ) from err
        self.lists.pop(list_id, None)
        await self._async_reconcile()


class CollectMaturityController:
    """Threshold and destination for collected maturity of one chore."""

    def __init__(self, api_client: BotChoresApiClient, chore_id: str) -> None:
        self.api_client = api_client
        self.chore_id = chore_id
        self.settings: CollectMaturitySettings | None = None

    async def async_load(self) -> CollectMaturitySettings:
        try:
            self.settings = await self.api_client.get_collect_maturity_settings(
                self.chore_id
            )
        except AgentError as err:
            raise ChoreCallError(
                f"Failed to load collect settings of {self.chore_id}: {err}"
            ) from err
        return self.settings

    async def _async_reconcile(self) -> None:
        try:
            await self.async_load()
        except ChoreCallError as err:
            _LOGGER.warning("Could not reload collect settings: %s", err)

    async def async_set_threshold(self, amount: int | None) -> None:
        """Set the minimum amount to collect; None clears it."""
        if amount is not None and amount < 0:
            raise DistributionValidationError(["Threshold amount must not be negative"])
        try:
            await self.api_client.set_collect_maturity_threshold(self.chore_id, amount)
        except AgentError as err:
            raise ChoreCallError(f"Failed to set collect threshold: {err}") from err
        await self._async_reconcile()

    async def async_set_destination(self, destination: Account | None) -> None:
        """Set where collected maturity goes; None clears it."""
        try:
            await self.api_client.set_collect_maturity_destination(
                self.chore_id, destination
            )
        except AgentError as err:
            raise ChoreCallError(f"Failed to set collect destination: {err}") from err
        await self._async_reconcile()
