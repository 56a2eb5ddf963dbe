"""Effective share computation for distribution targets.

Targets either carry basis points (assigned) or not (unassigned). Assigned
targets keep their own share unless the assigned total exceeds 10000, in which
case every assigned share is scaled down to fit and unassigned targets get
nothing. Otherwise the remainder is split equally among unassigned targets, or
left undistributed when there are none. All divisions floor, so the effective
total never exceeds 10000.

The same function backs the editor preview and the review of stored lists.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .const import TOTAL_BASIS_POINTS
from .models import DistributionTarget


@dataclass(frozen=True)
class Allocation:
    """Effective shares of an ordered list of targets."""

    effective: tuple[int, ...]
    assigned_total: int
    unassigned_count: int

    @property
    def oversubscribed(self) -> bool:
        return self.assigned_total > TOTAL_BASIS_POINTS

    @property
    def total(self) -> int:
        return sum(self.effective)

    @property
    def undistributed_basis_points(self) -> int:
        return TOTAL_BASIS_POINTS - self.total

    @property
    def undistributed_percent(self) -> float:
        return basis_points_to_percent(self.undistributed_basis_points)

    @property
    def effective_percents(self) -> tuple[float, ...]:
        return tuple(basis_points_to_percent(bp) for bp in self.effective)

    def summary(self) -> str | None:
        """Operator-facing note about over-subscription or leftovers."""
        if self.oversubscribed:
            return (
                f"Assigned shares total {basis_points_to_percent(self.assigned_total):g}%"
                " and were scaled down to 100%"
            )
        if self.undistributed_basis_points > 0:
            return f"{self.undistributed_percent:g}% undistributed"
        return None


def effective_basis_points(basis_points: Sequence[int | None]) -> tuple[int, ...]:
    """Return each target's effective basis points.

    None marks an unassigned target.
    """
    assigned_total = sum(bp for bp in basis_points if bp is not None)
    unassigned_count = sum(1 for bp in basis_points if bp is None)

    if assigned_total > TOTAL_BASIS_POINTS:
        return tuple(
            0 if bp is None else bp * TOTAL_BASIS_POINTS // assigned_total
            for bp in basis_points
        )

    share = 0
    if unassigned_count:
        share = (TOTAL_BASIS_POINTS - assigned_total) // unassigned_count
    return tuple(share if bp is None else bp for bp in basis_points)


def allocate(targets: Iterable[DistributionTarget]) -> Allocation:
    """Compute the allocation for a list of targets."""
    basis_points = [target.basis_points for target in targets]
    return Allocation(
        effective=effective_basis_points(basis_points),
        assigned_total=sum(bp for bp in basis_points if bp is not None),
        unassigned_count=sum(1 for bp in basis_points if bp is None),
    )


def basis_points_to_percent(basis_points: int) -> float:
    return basis_points / 100


def percent_to_basis_points(percent: float | str | Decimal) -> int:
    """Convert a human percentage to basis points, rounding halves up."""
    value = Decimal(str(percent)) * 100
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
