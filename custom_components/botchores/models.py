"""Data model and agent wire codec for Bot Chores.

The agent speaks Candid-shaped JSON: optional values are zero-or-one element
lists, variants are single-key objects, byte strings are lists of integers and
timestamps are integer nanoseconds since the epoch. Everything in this module
converts between that shape and the dataclasses the rest of the integration
works with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from homeassistant.util import dt as dt_util

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLISECOND = 1_000_000

_EPOCH = dt_util.utc_from_timestamp(0)


class ChoreState(str, Enum):
    """Enablement axis of a chore instance."""

    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class SchedulerStatus(str, Enum):
    """Remote scheduler timer state."""

    IDLE = "Idle"
    SCHEDULED = "Scheduled"


class ConductorStatus(str, Enum):
    """Remote conductor activity."""

    IDLE = "Idle"
    RUNNING = "Running"
    POLLING = "Polling"


class TaskStatus(str, Enum):
    """Remote task activity."""

    IDLE = "Idle"
    RUNNING = "Running"


# Wire helpers


def opt(value: list[Any] | None) -> Any:
    """Unwrap a Candid optional."""
    if not value:
        return None
    return value[0]


def to_opt(value: Any) -> list[Any]:
    """Wrap a value as a Candid optional."""
    return [] if value is None else [value]


def variant_tag(value: dict[str, Any] | str) -> str:
    """Return the tag of a single-key variant."""
    if isinstance(value, str):
        return value
    if len(value) != 1:
        raise ValueError(f"Expected a single-key variant, got {value!r}")
    return next(iter(value))


def blob(value: list[int] | None) -> bytes | None:
    """Decode an optional byte string."""
    if value is None:
        return None
    return bytes(value)


def to_blob(value: bytes) -> list[int]:
    """Encode a byte string."""
    return list(value)


def ns_to_datetime(value: int | None) -> datetime | None:
    """Convert a nanosecond timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return _EPOCH + timedelta(microseconds=value // 1_000)


def datetime_to_ns(value: datetime) -> int:
    """Convert a datetime to nanoseconds since the epoch.

    Naive datetimes are in the configured Home Assistant time zone, as the
    datetime selector sends them.
    """
    return (dt_util.as_utc(value) - _EPOCH) // timedelta(microseconds=1) * 1_000


@dataclass(frozen=True)
class ChoreInstance:
    """Status of one chore instance as reported by the bot."""

    chore_id: str
    chore_type_id: str
    chore_name: str = ""
    chore_description: str = ""
    instance_label: str | None = None
    enabled: bool = False
    paused: bool = False
    interval_seconds: int = 0
    max_interval_seconds: int | None = None
    task_timeout_seconds: int = 0
    scheduler_status: SchedulerStatus = SchedulerStatus.IDLE
    next_scheduled_run_at: int | None = None
    last_completed_run_at: int | None = None
    conductor_status: ConductorStatus = ConductorStatus.IDLE
    conductor_started_at: int | None = None
    conductor_invocation_count: int = 0
    current_task_id: str | None = None
    task_status: TaskStatus = TaskStatus.IDLE
    task_started_at: int | None = None
    last_completed_task_id: str | None = None
    last_task_succeeded: bool | None = None
    last_task_error: str | None = None
    stop_requested: bool = False
    total_run_count: int = 0
    total_success_count: int = 0
    total_failure_count: int = 0
    last_error: str | None = None
    last_error_at: int | None = None

    @property
    def state(self) -> ChoreState:
        """Position on the enablement axis."""
        if not self.enabled:
            return ChoreState.STOPPED
        if self.paused:
            return ChoreState.PAUSED
        return ChoreState.RUNNING

    @property
    def is_active(self) -> bool:
        """Whether the conductor is doing work right now."""
        return self.conductor_status is not ConductorStatus.IDLE

    @property
    def display_name(self) -> str:
        """Type name, qualified by the instance label when it differs."""
        if self.instance_label and self.instance_label != self.chore_name:
            return f"{self.chore_name} - {self.instance_label}"
        return self.chore_name or self.chore_id

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ChoreInstance:
        """Build an instance from a getChoreStatuses record."""
        return cls(
            chore_id=data["choreId"],
            chore_type_id=data.get("choreTypeId") or data["choreId"],
            chore_name=data.get("choreName", ""),
            chore_description=data.get("choreDescription", ""),
            instance_label=data.get("instanceLabel") or None,
            enabled=bool(data.get("enabled", False)),
            paused=bool(data.get("paused", False)),
            interval_seconds=int(data.get("intervalSeconds", 0)),
            max_interval_seconds=opt(data.get("maxIntervalSeconds")),
            task_timeout_seconds=int(data.get("taskTimeoutSeconds", 0)),
            scheduler_status=SchedulerStatus(
                variant_tag(data.get("schedulerStatus", {"Idle": None}))
            ),
            next_scheduled_run_at=opt(data.get("nextScheduledRunAt")),
            last_completed_run_at=opt(data.get("lastCompletedRunAt")),
            conductor_status=ConductorStatus(
                variant_tag(data.get("conductorStatus", {"Idle": None}))
            ),
            conductor_started_at=opt(data.get("conductorStartedAt")),
            conductor_invocation_count=int(data.get("conductorInvocationCount", 0)),
            current_task_id=opt(data.get("currentTaskId")),
            task_status=TaskStatus(variant_tag(data.get("taskStatus", {"Idle": None}))),
            task_started_at=opt(data.get("taskStartedAt")),
            last_completed_task_id=opt(data.get("lastCompletedTaskId")),
            last_task_succeeded=opt(data.get("lastTaskSucceeded")),
            last_task_error=opt(data.get("lastTaskError")),
            stop_requested=bool(data.get("stopRequested", False)),
            total_run_count=int(data.get("totalRunCount", 0)),
            total_success_count=int(data.get("totalSuccessCount", 0)),
            total_failure_count=int(data.get("totalFailureCount", 0)),
            last_error=opt(data.get("lastError")),
            last_error_at=opt(data.get("lastErrorAt")),
        )


@dataclass(frozen=True)
class ChoreConfig:
    """Scheduling configuration of a chore instance."""

    interval_seconds: int
    max_interval_seconds: int | None = None
    task_timeout_seconds: int = 0

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ChoreConfig:
        """Build a config from a getChoreConfigs record."""
        return cls(
            interval_seconds=int(data["intervalSeconds"]),
            max_interval_seconds=opt(data.get("maxIntervalSeconds")),
            task_timeout_seconds=int(data.get("taskTimeoutSeconds", 0)),
        )


@dataclass(frozen=True)
class Account:
    """Ledger account: owner principal plus optional 32-byte subaccount."""

    owner: str
    subaccount: bytes | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Account:
        return cls(owner=data["owner"], subaccount=blob(opt(data.get("subaccount"))))

    def to_wire(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "subaccount": to_opt(
                None if self.subaccount is None else to_blob(self.subaccount)
            ),
        }


@dataclass(frozen=True)
class DistributionTarget:
    """A weighted recipient; no basis points means an equal share of the rest."""

    account: Account
    basis_points: int | None = None

    @property
    def is_assigned(self) -> bool:
        return self.basis_points is not None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> DistributionTarget:
        return cls(
            account=Account.from_wire(data["account"]),
            basis_points=opt(data.get("basisPoints")),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "account": self.account.to_wire(),
            "basisPoints": to_opt(self.basis_points),
        }


@dataclass(frozen=True)
class DistributionListInput:
    """Definition of a distribution list as submitted to the bot."""

    name: str
    token_ledger_id: str
    threshold_amount: int
    max_distribution_amount: int
    targets: tuple[DistributionTarget, ...]
    source_subaccount: bytes | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "sourceSubaccount": to_opt(
                None
                if self.source_subaccount is None
                else to_blob(self.source_subaccount)
            ),
            "tokenLedgerCanisterId": self.token_ledger_id,
            "thresholdAmount": self.threshold_amount,
            "maxDistributionAmount": self.max_distribution_amount,
            "targets": [target.to_wire() for target in self.targets],
        }


@dataclass(frozen=True)
class DistributionList(DistributionListInput):
    """A distribution list stored on the bot."""

    id: int = 0

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> DistributionList:
        return cls(
            id=int(data["id"]),
            name=data["name"],
            source_subaccount=blob(opt(data.get("sourceSubaccount"))),
            token_ledger_id=data["tokenLedgerCanisterId"],
            threshold_amount=int(data["thresholdAmount"]),
            max_distribution_amount=int(data["maxDistributionAmount"]),
            targets=tuple(
                DistributionTarget.from_wire(target) for target in data["targets"]
            ),
        )


@dataclass(frozen=True)
class CollectMaturitySettings:
    """Where and when collected maturity is moved."""

    threshold_amount: int | None = None
    destination: Account | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> CollectMaturitySettings:
        destination = opt(data.get("destination"))
        return cls(
            threshold_amount=opt(data.get("thresholdAmount")),
            destination=Account.from_wire(destination) if destination else None,
        )


@dataclass
class ChoreSnapshot:
    """Coordinator data: every known instance and its config."""

    instances: dict[str, ChoreInstance] = field(default_factory=dict)
    configs: dict[str, ChoreConfig] = field(default_factory=dict)
