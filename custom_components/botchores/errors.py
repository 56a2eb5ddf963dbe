"""Exceptions for the Bot Chores integration."""
from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError


class AgentError(Exception):
    """Base error raised by the agent client."""


class AgentConnectionError(AgentError):
    """The agent gateway could not be reached or returned a bad response."""


class AgentRejectedError(AgentError):
    """The canister rejected the call."""


class ChoreValidationError(ServiceValidationError):
    """A chore command was rejected before reaching the agent."""


class DistributionValidationError(ServiceValidationError):
    """A distribution list or collect setting failed local validation."""

    def __init__(self, problems: list[str]) -> None:
        """Initialize with every problem found."""
        super().__init__("; ".join(problems))
        self.problems = problems


class ChoreCallError(HomeAssistantError):
    """An agent call failed; the message is meant for the operator."""
