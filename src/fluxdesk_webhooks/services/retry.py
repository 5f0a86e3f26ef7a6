"""Retry scheduling for failed delivery attempts."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from fluxdesk_webhooks.core.exceptions import InvalidStatusTransitionError
from fluxdesk_webhooks.domain.models import DeliveryOutcome, DeliveryState

DELIVERY_TRANSITIONS: dict[DeliveryState, set[DeliveryState]] = {
    DeliveryState.PENDING: {DeliveryState.ATTEMPTING, DeliveryState.CANCELLED},
    DeliveryState.ATTEMPTING: {
        DeliveryState.DELIVERED,
        DeliveryState.RETRY_SCHEDULED,
        DeliveryState.EXHAUSTED,
        DeliveryState.CANCELLED,
    },
    DeliveryState.RETRY_SCHEDULED: {DeliveryState.ATTEMPTING, DeliveryState.CANCELLED},
    DeliveryState.DELIVERED: set(),
    DeliveryState.EXHAUSTED: set(),
    DeliveryState.CANCELLED: set(),
}


def validate_delivery_transition(current: DeliveryState, new: DeliveryState) -> None:
    if new not in DELIVERY_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(
            f"Invalid delivery state transition: {current.value} → {new.value}"
        )


class BreakerSignal(str, Enum):
    NONE = "none"
    RESET = "reset"
    FAILURE = "failure"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: base, 2×base, 4×base … capped at ``max_delay_seconds``."""

    max_attempts: int = 5
    base_delay_seconds: float = 30.0
    max_delay_seconds: float = 900.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds <= 0 or self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("backoff delays must be positive and max >= base")

    def delay_for(self, attempt: int) -> timedelta:
        """Wait after failed *attempt* (1-based) before the next one."""
        seconds = self.base_delay_seconds * (2 ** max(attempt - 1, 0))
        return timedelta(seconds=min(self.max_delay_seconds, seconds))

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.webhook_max_attempts,
            base_delay_seconds=settings.webhook_backoff_base_seconds,
            max_delay_seconds=settings.webhook_backoff_max_seconds,
        )


@dataclass(frozen=True)
class RetryDecision:
    state: DeliveryState
    not_before: datetime | None
    signal: BreakerSignal


class RetryScheduler:
    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def decide(self, attempt: int, outcome: DeliveryOutcome, now: datetime) -> RetryDecision:
        """Next state of a job whose *attempt* just finished with *outcome*."""
        if outcome.success:
            return RetryDecision(DeliveryState.DELIVERED, None, BreakerSignal.RESET)
        if attempt < self.policy.max_attempts:
            return RetryDecision(
                DeliveryState.RETRY_SCHEDULED, now + self.policy.delay_for(attempt), BreakerSignal.NONE
            )
        # One breaker failure per exhausted event, not per attempt.
        return RetryDecision(DeliveryState.EXHAUSTED, None, BreakerSignal.FAILURE)
