from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fluxdesk_webhooks.core.exceptions import InvalidStatusTransitionError
from fluxdesk_webhooks.domain.models import DeliveryOutcome, DeliveryState
from fluxdesk_webhooks.services.retry import (
    BreakerSignal,
    RetryPolicy,
    RetryScheduler,
    validate_delivery_transition,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
FAILED = DeliveryOutcome(success=False, status_code=503, error="HTTP 503: busy")
OK = DeliveryOutcome(success=True, status_code=200)


def test_default_backoff_sequence():
    policy = RetryPolicy()
    assert [policy.delay_for(n).total_seconds() for n in range(1, 5)] == [30, 60, 120, 240]


def test_backoff_is_capped():
    policy = RetryPolicy(max_attempts=20, base_delay_seconds=30, max_delay_seconds=900)
    assert policy.delay_for(10) == timedelta(seconds=900)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"base_delay_seconds": 0},
        {"base_delay_seconds": 60, "max_delay_seconds": 30},
    ],
)
def test_policy_rejects_unbounded_values(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_success_is_delivered_and_resets_breaker():
    decision = RetryScheduler(RetryPolicy()).decide(3, OK, NOW)
    assert decision.state is DeliveryState.DELIVERED
    assert decision.not_before is None
    assert decision.signal is BreakerSignal.RESET


def test_failure_before_last_attempt_is_rescheduled():
    decision = RetryScheduler(RetryPolicy()).decide(2, FAILED, NOW)
    assert decision.state is DeliveryState.RETRY_SCHEDULED
    assert decision.not_before == NOW + timedelta(seconds=60)
    assert decision.signal is BreakerSignal.NONE


def test_failure_at_last_attempt_is_exhausted_with_one_failure_signal():
    scheduler = RetryScheduler(RetryPolicy(max_attempts=5))
    signals = [scheduler.decide(n, FAILED, NOW).signal for n in range(1, 6)]
    assert signals.count(BreakerSignal.FAILURE) == 1
    final = scheduler.decide(5, FAILED, NOW)
    assert final.state is DeliveryState.EXHAUSTED
    assert final.not_before is None


def test_single_attempt_policy_never_retries():
    decision = RetryScheduler(RetryPolicy(max_attempts=1)).decide(1, FAILED, NOW)
    assert decision.state is DeliveryState.EXHAUSTED


def test_terminal_states_have_no_exit():
    for terminal in (DeliveryState.DELIVERED, DeliveryState.EXHAUSTED, DeliveryState.CANCELLED):
        with pytest.raises(InvalidStatusTransitionError):
            validate_delivery_transition(terminal, DeliveryState.ATTEMPTING)


def test_retry_goes_back_through_attempting():
    validate_delivery_transition(DeliveryState.RETRY_SCHEDULED, DeliveryState.ATTEMPTING)
    with pytest.raises(InvalidStatusTransitionError):
        validate_delivery_transition(DeliveryState.RETRY_SCHEDULED, DeliveryState.DELIVERED)
