from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from commercial_pricing.engine.enums import (
    ExecutionCadence,
    ExecutionStatus,
    ExecutionType,
    PriceBookStatus,
    ScheduleFrequency,
)
from commercial_pricing.engine.logic import ScheduleSpec
from commercial_pricing.policy.pricing_policy_engine import PricingPolicyEngine
from commercial_pricing.policy.scheduler import PolicyScheduler, is_due

# 2026-06-01 is a Monday
SLOT = datetime(2026, 6, 1, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(store, audit):
    return PolicyScheduler(PricingPolicyEngine(store, audit))


@pytest.fixture
def policy(store):
    return store.get_policy('pol-index')


@pytest.mark.parametrize("offset,expected", [
    (timedelta(minutes=0), True),
    (timedelta(minutes=-30), True),
    (timedelta(minutes=25), True),
    (timedelta(minutes=31), False),
    (timedelta(hours=-2), False),
])
def test_daily_window(policy, offset, expected):
    assert is_due(policy, SLOT + offset) is expected


def test_not_due_twice_in_one_day(policy):
    policy.last_executed_at = SLOT - timedelta(minutes=5)
    assert not is_due(policy, SLOT + timedelta(minutes=10))
    assert is_due(policy, SLOT + timedelta(days=1))


def test_manual_or_inactive_policies_are_never_due(store, policy):
    assert not is_due(store.get_policy('pol-cost'), SLOT)
    policy.execution_cadence = ExecutionCadence.MANUAL
    assert not is_due(policy, SLOT)


def test_scheduled_policy_without_schedule(policy):
    policy.schedule = None
    assert not is_due(policy, SLOT)


def test_weekly(policy):
    policy.schedule = ScheduleSpec(ScheduleFrequency.WEEKLY, '06:00', day_of_week=2)
    assert not is_due(policy, SLOT)
    assert is_due(policy, SLOT + timedelta(days=2))

    policy.last_executed_at = SLOT + timedelta(days=2)
    assert not is_due(policy, SLOT + timedelta(days=2, minutes=10))
    assert is_due(policy, SLOT + timedelta(days=9))


def test_weekly_defaults_to_monday(policy):
    policy.schedule = ScheduleSpec(ScheduleFrequency.WEEKLY, '06:00')
    assert is_due(policy, SLOT)


def test_monthly(policy):
    policy.schedule = ScheduleSpec(ScheduleFrequency.MONTHLY, '06:00', day_of_month=15)
    assert not is_due(policy, SLOT)
    assert is_due(policy, SLOT.replace(day=15))

    policy.schedule = ScheduleSpec(ScheduleFrequency.MONTHLY, '06:00')
    assert is_due(policy, SLOT)
    policy.last_executed_at = SLOT - timedelta(days=31)
    assert is_due(policy, SLOT)


def test_run_executes_due_policies_and_expires_offers(scheduler, store, policy):
    run = scheduler.run(SLOT + timedelta(minutes=10))

    assert [r.policy.id for r in run.executed] == ['pol-index']
    assert run.executed[0].execution_type == ExecutionType.SCHEDULED
    assert [o.id for o in run.expired_offers] == ['of-005']
    assert policy.last_executed_at == SLOT + timedelta(minutes=10)
    assert run.summary() == "1 policies executed, 0 failed, 1 offers expired"

    again = scheduler.run_due_policies(SLOT + timedelta(minutes=20))
    assert again.executed == []


def test_failed_scheduled_run_is_recorded(scheduler, store, policy):
    store.get_price_book('pb-fr-web-h2').status = PriceBookStatus.ARCHIVED

    run = scheduler.run_due_policies(SLOT)

    assert run.executed == []
    [failure] = run.failures
    assert failure.status == ExecutionStatus.FAILED
    assert failure.execution_type == ExecutionType.SCHEDULED
    assert "target Price Book is Archived" in failure.log_summary
    assert store.executions_for('pol-index') == [failure]
    assert policy.last_executed_at is None


class FlakyEngine(PricingPolicyEngine):
    """Raises an unexpected error for pol-index only."""

    def execute(self, policy, *args, **kwargs):
        if policy.id == 'pol-index':
            raise RuntimeError("market price feed offline")
        return super().execute(policy, *args, **kwargs)


def test_unexpected_error_does_not_abort_the_tick(store, audit, policy):
    store.policies['pol-index-eu'] = replace(policy, id='pol-index-eu', name='Index EU')
    scheduler = PolicyScheduler(FlakyEngine(store, audit))

    run = scheduler.run_due_policies(SLOT)

    [failure] = run.failures
    assert failure.policy_id == 'pol-index'
    assert failure.status == ExecutionStatus.FAILED
    assert "market price feed offline" in failure.log_summary
    assert [r.policy.id for r in run.executed] == ['pol-index-eu']
