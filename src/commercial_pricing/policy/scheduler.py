"""
Scheduled-job logic: which policies are due, running them, expiring offers.

Only the decisions a job runner invokes live here; triggering them on a
timer is left to the host (cron, a worker, ``scripts/run_scheduled.py``).
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..config.log import get_logger
from ..config.settings import get_settings
from ..engine.enums import ExecutionCadence, ExecutionStatus, ExecutionType, ScheduleFrequency
from ..engine.models import Offer, PolicyExecution, PricingPolicy
from ..engine.money import to_utc, utcnow
from ..services.offer_service import OfferService
from .pricing_policy_engine import ExecutionResult, PricingPolicyEngine

logger = get_logger(__name__)


def is_due(policy: PricingPolicy, now: datetime, window_minutes: int = 30) -> bool:
    """
    Whether a scheduled policy should run at ``now``.

    The policy must be Active with a scheduled cadence, ``now`` must be
    within the window around today's slot, it must be the right day for
    weekly/monthly schedules, and it must not have run yet this period.
    """
    if not policy.is_active() or policy.execution_cadence != ExecutionCadence.SCHEDULED:
        return False
    schedule = policy.schedule
    if schedule is None:
        logger.warning(f"Scheduled policy {policy.id} has no schedule configuration")
        return False

    now = to_utc(now)
    hour, minute = schedule.hour_minute()
    slot = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    window = timedelta(minutes=window_minutes)
    if not slot - window <= now <= slot + window:
        return False

    last = to_utc(policy.last_executed_at) if policy.last_executed_at else None

    if schedule.frequency == ScheduleFrequency.DAILY:
        return last is None or last.date() != now.date()

    if schedule.frequency == ScheduleFrequency.WEEKLY:
        target_day = schedule.day_of_week if schedule.day_of_week is not None else 0
        if now.weekday() != target_day:
            return False
        return last is None or last.isocalendar()[:2] != now.isocalendar()[:2]

    if schedule.frequency == ScheduleFrequency.MONTHLY:
        target_day = schedule.day_of_month if schedule.day_of_month is not None else 1
        if now.day != target_day:
            return False
        return last is None or (last.year, last.month) != (now.year, now.month)

    return False


@dataclass
class SchedulerRun:
    """What one scheduler tick did."""
    at: datetime
    executed: list[ExecutionResult] = field(default_factory=list)
    failures: list[PolicyExecution] = field(default_factory=list)
    expired_offers: list[Offer] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.executed)} policies executed, {len(self.failures)} failed, "
            f"{len(self.expired_offers)} offers expired"
        )


class PolicyScheduler:
    """Runs due scheduled policies and sweeps expired offers."""

    def __init__(
        self,
        engine: PricingPolicyEngine,
        offers: Optional[OfferService] = None,
        window_minutes: Optional[int] = None,
    ):
        self.engine = engine
        self.offers = offers or OfferService(engine.store, engine.audit)
        self.window_minutes = window_minutes if window_minutes is not None else get_settings().schedule_window_minutes

    def due_policies(self, now: datetime) -> list[PricingPolicy]:
        return [
            policy for policy in self.engine.store.policies.values()
            if is_due(policy, now, self.window_minutes)
        ]

    def run_due_policies(self, now: Optional[datetime] = None, run: Optional[SchedulerRun] = None) -> SchedulerRun:
        now = to_utc(now) if now is not None else utcnow()
        run = run or SchedulerRun(at=now)
        due = self.due_policies(now)
        logger.info(f"Checking scheduled pricing policies: {len(due)} due")

        for policy in due:
            try:
                result = self.engine.execute(policy, execution_type=ExecutionType.SCHEDULED, at=now)
            except Exception as exc:
                logger.exception(f"Scheduled execution of policy {policy.id} failed: {exc}")
                run.failures.append(self.engine.record_execution(
                    policy,
                    ExecutionType.SCHEDULED,
                    now,
                    processed=0,
                    generated=0,
                    errors=1,
                    status=ExecutionStatus.FAILED,
                    summary=f"Scheduled execution failed: {exc}",
                ))
                continue
            logger.info(f"Scheduled policy {policy.id}: {result.prices_generated} prices generated")
            run.executed.append(result)
        return run

    def run(self, now: Optional[datetime] = None) -> SchedulerRun:
        """One tick: expire due offers, then run due policies."""
        now = to_utc(now) if now is not None else utcnow()
        run = SchedulerRun(at=now)
        run.expired_offers = self.offers.expire_due(now)
        self.run_due_policies(now, run)
        logger.info(f"Scheduler tick at {now.isoformat()}: {run.summary()}")
        return run
