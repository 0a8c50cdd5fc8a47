"""Usage recording: day-rollover, counter increments and countdown arming."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import NamedTuple

from app.config import Settings

from .clock import same_day
from .entitlements import PLAN_LIMITS, effective_plan
from .record_store import RecordStore
from .records import Kind, Plan, SubscriptionRecord, UsageCounters

settings = Settings()
logger = logging.getLogger(__name__)


class Entitlement(NamedTuple):
    """Records of one user as seen at ``now``, counters already rolled over."""

    user_id: str
    plan: Plan
    subscription: SubscriptionRecord
    counters: UsageCounters
    now: datetime


class ConsumptionResult(NamedTuple):
    counters: UsageCounters
    subscription: SubscriptionRecord
    arm_countdown: bool


def resolve_rollover(
    counters: UsageCounters,
    now: datetime,
    tz_name: str | None = None,
) -> UsageCounters:
    """Zero both counters when ``last_reset`` is not on today's date."""
    tz_name = tz_name or settings.day_boundary_tz
    if same_day(counters.last_reset, now, tz_name):
        return counters
    return UsageCounters(calculator_count=0, photo_count=0, last_reset=now)


def record_consumption(
    kind: Kind,
    counters: UsageCounters,
    subscription: SubscriptionRecord,
    now: datetime,
    tz_name: str | None = None,
) -> tuple[UsageCounters, SubscriptionRecord]:
    """Apply one consumed request of ``kind`` and return the new records.

    Only call this after the analysis succeeded, exactly once per request.
    """
    tz_name = tz_name or settings.day_boundary_tz
    counters = resolve_rollover(counters, now, tz_name)
    if kind == Kind.PHOTO:
        counters = counters.model_copy(update={"photo_count": counters.photo_count + 1})
        if same_day(subscription.last_photo_at, now, tz_name):
            photos_today = subscription.photos_used_today + 1
        else:
            photos_today = 1
        subscription = subscription.model_copy(
            update={"photos_used_today": photos_today, "last_photo_at": now}
        )
    else:
        counters = counters.model_copy(
            update={"calculator_count": counters.calculator_count + 1}
        )
    return counters, subscription


def should_arm_countdown(kind: Kind, plan: Plan, counters: UsageCounters) -> bool:
    """Arm a countdown for free users unless this request used the last allowance."""
    if plan != Plan.FREE:
        return False
    cap = PLAN_LIMITS[plan].cap_for(kind)
    return cap is None or counters.count_for(kind) < cap


async def load_entitlement(store: RecordStore, user_id: str, now: datetime) -> Entitlement:
    subscription, counters = await asyncio.gather(
        store.get_subscription(user_id),
        store.get_usage(user_id, now),
    )
    counters = resolve_rollover(counters, now)
    return Entitlement(
        user_id=user_id,
        plan=effective_plan(subscription, now),
        subscription=subscription,
        counters=counters,
        now=now,
    )


async def record_usage(
    store: RecordStore,
    user_id: str,
    kind: Kind,
    now: datetime,
) -> ConsumptionResult:
    """Reload the user's records, apply one consumption and persist both records."""
    current = await load_entitlement(store, user_id, now)
    counters, subscription = record_consumption(
        kind, current.counters, current.subscription, now
    )
    await store.put_usage(user_id, counters)
    if subscription is not current.subscription:
        await store.put_subscription(user_id, subscription)
    plan = effective_plan(subscription, now)
    arm = should_arm_countdown(kind, plan, counters)
    logger.info(
        "usage recorded photo=%d calculator=%d arm=%s",
        counters.photo_count,
        counters.calculator_count,
        arm,
        extra={"user_id": user_id, "kind": kind, "plan": plan},
    )
    return ConsumptionResult(counters=counters, subscription=subscription, arm_countdown=arm)


class InFlightGuard:
    """Allows one solve request per user at a time within this process."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def acquire(self, user_id: str) -> bool:
        if user_id in self._active:
            return False
        self._active.add(user_id)
        return True

    def release(self, user_id: str) -> None:
        self._active.discard(user_id)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._active


__all__ = [
    "Entitlement",
    "ConsumptionResult",
    "resolve_rollover",
    "record_consumption",
    "should_arm_countdown",
    "load_entitlement",
    "record_usage",
    "InFlightGuard",
]
