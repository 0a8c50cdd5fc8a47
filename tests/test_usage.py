from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.services.checkout import activate_pro
from app.services.entitlements import can_consume, effective_plan, remaining
from app.services.records import Kind, Plan, SubscriptionRecord, UsageCounters
from app.services.usage import (
    InFlightGuard,
    load_entitlement,
    record_consumption,
    record_usage,
    resolve_rollover,
    should_arm_countdown,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_rollover_resets_on_new_day():
    counters = UsageCounters(photo_count=2, calculator_count=3, last_reset=NOW)
    next_day = NOW + timedelta(days=1)
    rolled = resolve_rollover(counters, next_day)
    assert (rolled.photo_count, rolled.calculator_count) == (0, 0)
    assert rolled.last_reset == next_day


def test_rollover_keeps_same_day():
    counters = UsageCounters(photo_count=2, calculator_count=1, last_reset=NOW)
    assert resolve_rollover(counters, NOW + timedelta(hours=11)) is counters


def test_rollover_is_idempotent():
    counters = UsageCounters(photo_count=2, calculator_count=3, last_reset=NOW - timedelta(days=2))
    once = resolve_rollover(counters, NOW)
    twice = resolve_rollover(once, NOW + timedelta(minutes=5))
    assert twice == once


def test_rollover_uses_configured_timezone():
    # 23:30 UTC on the 10th is already the 11th in Tokyo
    late = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
    counters = UsageCounters(photo_count=1, last_reset=datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc))
    assert resolve_rollover(counters, late, "UTC").photo_count == 1
    assert resolve_rollover(counters, late, "Asia/Tokyo").photo_count == 0


@pytest.mark.parametrize("kind", list(Kind))
def test_record_increments_exactly_one_counter(kind):
    counters = UsageCounters(photo_count=1, calculator_count=2, last_reset=NOW)
    new_counters, _ = record_consumption(kind, counters, SubscriptionRecord(), NOW)
    assert new_counters.photo_count + new_counters.calculator_count == 4
    assert new_counters.photo_count >= counters.photo_count
    assert new_counters.calculator_count >= counters.calculator_count
    assert new_counters.count_for(kind) == counters.count_for(kind) + 1


def test_record_photo_updates_cooldown_bookkeeping():
    sub = SubscriptionRecord(photos_used_today=1, last_photo_at=NOW - timedelta(minutes=5))
    counters = UsageCounters(photo_count=1, last_reset=NOW)
    _, new_sub = record_consumption(Kind.PHOTO, counters, sub, NOW)
    assert new_sub.last_photo_at == NOW
    assert new_sub.photos_used_today == 2


def test_record_calculator_leaves_subscription_alone():
    sub = SubscriptionRecord(photos_used_today=1, last_photo_at=NOW - timedelta(minutes=5))
    counters = UsageCounters(last_reset=NOW)
    _, new_sub = record_consumption(Kind.CALCULATOR, counters, sub, NOW)
    assert new_sub is sub


def test_photos_used_today_diverges_from_photo_count():
    # counters were reset today by a calculator request, but the last photo was yesterday
    sub = SubscriptionRecord(photos_used_today=3, last_photo_at=NOW - timedelta(days=1))
    counters = UsageCounters(photo_count=0, calculator_count=1, last_reset=NOW - timedelta(hours=1))
    new_counters, new_sub = record_consumption(Kind.PHOTO, counters, sub, NOW)
    assert new_counters.photo_count == 1
    assert new_sub.photos_used_today == 1

    # a stale photo counter from yesterday is rolled over independently
    sub = SubscriptionRecord(photos_used_today=2, last_photo_at=NOW - timedelta(hours=2))
    counters = UsageCounters(photo_count=2, last_reset=NOW - timedelta(days=1))
    new_counters, new_sub = record_consumption(Kind.PHOTO, counters, sub, NOW)
    assert new_counters.photo_count == 1
    assert new_sub.photos_used_today == 3


@pytest.mark.parametrize(
    "count, expected",
    [(1, True), (2, True), (3, False)],
)
def test_countdown_not_armed_on_last_allowed_use(count, expected):
    counters = UsageCounters(calculator_count=count, last_reset=NOW)
    assert should_arm_countdown(Kind.CALCULATOR, Plan.FREE, counters) is expected


def test_countdown_never_armed_for_pro():
    counters = UsageCounters(photo_count=1, last_reset=NOW)
    assert should_arm_countdown(Kind.PHOTO, Plan.PRO, counters) is False


@pytest.mark.asyncio
async def test_record_usage_persists_both_records(store):
    result = await record_usage(store, "u1", Kind.PHOTO, NOW)
    assert result.arm_countdown is True
    assert result.counters.photo_count == 1

    stored_sub = await store.get_subscription("u1")
    stored_usage = await store.get_usage("u1", NOW)
    assert stored_sub.last_photo_at == NOW
    assert stored_sub.photos_used_today == 1
    assert stored_usage == result.counters


@pytest.mark.asyncio
async def test_free_photo_scenario(store):
    user = "scenario"
    await record_usage(store, user, Kind.PHOTO, NOW)

    later = NOW + timedelta(seconds=10)
    current = await load_entitlement(store, user, later)
    decision = can_consume(Kind.PHOTO, current.plan, current.counters, current.subscription, later)
    assert decision.allowed is False
    assert decision.wait_seconds == 20

    later = NOW + timedelta(seconds=31)
    current = await load_entitlement(store, user, later)
    assert can_consume(
        Kind.PHOTO, current.plan, current.counters, current.subscription, later
    ).allowed


@pytest.mark.asyncio
async def test_third_calculator_request_does_not_arm(store):
    results = [await record_usage(store, "calc", Kind.CALCULATOR, NOW) for _ in range(3)]
    assert [r.arm_countdown for r in results] == [True, True, False]

    current = await load_entitlement(store, "calc", NOW)
    decision = can_consume(
        Kind.CALCULATOR, current.plan, current.counters, current.subscription, NOW
    )
    assert decision.allowed is False
    assert "3" in decision.reason


@pytest.mark.asyncio
async def test_pro_expiry_scenario(store):
    user = "upgrader"
    await store.put_subscription(user, activate_pro(NOW))

    at_29 = NOW + timedelta(days=29)
    current = await load_entitlement(store, user, at_29)
    assert current.plan == Plan.PRO
    assert remaining(Kind.PHOTO, current.plan, current.counters) is None
    assert remaining(Kind.CALCULATOR, current.plan, current.counters) is None

    # heavy use on the last paid morning
    last_paid_morning = NOW + timedelta(days=29, hours=21)
    for _ in range(5):
        result = await record_usage(store, user, Kind.CALCULATOR, last_paid_morning)
        assert result.arm_countdown is False

    # the subscription lapses at noon; the paid-period counts still govern today
    lapsed = NOW + timedelta(days=30, hours=2)
    current = await load_entitlement(store, user, lapsed)
    assert current.plan == Plan.FREE
    assert current.counters.calculator_count == 5
    assert not can_consume(
        Kind.CALCULATOR, current.plan, current.counters, current.subscription, lapsed
    ).allowed

    at_31 = NOW + timedelta(days=31)
    current = await load_entitlement(store, user, at_31)
    assert effective_plan(current.subscription, at_31) == Plan.FREE
    assert current.counters.calculator_count == 0
    assert can_consume(
        Kind.CALCULATOR, current.plan, current.counters, current.subscription, at_31
    ).allowed


def test_in_flight_guard():
    guard = InFlightGuard()
    assert guard.acquire("u") is True
    assert guard.acquire("u") is False
    assert "u" in guard
    assert guard.acquire("other") is True
    guard.release("u")
    assert guard.acquire("u") is True
