"""Entitlement evaluation for the freemium plans.

Everything here is pure: callers pass the records and the current time and
get back a plan or a :class:`Decision`. Denials are ordinary results, never
exceptions.

Free plan:
- 3 photo requests and 3 calculator requests per calendar day
- 30 seconds between consecutive photo requests
- final answer only (no steps, explanation or alternative methods)

PRO plan: no caps, no cooldown, full explanations and history.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, NamedTuple

from app.config import Settings

from .clock import ensure_aware
from .records import Kind, Plan, SubscriptionRecord, UsageCounters

settings = Settings()


class PlanLimits(NamedTuple):
    """Limit policy of one plan. ``None`` caps mean unlimited."""

    daily_photo_limit: int | None
    daily_calculator_limit: int | None
    photo_interval_s: int
    has_advanced_calculator: bool
    has_step_by_step: bool
    has_history: bool
    has_priority_processing: bool

    def cap_for(self, kind: Kind) -> int | None:
        if kind == Kind.PHOTO:
            return self.daily_photo_limit
        return self.daily_calculator_limit


class Decision(NamedTuple):
    allowed: bool
    reason: str | None = None
    wait_seconds: int | None = None


ALLOWED = Decision(allowed=True)

PLAN_LIMITS: dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(
        daily_photo_limit=settings.free_daily_photo_limit,
        daily_calculator_limit=settings.free_daily_calculator_limit,
        photo_interval_s=settings.free_photo_interval_s,
        has_advanced_calculator=False,
        has_step_by_step=False,
        has_history=False,
        has_priority_processing=False,
    ),
    Plan.PRO: PlanLimits(
        daily_photo_limit=None,
        daily_calculator_limit=None,
        photo_interval_s=0,
        has_advanced_calculator=True,
        has_step_by_step=True,
        has_history=True,
        has_priority_processing=True,
    ),
}

_KIND_NOUN = {Kind.PHOTO: "photo", Kind.CALCULATOR: "calculator question"}


def effective_plan(subscription: SubscriptionRecord, now: datetime) -> Plan:
    """Plan in force at ``now``: PRO only while ``expires_at`` is strictly in the future."""
    if subscription.plan != Plan.PRO or subscription.expires_at is None:
        return Plan.FREE
    if ensure_aware(now) < ensure_aware(subscription.expires_at):
        return Plan.PRO
    return Plan.FREE


def cooldown_remaining(
    subscription: SubscriptionRecord,
    now: datetime,
    interval_s: int,
) -> int:
    """Whole seconds left before another photo is allowed (0 when none)."""
    if interval_s <= 0 or subscription.last_photo_at is None:
        return 0
    elapsed = (ensure_aware(now) - subscription.last_photo_at).total_seconds()
    if elapsed >= interval_s:
        return 0
    return math.ceil(interval_s - elapsed)


def can_consume(
    kind: Kind,
    plan: Plan,
    counters: UsageCounters,
    subscription: SubscriptionRecord,
    now: datetime,
) -> Decision:
    """Decide whether a request of ``kind`` may be consumed.

    ``counters`` must already be rolled over to the current day. The daily
    cap is checked before the cooldown, and only photo requests have a
    cooldown.
    """
    policy = PLAN_LIMITS[plan]
    if plan == Plan.PRO:
        return ALLOWED

    cap = policy.cap_for(kind)
    if cap is not None and counters.count_for(kind) >= cap:
        return Decision(
            allowed=False,
            reason=(
                f"Daily limit of {cap} {_KIND_NOUN[kind]}s reached for today. "
                "Upgrade to PRO for unlimited access."
            ),
        )

    if kind == Kind.PHOTO:
        wait = cooldown_remaining(subscription, now, policy.photo_interval_s)
        if wait > 0:
            return Decision(
                allowed=False,
                reason=f"Please wait {wait} seconds before taking another photo.",
                wait_seconds=wait,
            )

    return ALLOWED


def remaining(kind: Kind, plan: Plan, counters: UsageCounters) -> int | None:
    cap = PLAN_LIMITS[plan].cap_for(kind)
    if cap is None:
        return None
    return max(0, cap - counters.count_for(kind))


def can_view_history(plan: Plan) -> Decision:
    if PLAN_LIMITS[plan].has_history:
        return ALLOWED
    return Decision(allowed=False, reason="Problem history is a PRO feature.")


def can_view_full_explanation(plan: Plan) -> Decision:
    if PLAN_LIMITS[plan].has_step_by_step:
        return ALLOWED
    return Decision(
        allowed=False,
        reason="Step-by-step explanations are available on PRO.",
    )


def present_solution(analysis: dict[str, Any], plan: Plan) -> dict[str, Any]:
    """Strip the PRO-only parts of an analysis for plans without them."""
    if can_view_full_explanation(plan).allowed:
        return {**analysis, "locked": False}
    solution = analysis.get("solution") or {}
    return {
        **analysis,
        "solution": {
            "steps": [],
            "methods": [],
            "final_answer": solution.get("final_answer", ""),
            "explanation": None,
        },
        "locked": True,
    }


__all__ = [
    "PlanLimits",
    "Decision",
    "PLAN_LIMITS",
    "effective_plan",
    "cooldown_remaining",
    "can_consume",
    "remaining",
    "can_view_history",
    "can_view_full_explanation",
    "present_solution",
]
