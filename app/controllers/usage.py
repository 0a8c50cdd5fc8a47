from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.dependencies import (
    ErrorResponse,
    current_user_id,
    get_clock,
    get_countdowns,
    get_record_store,
)
from app.services.clock import Clock
from app.services.countdown import CountdownRegistry
from app.services.entitlements import PLAN_LIMITS, cooldown_remaining, remaining
from app.services.record_store import RecordStore
from app.services.records import Kind, Plan
from app.services.usage import load_entitlement

router = APIRouter()


class KindUsage(BaseModel):
    used: int
    limit: int | None
    remaining: int | None


class PlanFeatures(BaseModel):
    advanced_calculator: bool
    step_by_step: bool
    history: bool
    priority_processing: bool


class UsageResponse(BaseModel):
    user_id: str
    plan: Plan
    expires_at: datetime | None = None
    photo: KindUsage
    calculator: KindUsage
    photo_wait_seconds: int
    countdown_seconds: int
    features: PlanFeatures


@router.get(
    "/usage",
    response_model=UsageResponse,
    responses={426: {"model": ErrorResponse}},
)
async def get_usage(
    user_id: str = Depends(current_user_id),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock),
    countdowns: CountdownRegistry = Depends(get_countdowns),
):
    current = await load_entitlement(store, user_id, clock())
    limits = PLAN_LIMITS[current.plan]

    def _kind(kind: Kind) -> KindUsage:
        return KindUsage(
            used=current.counters.count_for(kind),
            limit=limits.cap_for(kind),
            remaining=remaining(kind, current.plan, current.counters),
        )

    return UsageResponse(
        user_id=user_id,
        plan=current.plan,
        expires_at=current.subscription.expires_at if current.plan == Plan.PRO else None,
        photo=_kind(Kind.PHOTO),
        calculator=_kind(Kind.CALCULATOR),
        photo_wait_seconds=cooldown_remaining(
            current.subscription, current.now, limits.photo_interval_s
        ),
        countdown_seconds=countdowns.remaining(user_id),
        features=PlanFeatures(
            advanced_calculator=limits.has_advanced_calculator,
            step_by_step=limits.has_step_by_step,
            history=limits.has_history,
            priority_processing=limits.has_priority_processing,
        ),
    )
