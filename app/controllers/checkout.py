from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, ValidationError, field_validator

from app.config import Settings
from app.dependencies import (
    ErrorResponse,
    current_user_id,
    get_clock,
    get_countdowns,
    get_record_store,
)
from app.models import ErrorCode
from app.services.checkout import (
    install_pro_subscription,
    price_for_language,
    process_simulated_payment,
)
from app.services.clock import Clock
from app.services.countdown import CountdownRegistry
from app.services.record_store import RecordStore
from app.services.records import Plan

settings = Settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout")


class CheckoutRequest(BaseModel):
    card_name: str
    card_number: str
    expiry_date: str
    cvv: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "Brasil"

    @field_validator(
        "card_name",
        "card_number",
        "expiry_date",
        "cvv",
        "address",
        "city",
        "state",
        "zip_code",
    )
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field is required")
        return v


class CheckoutResponse(BaseModel):
    plan: Plan
    expires_at: datetime
    redirect_after_seconds: int


class PriceResponse(BaseModel):
    region: str
    currency: str
    symbol: str
    amount: float
    formatted: str


@router.get("/price", response_model=PriceResponse)
async def get_price(accept_language: str | None = Header(None, alias="Accept-Language")):
    return PriceResponse(**price_for_language(accept_language)._asdict())


@router.post(
    "",
    response_model=CheckoutResponse,
    responses={400: {"model": ErrorResponse}},
)
async def checkout(
    request: Request,
    user_id: str = Depends(current_user_id),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock),
    countdowns: CountdownRegistry = Depends(get_countdowns),
):
    try:
        payload = await request.json()
    except ValueError as exc:
        err = ErrorResponse(code=ErrorCode.BAD_REQUEST, message="Invalid JSON payload")
        raise HTTPException(status_code=400, detail=err.model_dump(exclude_none=True)) from exc
    try:
        CheckoutRequest.model_validate(payload)
    except ValidationError as exc:
        err = ErrorResponse(
            code=ErrorCode.BAD_REQUEST,
            message="Please fill in all required fields",
        )
        raise HTTPException(status_code=400, detail=err.model_dump(exclude_none=True)) from exc

    await process_simulated_payment()
    record = await install_pro_subscription(store, user_id, clock())
    # PRO has no cooldown, so a running countdown no longer applies
    countdowns.cancel(user_id)
    return CheckoutResponse(
        plan=record.plan,
        expires_at=record.expires_at,
        redirect_after_seconds=settings.checkout_redirect_seconds,
    )
