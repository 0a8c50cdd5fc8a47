from __future__ import annotations

import logging

from fastapi import Header, HTTPException, Request
from pydantic import BaseModel

from app.config import Settings
from app.models import ErrorCode
from app.services.accounts import resolve_user_id
from app.services.clock import Clock, utc_now
from app.services.countdown import CountdownRegistry
from app.services.record_store import RecordStore, get_store
from app.services.usage import InFlightGuard

settings = Settings()

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str
    wait_seconds: int | None = None


async def current_user_id(
    x_api_ver: str | None = Header(None, alias="X-API-Ver"),
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> str:
    if x_api_ver is None:
        err = ErrorResponse(code=ErrorCode.UPGRADE_REQUIRED, message="Missing API version")
        raise HTTPException(status_code=426, detail=err.model_dump())

    if x_api_ver != "v1":
        err = ErrorResponse(code=ErrorCode.UPGRADE_REQUIRED, message="Invalid API version")
        raise HTTPException(status_code=426, detail=err.model_dump())

    return resolve_user_id(x_user_id, settings)


def get_clock() -> Clock:
    return utc_now


def get_record_store() -> RecordStore:
    return get_store()


def get_countdowns(request: Request) -> CountdownRegistry:
    registry = getattr(request.app.state, "countdowns", None)
    if registry is None:
        registry = CountdownRegistry(settings.countdown_seconds)
        request.app.state.countdowns = registry
    return registry


def get_in_flight(request: Request) -> InFlightGuard:
    guard = getattr(request.app.state, "in_flight", None)
    if guard is None:
        guard = InFlightGuard()
        request.app.state.in_flight = guard
    return guard
