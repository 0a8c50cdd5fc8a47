from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import time
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError, model_validator

from app.config import Settings
from app.dependencies import (
    ErrorResponse,
    current_user_id,
    get_clock,
    get_countdowns,
    get_in_flight,
    get_record_store,
)
from app.metrics import (
    analysis_fail_total,
    analysis_latency_seconds,
    analysis_requests_total,
    quota_reject_total,
)
from app.models import ErrorCode
from app.services.analysis import analyze_problem
from app.services.clock import Clock
from app.services.countdown import CountdownRegistry
from app.services.entitlements import can_consume, present_solution, remaining
from app.services.history import append_problem_safe
from app.services.record_store import RecordStore
from app.services.records import Kind, Plan
from app.services.usage import InFlightGuard, load_entitlement, record_usage

settings = Settings()
logger = logging.getLogger(__name__)

OPTIONAL_FILE = File(None)

router = APIRouter(prefix="/solve")


class PhotoRequest(BaseModel):
    image_base64: str | None = None
    image_url: str | None = None
    content_type: str = "image/jpeg"

    @model_validator(mode="after")
    def _one_source(self) -> "PhotoRequest":
        if not (self.image_base64 or self.image_url):
            raise ValueError("image_base64 or image_url is required")
        return self


class TextRequest(BaseModel):
    problem_text: str

    @model_validator(mode="after")
    def _not_blank(self) -> "TextRequest":
        self.problem_text = self.problem_text.strip()
        if not self.problem_text:
            raise ValueError("problem_text must not be empty")
        return self


class UsageSnapshot(BaseModel):
    plan: Plan
    photo_remaining: int | None
    calculator_remaining: int | None
    countdown_seconds: int


class SolveResponse(BaseModel):
    analysis: dict[str, Any]
    usage: UsageSnapshot


def _error(status_code: int, code: ErrorCode, message: str, **extra: Any) -> JSONResponse:
    err = ErrorResponse(code=code, message=message, **extra)
    return JSONResponse(status_code=status_code, content=err.model_dump(exclude_none=True))


class _AnalysisError(Exception):
    def __init__(self, response: JSONResponse):
        self.response = response


async def _run_analysis(kind: Kind, payload: str) -> dict[str, Any]:
    analysis_requests_total.labels(kind=kind.value).inc()
    start_time = time.perf_counter()
    try:
        return await asyncio.to_thread(analyze_problem, kind, payload)
    except TimeoutError as exc:
        analysis_fail_total.labels(reason="timeout").inc()
        logger.exception("Analysis timeout")
        raise _AnalysisError(
            _error(502, ErrorCode.ANALYSIS_TIMEOUT, "Analysis timed out, please try again")
        ) from exc
    except ValueError as exc:
        analysis_fail_total.labels(reason="invalid").inc()
        logger.exception("Invalid analysis response")
        raise _AnalysisError(
            _error(502, ErrorCode.SERVICE_UNAVAILABLE, "Invalid analysis response, please try again")
        ) from exc
    except Exception as exc:
        analysis_fail_total.labels(reason="error").inc()
        logger.exception("Analysis error")
        raise _AnalysisError(
            _error(502, ErrorCode.SERVICE_UNAVAILABLE, "Analysis failed, please try again")
        ) from exc
    finally:
        analysis_latency_seconds.observe(time.perf_counter() - start_time)


async def _solve(
    kind: Kind,
    payload: str,
    user_id: str,
    background: BackgroundTasks,
    store: RecordStore,
    clock: Clock,
    countdowns: CountdownRegistry,
    in_flight: InFlightGuard,
    image_url: str | None = None,
):
    if not in_flight.acquire(user_id):
        return _error(409, ErrorCode.REQUEST_IN_FLIGHT, "A request is already being processed")
    try:
        current = await load_entitlement(store, user_id, clock())
        decision = can_consume(
            kind, current.plan, current.counters, current.subscription, current.now
        )
        if not decision.allowed:
            if decision.wait_seconds is not None:
                quota_reject_total.labels(reason="cooldown").inc()
                resp = _error(
                    429,
                    ErrorCode.COOLDOWN_ACTIVE,
                    decision.reason,
                    wait_seconds=decision.wait_seconds,
                )
                resp.headers["Retry-After"] = str(decision.wait_seconds)
                return resp
            quota_reject_total.labels(reason="limit").inc()
            return _error(402, ErrorCode.LIMIT_REACHED, decision.reason)

        try:
            analysis = await _run_analysis(kind, payload)
        except _AnalysisError as err:
            return err.response

        result = await record_usage(store, user_id, kind, clock())
        if result.arm_countdown:
            countdowns.arm(user_id)
    finally:
        in_flight.release(user_id)

    if current.plan == Plan.PRO:
        background.add_task(append_problem_safe, user_id, kind.value, analysis, image_url)

    return SolveResponse(
        analysis=present_solution(analysis, current.plan),
        usage=UsageSnapshot(
            plan=current.plan,
            photo_remaining=remaining(Kind.PHOTO, current.plan, result.counters),
            calculator_remaining=remaining(Kind.CALCULATOR, current.plan, result.counters),
            countdown_seconds=countdowns.remaining(user_id),
        ),
    )


async def _read_photo(request: Request, image: UploadFile | None) -> tuple[str, str | None] | JSONResponse:
    """Return the image as a URL for the model plus the URL to keep in history."""
    limit = settings.max_image_bytes
    if image is not None:
        contents = await image.read(limit + 1)
        if len(contents) > limit:
            return _error(413, ErrorCode.BAD_REQUEST, "image too large")
        if not contents:
            return _error(400, ErrorCode.BAD_REQUEST, "empty image")
        content_type = image.content_type or "image/jpeg"
        encoded = base64.b64encode(contents).decode()
        return f"data:{content_type};base64,{encoded}", None

    try:
        json_data = await request.json()
    except (json.JSONDecodeError, ValueError, RuntimeError):
        return _error(400, ErrorCode.BAD_REQUEST, "invalid JSON")
    try:
        body = PhotoRequest.model_validate(json_data)
    except ValidationError as err:
        message = "; ".join(e.get("msg", "") for e in err.errors())
        return _error(400, ErrorCode.BAD_REQUEST, message)

    if body.image_url:
        return body.image_url, None if body.image_url.startswith("data:") else body.image_url

    b64_limit = ((limit + 2) // 3) * 4
    if len(body.image_base64) > b64_limit:
        return _error(413, ErrorCode.BAD_REQUEST, "image too large")
    try:
        base64.b64decode(body.image_base64, validate=True)
    except binascii.Error:
        return _error(400, ErrorCode.BAD_REQUEST, "invalid base64")
    return f"data:{body.content_type};base64,{body.image_base64}", None


@router.post(
    "/photo",
    response_model=SolveResponse,
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def solve_photo(
    request: Request,
    background: BackgroundTasks,
    image: UploadFile | None = OPTIONAL_FILE,
    user_id: str = Depends(current_user_id),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock),
    countdowns: CountdownRegistry = Depends(get_countdowns),
    in_flight: InFlightGuard = Depends(get_in_flight),
):
    photo = await _read_photo(request, image)
    if isinstance(photo, JSONResponse):
        return photo
    payload, image_url = photo
    return await _solve(
        Kind.PHOTO,
        payload,
        user_id,
        background,
        store,
        clock,
        countdowns,
        in_flight,
        image_url=image_url,
    )


@router.post(
    "/text",
    response_model=SolveResponse,
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def solve_text(
    request: Request,
    background: BackgroundTasks,
    user_id: str = Depends(current_user_id),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock),
    countdowns: CountdownRegistry = Depends(get_countdowns),
    in_flight: InFlightGuard = Depends(get_in_flight),
):
    try:
        json_data = await request.json()
    except (json.JSONDecodeError, ValueError, RuntimeError):
        return _error(400, ErrorCode.BAD_REQUEST, "invalid JSON")
    try:
        body = TextRequest.model_validate(json_data)
    except ValidationError as err:
        message = "; ".join(e.get("msg", "") for e in err.errors())
        return _error(400, ErrorCode.BAD_REQUEST, message)
    return await _solve(
        Kind.CALCULATOR,
        body.problem_text,
        user_id,
        background,
        store,
        clock,
        countdowns,
        in_flight,
    )
