from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.dependencies import ErrorResponse, current_user_id, get_clock, get_record_store
from app.models import ErrorCode
from app.services import history as history_service
from app.services.clock import Clock
from app.services.entitlements import can_view_history, effective_plan
from app.services.history import ProblemItem
from app.services.record_store import RecordStore

router = APIRouter(prefix="/history")


class FavoriteRequest(BaseModel):
    is_favorite: bool


class HistoryResponse(BaseModel):
    items: list[ProblemItem]


async def require_history(
    user_id: str = Depends(current_user_id),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock),
) -> str:
    """Allow the request only while the user's effective plan includes history."""
    subscription = await store.get_subscription(user_id)
    decision = can_view_history(effective_plan(subscription, clock()))
    if not decision.allowed:
        err = ErrorResponse(code=ErrorCode.PRO_REQUIRED, message=decision.reason)
        raise HTTPException(status_code=403, detail=err.model_dump(exclude_none=True))
    return user_id


@router.get(
    "",
    response_model=HistoryResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_history(
    favorites: bool = False,
    user_id: str = Depends(require_history),
):
    items = await asyncio.to_thread(history_service.list_problems, user_id, favorites)
    return HistoryResponse(items=items)


@router.patch(
    "/{problem_id}/favorite",
    response_model=ProblemItem,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def set_favorite(
    problem_id: int,
    body: FavoriteRequest,
    user_id: str = Depends(require_history),
):
    item = await asyncio.to_thread(
        history_service.set_favorite, user_id, problem_id, body.is_favorite
    )
    if item is None:
        err = ErrorResponse(code=ErrorCode.NOT_FOUND, message="Problem not found")
        raise HTTPException(status_code=404, detail=err.model_dump(exclude_none=True))
    return item


@router.delete(
    "/{problem_id}",
    status_code=204,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_history_item(
    problem_id: int,
    user_id: str = Depends(require_history),
):
    deleted = await asyncio.to_thread(history_service.delete_problem, user_id, problem_id)
    if not deleted:
        err = ErrorResponse(code=ErrorCode.NOT_FOUND, message="Problem not found")
        raise HTTPException(status_code=404, detail=err.model_dump(exclude_none=True))
