"""Problem history for PRO users.

Synchronous helpers meant for ``asyncio.to_thread``. ``append_problem_safe``
is the fire-and-forget entry point used after a solve: it never raises.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError

from app import db as db_module
from app.metrics import history_save_fail_total
from app.models import Problem

logger = logging.getLogger(__name__)


class ProblemItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    problem_text: str
    topic: str | None = None
    difficulty: str | None = None
    solution: dict[str, Any]
    image_url: str | None = None
    is_favorite: bool
    created_at: datetime


def append_problem(
    user_id: str,
    kind: str,
    analysis: dict[str, Any],
    image_url: str | None = None,
) -> int:
    with db_module.SessionLocal() as db:
        problem = Problem(
            user_id=user_id,
            kind=kind,
            problem_text=analysis.get("problem_text", ""),
            topic=analysis.get("topic"),
            difficulty=analysis.get("difficulty"),
            solution=analysis.get("solution") or {},
            image_url=image_url,
            is_favorite=False,
        )
        db.add(problem)
        db.commit()
        return problem.id


def append_problem_safe(
    user_id: str,
    kind: str,
    analysis: dict[str, Any],
    image_url: str | None = None,
) -> int | None:
    try:
        return append_problem(user_id, kind, analysis, image_url)
    except (SQLAlchemyError, RuntimeError):
        history_save_fail_total.inc()
        logger.exception("Failed to save problem history for %s", user_id)
        return None


def list_problems(user_id: str, favorites_only: bool = False) -> list[ProblemItem]:
    with db_module.SessionLocal() as db:
        q = db.query(Problem).filter(Problem.user_id == user_id)
        if favorites_only:
            q = q.filter(Problem.is_favorite.is_(True))
        rows = q.order_by(Problem.created_at.desc(), Problem.id.desc()).all()
        return [ProblemItem.model_validate(r) for r in rows]


def set_favorite(user_id: str, problem_id: int, is_favorite: bool) -> ProblemItem | None:
    with db_module.SessionLocal() as db:
        problem = db.query(Problem).filter_by(id=problem_id, user_id=user_id).first()
        if problem is None:
            return None
        problem.is_favorite = is_favorite
        db.commit()
        db.refresh(problem)
        return ProblemItem.model_validate(problem)


def delete_problem(user_id: str, problem_id: int) -> bool:
    with db_module.SessionLocal() as db:
        deleted = (
            db.query(Problem)
            .filter_by(id=problem_id, user_id=user_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return bool(deleted)


__all__ = [
    "ProblemItem",
    "append_problem",
    "append_problem_safe",
    "list_problems",
    "set_favorite",
    "delete_problem",
]
