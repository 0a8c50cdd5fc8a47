"""Account provider: maps a request to the user id that metering runs against."""
from __future__ import annotations

from app.config import Settings


def resolve_user_id(header_user_id: str | None, cfg: Settings) -> str:
    """Return the signed-in user id, or the demo id when there is none.

    With accounts disabled every request is the demo user, so quotas still
    apply to anonymous use.
    """
    if not cfg.auth_enabled:
        return cfg.demo_user_id
    user_id = (header_user_id or "").strip()
    return user_id or cfg.demo_user_id


__all__ = ["resolve_user_id"]
