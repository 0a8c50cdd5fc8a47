"""Per-user subscription and usage records.

Both records are flat JSON documents keyed by user id. Field names on the
wire keep the camelCase keys used by the web client (``expiresAt``,
``photosUsedToday`` ...); Python code uses the snake_case attributes.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .clock import ensure_aware


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"


class Kind(str, Enum):
    PHOTO = "photo"
    CALCULATOR = "calculator"


def _normalize_ts(value: datetime | None) -> datetime | None:
    return ensure_aware(value) if value is not None else None


class SubscriptionRecord(BaseModel):
    """Stored plan plus photo cooldown bookkeeping."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    plan: Plan = Plan.FREE
    expires_at: datetime | None = Field(None, alias="expiresAt")
    # Secondary counter tied to cooldown timing; independent of UsageCounters.photo_count
    photos_used_today: int = Field(0, ge=0, alias="photosUsedToday")
    last_photo_at: datetime | None = Field(None, alias="lastPhotoAt")

    @field_validator("expires_at", "last_photo_at")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return _normalize_ts(value)


class UsageCounters(BaseModel):
    """Daily per-kind counters with the day they apply to."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    calculator_count: int = Field(0, ge=0, alias="calculatorCount")
    photo_count: int = Field(0, ge=0, alias="photoCount")
    last_reset: datetime = Field(alias="lastReset")

    @field_validator("last_reset")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    def count_for(self, kind: Kind) -> int:
        return self.photo_count if kind == Kind.PHOTO else self.calculator_count


def default_subscription() -> SubscriptionRecord:
    return SubscriptionRecord()


def default_usage(now: datetime) -> UsageCounters:
    return UsageCounters(calculator_count=0, photo_count=0, last_reset=now)


def dump_record(record: BaseModel) -> str:
    """Serialize a record as its flat JSON document."""
    return record.model_dump_json(by_alias=True)


def load_subscription(raw: str | bytes) -> SubscriptionRecord:
    return SubscriptionRecord.model_validate_json(raw)


def load_usage(raw: str | bytes) -> UsageCounters:
    return UsageCounters.model_validate_json(raw)


__all__ = [
    "Plan",
    "Kind",
    "SubscriptionRecord",
    "UsageCounters",
    "default_subscription",
    "default_usage",
    "dump_record",
    "load_subscription",
    "load_usage",
]
