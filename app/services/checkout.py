"""Simulated PRO checkout.

No money moves: a payment "succeeds" once the form is complete, and the
success handler installs a fresh PRO record for the user.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import NamedTuple

from app.config import Settings
from app.metrics import checkout_success_total

from .record_store import RecordStore
from .records import Plan, SubscriptionRecord

settings = Settings()
logger = logging.getLogger(__name__)


class Price(NamedTuple):
    region: str
    currency: str
    symbol: str
    amount: float
    formatted: str


PRICES = {
    "brazil": Price("brazil", "BRL", "R$", 14.90, "R$ 14,90"),
    "international": Price("international", "USD", "$", 2.99, "$2.99"),
}


def region_for_language(accept_language: str | None) -> str:
    """Portuguese-speaking clients pay in BRL, everyone else in USD."""
    lang = (accept_language or "en").strip().lower()
    return "brazil" if lang.startswith("pt") else "international"


def price_for_language(accept_language: str | None) -> Price:
    return PRICES[region_for_language(accept_language)]


def activate_pro(now: datetime, days: int | None = None) -> SubscriptionRecord:
    """Fresh PRO record; any previous cooldown state is dropped."""
    days = settings.pro_subscription_days if days is None else days
    return SubscriptionRecord(
        plan=Plan.PRO,
        expires_at=now + timedelta(days=days),
        photos_used_today=0,
        last_photo_at=None,
    )


async def install_pro_subscription(
    store: RecordStore,
    user_id: str,
    now: datetime,
) -> SubscriptionRecord:
    """Checkout success handler: overwrite the user's subscription with PRO."""
    record = activate_pro(now)
    await store.put_subscription(user_id, record)
    checkout_success_total.inc()
    logger.info(
        "pro activated expires_at=%s",
        record.expires_at.isoformat(),
        extra={"user_id": user_id, "plan": record.plan},
    )
    return record


async def process_simulated_payment() -> None:
    if settings.checkout_processing_delay > 0:
        await asyncio.sleep(settings.checkout_processing_delay)


__all__ = [
    "Price",
    "PRICES",
    "region_for_language",
    "price_for_language",
    "activate_pro",
    "install_pro_subscription",
    "process_simulated_payment",
]
