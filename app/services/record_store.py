"""Durable key-value store for subscription and usage records.

Records live in Redis as JSON strings. The store never raises: a Redis
outage, a missing ``REDIS_URL`` or a corrupted document all degrade to the
last record this process knows about, then to free-tier defaults.
"""
from __future__ import annotations

import logging
from datetime import datetime

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from app.config import Settings
from app.metrics import record_store_errors_total

from .records import (
    SubscriptionRecord,
    UsageCounters,
    default_subscription,
    default_usage,
    dump_record,
    load_subscription,
    load_usage,
)

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, client: redis.Redis | None, prefix: str = "labsnap") -> None:
        self.client = client
        self.prefix = prefix
        # Records written in this process
        self._local: dict[str, str] = {}
        # Keys whose last Redis write failed; the local copy wins for these
        self._dirty: set[str] = set()

    def _key(self, kind: str, user_id: str) -> str:
        return f"{self.prefix}:{kind}:{user_id}"

    async def _get_raw(self, key: str) -> str | None:
        if self.client is None or key in self._dirty:
            return self._local.get(key)
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            record_store_errors_total.labels(op="get").inc()
            logger.warning("record store read failed for %s: %s", key, exc)
            return self._local.get(key)
        if raw is None:
            return self._local.get(key)
        return raw

    async def _put_raw(self, key: str, value: str) -> None:
        self._local[key] = value
        if self.client is None:
            return
        try:
            await self.client.set(key, value)
        except RedisError as exc:
            self._dirty.add(key)
            record_store_errors_total.labels(op="put").inc()
            logger.warning("record store write failed for %s: %s", key, exc)
        else:
            self._dirty.discard(key)

    async def get_subscription(self, user_id: str) -> SubscriptionRecord:
        key = self._key("subscription", user_id)
        raw = await self._get_raw(key)
        if raw is None:
            return default_subscription()
        try:
            return load_subscription(raw)
        except ValidationError:
            record_store_errors_total.labels(op="decode").inc()
            logger.warning("malformed subscription record for %s, using defaults", user_id)
            return default_subscription()

    async def put_subscription(self, user_id: str, record: SubscriptionRecord) -> None:
        await self._put_raw(self._key("subscription", user_id), dump_record(record))

    async def get_usage(self, user_id: str, now: datetime) -> UsageCounters:
        key = self._key("usage", user_id)
        raw = await self._get_raw(key)
        if raw is None:
            return default_usage(now)
        try:
            return load_usage(raw)
        except ValidationError:
            record_store_errors_total.labels(op="decode").inc()
            logger.warning("malformed usage record for %s, using defaults", user_id)
            return default_usage(now)

    async def put_usage(self, user_id: str, counters: UsageCounters) -> None:
        await self._put_raw(self._key("usage", user_id), dump_record(counters))


_store: RecordStore | None = None


def build_store(cfg: Settings) -> RecordStore:
    client = None
    if cfg.redis_url:
        client = redis.from_url(cfg.redis_url, encoding="utf-8", decode_responses=True)
    return RecordStore(client, prefix=cfg.record_key_prefix)


async def init_store(cfg: Settings) -> RecordStore:
    """Create the process-wide store from settings."""
    global _store
    await close_store()
    _store = build_store(cfg)
    return _store


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = build_store(Settings())
    return _store


async def close_store() -> None:
    global _store
    if _store is not None and _store.client is not None:
        try:
            await _store.client.aclose()
        except RedisError:  # pragma: no cover - best effort cleanup
            logger.exception("Failed to close Redis client")
    _store = None


__all__ = ["RecordStore", "build_store", "init_store", "get_store", "close_store"]
