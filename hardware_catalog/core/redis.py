import json
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI
from loguru import logger

from hardware_catalog.core.config import settings
from hardware_catalog.core.metrics import (
    REDIS_CACHE_HITS_TOTAL,
    REDIS_CACHE_MISSES_TOTAL,
    REDIS_CONNECTION_STATUS,
    REDIS_OPS,
)

SERVICE_NAME = settings.SERVICE_NAME

redis_client: redis.Redis | None = None


def _redis_op(operation: str, status: str):
    REDIS_OPS.labels(service=SERVICE_NAME, operation=operation, status=status).inc()


async def init_redis(app: FastAPI):
    global redis_client

    if not settings.REDIS_URL:
        logger.info("REDIS_URL is not set, categories cache disabled")
        _redis_op("init", "disabled")
        return

    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await client.ping()
    except Exception:
        REDIS_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(0)
        _redis_op("init", "error")
        logger.exception("Redis at {url} is unreachable", url=settings.REDIS_URL)
        await client.aclose()
        raise

    redis_client = client
    app.state.redis = client
    REDIS_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(1)
    _redis_op("init", "success")
    logger.info("Redis client connected to {url}", url=settings.REDIS_URL)


async def close_redis():
    global redis_client
    if redis_client is None:
        _redis_op("close", "noop")
        return

    await redis_client.aclose()
    redis_client = None
    REDIS_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(0)
    _redis_op("close", "success")
    logger.info("Redis client closed")


async def get_redis() -> redis.Redis | None:
    # None означает «работаем без кэша»
    return redis_client


async def cache_get_json(client: redis.Redis, key: str) -> Any | None:
    try:
        raw = await client.get(key)
    except Exception:
        _redis_op("get", "error")
        logger.exception("Redis GET failed for key={key}", key=key)
        raise
    _redis_op("get", "success")

    if raw is None:
        REDIS_CACHE_MISSES_TOTAL.labels(service=SERVICE_NAME, cache_key=key).inc()
        return None
    REDIS_CACHE_HITS_TOTAL.labels(service=SERVICE_NAME, cache_key=key).inc()
    return json.loads(raw)


async def cache_set_json(client: redis.Redis, key: str, value: Any, ttl_seconds: int):
    try:
        await client.set(key, json.dumps(value), ex=ttl_seconds)
    except Exception:
        _redis_op("set", "error")
        logger.exception("Redis SET failed for key={key}", key=key)
        raise
    _redis_op("set", "success")


async def cache_delete(client: redis.Redis, key: str) -> bool:
    try:
        deleted = await client.delete(key)
    except Exception:
        _redis_op("delete", "error")
        logger.exception("Redis DELETE failed for key={key}", key=key)
        raise
    _redis_op("delete", "success" if deleted else "noop")
    return bool(deleted)
