"""
Dependency injection for the TradeDesk API.
"""

import logging
from typing import Optional

import redis
from fastapi import Request

from ..data.cache import CacheStore, FileSnapshotStore, MemorySnapshotStore, RedisSnapshotStore, SnapshotStore
from ..data.rate_limiter import RateLimiterRegistry
from ..gateway.gateway import MarketDataGateway
from ..providers.factory import create_adapters
from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def get_redis_client(settings: Optional[Settings] = None) -> Optional[redis.Redis]:
    """
    Get Redis client for cache snapshots.

    Returns:
        Redis client or None if the server cannot be reached
    """
    settings = settings or get_settings()
    try:
        client = redis.from_url(settings.redis_url)
        # Test connection
        client.ping()
        return client
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        return None


def get_logger(name: str, settings: Optional[Settings] = None) -> logging.Logger:
    """
    Get configured logger.

    Args:
        name: Logger name

    Returns:
        Configured logger
    """
    settings = settings or get_settings()
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(settings.log_format)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, settings.log_level.upper()))

    return logger


def build_snapshot_store(settings: Settings) -> SnapshotStore:
    """Pick the snapshot backend; Redis falls back to files when unreachable."""
    backend = settings.cache_backend.lower()

    if backend == "memory":
        return MemorySnapshotStore()

    if backend == "redis":
        client = get_redis_client(settings)
        if client is not None:
            return RedisSnapshotStore(settings.redis_url, client=client)
        logger.warning("Redis unavailable, using file cache snapshots")

    elif backend != "file":
        raise ValueError(f"Unknown cache backend: {settings.cache_backend}")

    return FileSnapshotStore(settings.cache_snapshot_dir)


def create_gateway(settings: Optional[Settings] = None) -> MarketDataGateway:
    """Wire adapters, cache and rate limiters into a gateway."""
    settings = settings or get_settings()

    cache = CacheStore(
        snapshot_store=build_snapshot_store(settings),
        namespace=settings.cache_namespace,
        default_ttl=settings.quote_cache_ttl,
        persist_probability=settings.cache_persist_probability,
    )
    return MarketDataGateway(
        adapters=create_adapters(settings),
        cache=cache,
        rate_limiters=RateLimiterRegistry(settings.rate_limits),
        settings=settings,
    )


def get_gateway(request: Request) -> MarketDataGateway:
    """Get the gateway created by the application lifespan."""
    return request.app.state.gateway
