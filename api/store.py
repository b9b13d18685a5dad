from __future__ import annotations

from typing import Optional

from redis import Redis

from api.config import Settings, get_settings


def get_redis(settings: Optional[Settings] = None) -> Optional[Redis]:
    """Redis client for the configured URL, or None when no store is configured."""
    settings = settings or get_settings()
    if not settings.redis_url:
        return None
    return Redis.from_url(settings.redis_url, decode_responses=True, socket_timeout=5)
