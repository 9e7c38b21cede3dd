from typing import Optional

from redis import Redis

from .config import settings


def make_redis(url: Optional[str]) -> Optional[Redis]:
    if not url:
        return None
    return Redis.from_url(url, socket_timeout=2.0)


# None when REDIS_URL is not configured: slots are then computed on every read
redis_client = make_redis(settings.redis_url)
