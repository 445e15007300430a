"""
Explicit handles to the collaborators used by the service layer.

Views build a ``ServiceContext`` with ``get_context()`` and pass it into the
service functions; tests construct their own with fakes.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import redis
from django.conf import settings
from django.core.cache import cache as default_cache

logger = logging.getLogger(__name__)

# Redis connection pool for reusing connections
_redis_pool = None


def get_redis() -> redis.Redis:
    """Get a Redis client backed by the shared connection pool."""
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=10,
            decode_responses=True,
        )
        logger.info("Created Redis connection pool for %s", settings.REDIS_URL)

    return redis.Redis(connection_pool=_redis_pool)


@dataclass
class ServiceContext:
    redis: Any
    cache: Any
    mailer: Any
    queue: Any


_default_context: Optional[ServiceContext] = None


def get_context() -> ServiceContext:
    global _default_context
    if _default_context is None:
        # imported here: both pull in models, which need the app registry
        from accounts.mail import ConfirmEmailMailer
        from follows.queue import CeleryJobQueue

        _default_context = ServiceContext(
            redis=get_redis(),
            cache=default_cache,
            mailer=ConfirmEmailMailer(),
            queue=CeleryJobQueue(),
        )
    return _default_context
