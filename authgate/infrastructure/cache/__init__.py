"""
Cache infrastructure module.
"""
from .redis import close_redis_pool, get_redis

__all__ = ["close_redis_pool", "get_redis"]
