"""
Session Stores

Persist the pending authentication attempt between the begin and
callback requests. Every store is keyed by a fixed session name and
holds one JSON-compatible value per key.

The cookie store relies on Starlette's ``SessionMiddleware`` for signing.
The Redis store keeps only a random identifier in that cookie and the
value itself server side with a TTL.
"""
import json
import secrets
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError
from starlette.requests import Request

from authgate.core.config import Settings
from authgate.core.exceptions import ConfigurationError, InvalidSessionError
from authgate.core.logging import mask_token
from authgate.infrastructure.cache import get_redis

logger = structlog.get_logger(__name__)


class SessionStore(ABC):
    """Storage for pending authentication state."""

    @abstractmethod
    async def get(self, request: Request, key: str) -> Optional[Dict[str, Any]]:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    async def save(self, request: Request, key: str, value: Dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def delete(self, request: Request, key: str) -> None:
        """Remove ``key`` if present."""


class CookieSessionStore(SessionStore):
    """Store values in the signed session cookie."""

    async def get(self, request: Request, key: str) -> Optional[Dict[str, Any]]:
        value = request.session.get(key)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise InvalidSessionError("stored session has an unexpected format")
        return value

    async def save(self, request: Request, key: str, value: Dict[str, Any]) -> None:
        request.session[key] = value

    async def delete(self, request: Request, key: str) -> None:
        request.session.pop(key, None)


class RedisSessionStore(SessionStore):
    """Store values in Redis, referenced by an id kept in the session cookie."""

    sid_key = "_authgate_sid"

    def __init__(
        self,
        ttl_seconds: int = 600,
        prefix: str = "authgate:session",
        client_factory: Callable[[], Awaitable[redis.Redis]] = get_redis,
    ):
        self.ttl = ttl_seconds
        self.prefix = prefix
        self._client_factory = client_factory

    def _make_key(self, sid: str, key: str) -> str:
        return f"{self.prefix}:{sid}:{key}"

    def _session_id(self, request: Request, create: bool = False) -> Optional[str]:
        sid = request.session.get(self.sid_key)
        if sid is None and create:
            sid = secrets.token_urlsafe(32)
            request.session[self.sid_key] = sid
        return sid

    async def get(self, request: Request, key: str) -> Optional[Dict[str, Any]]:
        sid = self._session_id(request)
        if sid is None:
            return None

        client = await self._client_factory()
        try:
            data = await client.get(self._make_key(sid, key))
        except RedisError as e:
            logger.error("redis_session_get_error", error=str(e), sid=mask_token(sid))
            raise

        if not data:
            return None

        try:
            value = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidSessionError("stored session could not be decoded") from e
        if not isinstance(value, dict):
            raise InvalidSessionError("stored session has an unexpected format")
        return value

    async def save(self, request: Request, key: str, value: Dict[str, Any]) -> None:
        sid = self._session_id(request, create=True)
        client = await self._client_factory()
        try:
            await client.setex(self._make_key(sid, key), self.ttl, json.dumps(value))
        except RedisError as e:
            logger.error("redis_session_store_error", error=str(e), sid=mask_token(sid))
            raise

    async def delete(self, request: Request, key: str) -> None:
        sid = self._session_id(request)
        if sid is None:
            return

        client = await self._client_factory()
        try:
            await client.delete(self._make_key(sid, key))
        except RedisError as e:
            logger.error("redis_session_delete_error", error=str(e), sid=mask_token(sid))
            raise


def build_session_store(settings: Settings) -> SessionStore:
    """Select the session store configured by ``SESSION_BACKEND``."""
    if settings.SESSION_BACKEND == "cookie":
        return CookieSessionStore()
    if settings.SESSION_BACKEND == "redis":
        return RedisSessionStore(
            ttl_seconds=settings.SESSION_TTL_SECONDS,
            prefix=settings.REDIS_KEY_PREFIX,
        )
    raise ConfigurationError(f"unknown session backend: {settings.SESSION_BACKEND}")
