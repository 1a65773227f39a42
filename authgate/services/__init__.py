"""
Authentication flow services.
"""
from .auth_flow import AuthFlow, build_auth_flow
from .session_store import (
    CookieSessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store,
)

__all__ = [
    "AuthFlow",
    "build_auth_flow",
    "CookieSessionStore",
    "RedisSessionStore",
    "SessionStore",
    "build_session_store",
]
