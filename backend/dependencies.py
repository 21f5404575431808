"""
Dependency injection for FastAPI endpoints.

Provides singleton instances of Config, Database, RecordStore, the identity
provider and the timer registry to be used across all API routes, plus the
``require_user`` dependency that resolves the signed-in user's id from the
session cookie (or an ``Authorization: Bearer`` header).

Pattern: **Dependency Injection** - FastAPI's Depends() mechanism
allows us to inject shared resources into route handlers without
global state, making the code testable and maintainable.
"""

from functools import lru_cache
from typing import Optional
import sys
from pathlib import Path

from fastapi import Depends, HTTPException, Request

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from timetrack.auth.identity import LocalIdentityProvider
from timetrack.auth.session import LocalStateStore
from timetrack.core.config import Config
from timetrack.core.database import Database, get_database as open_database
from timetrack.store.record_store import RecordStore
from timetrack.utils.errors import IdentityError
from backend.timers import TimerRegistry
from backend.websocket import WebSocketManager


@lru_cache()
def get_config() -> Config:
    """
    Get cached Config instance.

    lru_cache ensures we only create one Config instance
    for the lifetime of the application (singleton pattern).
    """
    return Config()


@lru_cache()
def get_database() -> Database:
    """Get cached Database instance, creating the file on first use."""
    return open_database(get_config(), create=True)


@lru_cache()
def get_record_store() -> RecordStore:
    """
    Get cached RecordStore.

    One instance per process so every route and WebSocket connection shares
    the same subscription hub.
    """
    config = get_config()
    return RecordStore(
        get_database(),
        read_retries=int(config.get("read_retries", default=3)),
        retry_delay=float(config.get("retry_delay_seconds", default=0.05)),
    )


@lru_cache()
def get_identity_provider() -> LocalIdentityProvider:
    return LocalIdentityProvider(get_database(), get_config())


@lru_cache()
def get_local_state() -> LocalStateStore:
    """Last-known user id, kept at the configured local_state_path."""
    return LocalStateStore(get_config().get_local_state_path())


@lru_cache()
def get_timer_registry() -> TimerRegistry:
    return TimerRegistry()


@lru_cache()
def get_ws_manager() -> WebSocketManager:
    return WebSocketManager(get_record_store(), get_timer_registry(), get_config())


def clear_caches() -> None:
    """Drop every cached singleton (used when the config directory changes)."""
    for factory in (get_config, get_database, get_record_store,
                    get_identity_provider, get_local_state, get_timer_registry,
                    get_ws_manager):
        factory.cache_clear()


def get_session_token(request: Request) -> Optional[str]:
    """Session cookie value, falling back to a Bearer token."""
    cookie_name = get_config().get("session_cookie_name", default="auth-token")
    token = request.cookies.get(cookie_name)
    if token:
        return token

    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def resolve_user_id(token: Optional[str], identity: LocalIdentityProvider) -> Optional[str]:
    """User id for a signed, unexpired token; None otherwise."""
    if not token:
        return None
    try:
        return identity.verify_id_token(token)["sub"]
    except IdentityError:
        return None


def require_user(
    request: Request,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
) -> str:
    """
    Id of the signed-in user.

    Raises:
        HTTPException: 401 when the request carries no valid session
    """
    user_id = resolve_user_id(get_session_token(request), identity)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id
