"""
Session context.

An explicit object holding the signed-in user, handed to whoever needs it
(route handlers, the session guard, tests) instead of a process-wide
singleton. Initialization is lazy and memoized: every caller of
``await session.initialize()`` shares the same in-flight resolution.

The last-known user id is persisted in a small JSON file (LocalStateStore)
so ``current_user_id()`` has an answer before initialization completes.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional

from timetrack.auth.identity import LocalIdentityProvider
from timetrack.core.models import UserAccount
from timetrack.store.subscriptions import Subscription
from timetrack.utils.errors import IdentityError

logger = logging.getLogger("timetrack.auth.session")

AuthCallback = Callable[[Optional[UserAccount]], None]


class LocalStateStore:
    """Tiny JSON key/value file for client-side state."""

    USER_ID_KEY = "tasker_user_id"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable local state %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(data, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def get_user_id(self) -> Optional[str]:
        return self.get(self.USER_ID_KEY)

    def set_user_id(self, user_id: Optional[str]) -> None:
        if user_id:
            self.set(self.USER_ID_KEY, user_id)
        else:
            self.remove(self.USER_ID_KEY)


class SessionContext:
    """
    Current-user state for one client session.

    Args:
        identity: Identity provider used to verify tokens and sign in
        state_store: Where the last-known user id is kept (optional)
        token: Existing ID token (e.g. the session cookie) to resume from
    """

    def __init__(self, identity: LocalIdentityProvider,
                 state_store: Optional[LocalStateStore] = None,
                 token: Optional[str] = None):
        self.identity = identity
        self.state_store = state_store
        self.token = token
        self.initialized = False

        self._user: Optional[UserAccount] = None
        self._init_task: Optional[asyncio.Future] = None
        self._listeners: List[Subscription] = []

    # =========================================================================
    # Initialization
    # =========================================================================

    async def initialize(self) -> Optional[UserAccount]:
        """
        Resolve the current user once.

        Concurrent callers await the same resolution. A failed resolution is
        not cached; the next call tries again.
        """
        if self.initialized:
            return self._user

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._resolve())

        try:
            return await self._init_task
        except Exception:
            self._init_task = None
            raise

    async def _resolve(self) -> Optional[UserAccount]:
        user = None
        if self.token:
            try:
                claims = self.identity.verify_id_token(self.token)
                user = self.identity.get_user(claims["sub"])
            except IdentityError as e:
                logger.info("Stored session token rejected: %s", e.code)
                self.token = None

        self._set_user(user)
        self.initialized = True
        self._notify()
        return user

    # =========================================================================
    # State
    # =========================================================================

    @property
    def current_user(self) -> Optional[UserAccount]:
        return self._user

    def current_user_id(self) -> Optional[str]:
        """Signed-in user id, or the last-known id until initialization completes."""
        if self._user is not None:
            return self._user.uid
        if not self.initialized and self.state_store is not None:
            return self.state_store.get_user_id()
        return None

    def is_authenticated(self) -> bool:
        return self._user is not None

    def display_name(self) -> str:
        if self._user is None:
            return "User"
        if self._user.display_name:
            return self._user.display_name
        if self._user.email:
            return self._user.email.split("@")[0]
        return "User"

    def _set_user(self, user: Optional[UserAccount]) -> None:
        self._user = user
        if self.state_store is not None:
            self.state_store.set_user_id(user.uid if user else None)

    # =========================================================================
    # Sign-in / sign-out
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> UserAccount:
        """
        Sign in and switch this context to the new user.

        Raises:
            IdentityError: Propagated from the identity provider
        """
        user = self.identity.sign_in(email, password)
        self.token = self.identity.issue_id_token(user)
        self._set_user(user)
        self.initialized = True
        self._notify()
        return user

    async def sign_out(self) -> None:
        self.token = None
        self._set_user(None)
        self.initialized = True
        self._notify()

    # =========================================================================
    # Change notification
    # =========================================================================

    def on_auth_change(self, callback: AuthCallback) -> Subscription:
        """
        Call ``callback(user_or_none)`` on every auth change.

        If the context is already initialized the callback also fires
        immediately with the current user.
        """
        subscription = Subscription(self._remove_listener, ("session", "auth"), callback)
        self._listeners.append(subscription)
        if self.initialized:
            self._invoke(subscription)
        return subscription

    def _remove_listener(self, subscription: Subscription) -> None:
        if subscription in self._listeners:
            self._listeners.remove(subscription)

    def _notify(self) -> None:
        for subscription in list(self._listeners):
            if subscription.active:
                self._invoke(subscription)

    def _invoke(self, subscription: Subscription) -> None:
        try:
            subscription.callback(self._user)
        except Exception as e:
            logger.error("Auth listener failed: %s", e, exc_info=True)
