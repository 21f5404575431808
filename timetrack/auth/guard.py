"""
Session guard for protected pages.

Blocks protected content until the session context has resolved, then
either authorizes or sends the visitor to the login page.

    guard = SessionGuard(session, navigate=redirect_to)
    await guard.start()
    body = guard.render(page, fallback=spinner, unauthorized=message)

When the session resolves with no user but the request carried a
server-issued session cookie, the guard checks that cookie right away
instead of waiting for the client identity to catch up.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

from timetrack.auth.tokens import AuthVerificationResult, verify_authentication
from timetrack.store.subscriptions import Subscription
from timetrack.utils.errors import IdentityError

logger = logging.getLogger("timetrack.auth.guard")


class GuardState(str, Enum):
    INITIALIZING = "initializing"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


def signed_token_verifier(identity) -> Callable[[Optional[str]], AuthVerificationResult]:
    """
    Cookie verifier that also checks the token signature.

    Runs the claims check first so an expired cookie is still reported as
    expired, then asks ``identity`` to verify the signature.
    """
    def verify(token: Optional[str]) -> AuthVerificationResult:
        result = verify_authentication(token)
        if not result.is_authenticated:
            return result
        try:
            identity.verify_id_token(token)
        except IdentityError as e:
            return AuthVerificationResult(False, error=e.message)
        return result

    return verify


class SessionGuard:
    """
    Gate for protected content.

    Args:
        session: SessionContext to watch
        navigate: Called with the login path on each transition into
            UNAUTHORIZED; may return a coroutine, which is scheduled
        login_path: Where unauthenticated visitors are sent
        session_token: Server-issued session cookie, if the request had one
        verifier: Checks ``session_token`` (defaults to verify_authentication)
    """

    def __init__(self, session, navigate: Callable[[str], Any], login_path: str = "/login",
                 session_token: Optional[str] = None,
                 verifier: Callable[[Optional[str]], AuthVerificationResult] = verify_authentication):
        self.session = session
        self.navigate = navigate
        self.login_path = login_path
        self.session_token = session_token
        self.verifier = verifier

        self.state = GuardState.INITIALIZING
        self.user_id: Optional[str] = None
        self.redirect_count = 0
        self._subscription: Optional[Subscription] = None

    async def start(self) -> GuardState:
        """Resolve the session and begin following auth changes."""
        try:
            await self.session.initialize()
        except Exception as e:
            logger.error("Session initialization failed: %s", e, exc_info=True)
            self._set_state(GuardState.UNAUTHORIZED)
            return self.state

        if self._subscription is None:
            self._subscription = self.session.on_auth_change(self._on_auth_change)
        return self.state

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_auth_change(self, user) -> None:
        if user is not None:
            self._set_state(GuardState.AUTHORIZED, user.uid)
            return

        # Cookie handshake only applies to the first resolution; a later
        # sign-out must not be overridden by the cookie the page loaded with.
        token, self.session_token = self.session_token, None
        if token:
            result = self.verifier(token)
            if result.is_authenticated:
                self._set_state(GuardState.AUTHORIZED, result.user_id)
                return
            logger.info("Session cookie rejected: %s", result.error)

        self._set_state(GuardState.UNAUTHORIZED)

    def _set_state(self, state: GuardState, user_id: Optional[str] = None) -> None:
        previous = self.state
        self.state = state
        self.user_id = user_id
        if state == GuardState.UNAUTHORIZED and previous != GuardState.UNAUTHORIZED:
            self._redirect()

    def _redirect(self) -> None:
        self.redirect_count += 1
        logger.debug("Redirecting to %s", self.login_path)
        try:
            result = self.navigate(self.login_path)
        except Exception as e:
            logger.error("Navigation to %s failed: %s", self.login_path, e)
            return
        if asyncio.iscoroutine(result):
            asyncio.ensure_future(result)

    # =========================================================================
    # Rendering
    # =========================================================================

    @property
    def authorized(self) -> bool:
        return self.state == GuardState.AUTHORIZED

    def render(self, content: Any, fallback: Any = None, unauthorized: Any = None) -> Any:
        """
        Choose what to show for the current state.

        ``content`` may be a zero-argument callable so protected content is
        only built once authorized.
        """
        if self.state == GuardState.INITIALIZING:
            return fallback
        if self.state == GuardState.AUTHORIZED:
            return content() if callable(content) else content
        return unauthorized
