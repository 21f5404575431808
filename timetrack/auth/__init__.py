"""
Authentication module for Timetrack.

Local identity provider, session context, session guard and the
server-side session cookie check.
"""

from .guard import GuardState, SessionGuard, signed_token_verifier
from .identity import LocalIdentityProvider
from .session import LocalStateStore, SessionContext
from .tokens import AuthVerificationResult, get_authenticated_user_id, verify_authentication

__all__ = [
    'AuthVerificationResult',
    'GuardState',
    'LocalIdentityProvider',
    'LocalStateStore',
    'SessionContext',
    'SessionGuard',
    'get_authenticated_user_id',
    'signed_token_verifier',
    'verify_authentication',
]
