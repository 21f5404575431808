"""
JWT-shaped session tokens.

Tokens are three dot-separated base64url segments (header, payload,
signature), signed with HMAC-SHA256 by the identity provider.

verify_authentication() is the server-side session cookie check: it decodes
the payload, rejects expired tokens and tokens missing ``sub``/``aud``, and
deliberately leaves signature verification to the identity provider.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger("timetrack.auth.tokens")

TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}


class TokenError(ValueError):
    """Token could not be decoded."""


@dataclass(frozen=True)
class AuthVerificationResult:
    """
    Outcome of a session cookie check.

    Attributes:
        is_authenticated: Whether the cookie holds a usable session
        user_id: The token's ``sub`` claim when authenticated
        error: Reason for rejection
        expired: The token had expired; callers should clear the cookie
    """
    is_authenticated: bool
    user_id: Optional[str] = None
    error: Optional[str] = None
    expired: bool = False


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(segment + padding)
    except (binascii.Error, ValueError) as e:
        raise TokenError(f"Invalid base64 segment: {e}")


def _sign(signing_input: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return b64url_encode(digest)


def encode_token(claims: Dict[str, Any], secret: str) -> str:
    """Serialize and sign ``claims``."""
    header = b64url_encode(json.dumps(TOKEN_HEADER, separators=(",", ":")).encode("utf-8"))
    payload = b64url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header}.{payload}".encode("ascii")
    return f"{header}.{payload}.{_sign(signing_input, secret)}"


def decode_payload(token: str) -> Dict[str, Any]:
    """
    Decode the claims of a token without checking its signature.

    Raises:
        TokenError: If the token is not three segments or the payload is
            not a JSON object
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenError("Invalid token format")

    try:
        payload = json.loads(b64url_decode(parts[1]))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TokenError(f"Invalid token payload: {e}")

    if not isinstance(payload, dict):
        raise TokenError("Invalid token payload")
    return payload


def verify_signature(token: str, secret: str) -> bool:
    parts = token.split(".")
    if len(parts) != 3:
        return False
    expected = _sign(f"{parts[0]}.{parts[1]}".encode("ascii"), secret)
    return hmac.compare_digest(expected, parts[2])


def verify_authentication(token: Optional[str], now: Optional[float] = None) -> AuthVerificationResult:
    """
    Check a session cookie value on the server side.

    Args:
        token: Raw cookie value
        now: Current epoch seconds (defaults to time.time())

    Returns:
        AuthVerificationResult; ``expired`` is set when the cookie should
        be cleared
    """
    if token is None:
        return AuthVerificationResult(False, error="No authentication token found")
    if not token.strip():
        return AuthVerificationResult(False, error="Invalid token value")
    if len(token.split(".")) != 3:
        return AuthVerificationResult(False, error="Invalid token format")

    try:
        payload = decode_payload(token)
    except TokenError as e:
        logger.warning("Error decoding token: %s", e)
        return AuthVerificationResult(False, error="Failed to decode token")

    current_time = int(now if now is not None else time.time())
    exp = payload.get("exp")
    if exp is not None:
        try:
            if float(exp) < current_time:
                return AuthVerificationResult(False, error="Token expired", expired=True)
        except (TypeError, ValueError):
            return AuthVerificationResult(False, error="Invalid token claims")

    if not payload.get("sub") or not payload.get("aud"):
        return AuthVerificationResult(False, error="Invalid token claims")

    return AuthVerificationResult(True, user_id=str(payload["sub"]))


def get_authenticated_user_id(token: Optional[str], now: Optional[float] = None) -> Optional[str]:
    result = verify_authentication(token, now)
    return result.user_id if result.is_authenticated else None
