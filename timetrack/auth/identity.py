"""
Local identity provider.

Stores user accounts in the shared SQLite database, hashes passwords with
werkzeug, and issues HS256-signed ID tokens that double as the session
cookie value. Failures raise IdentityError carrying a provider code
(``auth/user-not-found``, ``auth/wrong-password`` ...), which callers map to
user-facing messages through timetrack.utils.errors.

Usage:
    provider = LocalIdentityProvider(db, config)
    user = provider.create_user("me@example.com", "secret1", "Me")
    token = provider.issue_id_token(user)
    claims = provider.verify_id_token(token)
"""

import logging
import sqlite3
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from timetrack.auth.tokens import TokenError, decode_payload, encode_token, verify_signature
from timetrack.core.database import Database
from timetrack.core.models import UserAccount, new_id
from timetrack.utils.errors import ErrorCodes, IdentityError
from timetrack.utils.validation import validate_email, validate_password

logger = logging.getLogger("timetrack.auth.identity")


class LocalIdentityProvider:
    """
    Account management and token issuance backed by the ``users`` table.

    Args:
        db: Database connection
        config: Config instance supplying the identity settings
        clock: Returns current epoch seconds (for token iat/exp)
    """

    def __init__(self, db: Database, config, clock: Optional[Callable[[], float]] = None):
        self.db = db
        self.secret = config.get("identity_secret", default="change-me")
        self.audience = config.get("identity_audience", default="timetrack")
        self.issuer = config.get("identity_issuer", default="timetrack-identity")
        self.token_ttl = int(config.get("token_ttl_seconds", default=3600))
        self.max_failed_sign_ins = int(config.get("max_failed_sign_ins", default=5))
        self.hash_method = config.get("password_hash_method", default="pbkdf2:sha256")
        self._clock = clock or time.time

    # =========================================================================
    # Accounts
    # =========================================================================

    def _row_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_one(
            "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
        )

    def create_user(self, email: str, password: str,
                    display_name: Optional[str] = None) -> UserAccount:
        """
        Register a new account.

        Raises:
            IdentityError: auth/invalid-email, auth/weak-password or
                auth/email-already-in-use
        """
        if not validate_email(email).is_valid:
            raise IdentityError(ErrorCodes.AUTH_INVALID_EMAIL)

        password_check = validate_password(password)
        if not password_check.is_valid:
            raise IdentityError(ErrorCodes.AUTH_WEAK_PASSWORD, password_check.error)

        normalized = email.strip().lower()
        if self._row_by_email(normalized):
            raise IdentityError(ErrorCodes.AUTH_EMAIL_ALREADY_IN_USE)

        uid = new_id()
        created_at = datetime.now(timezone.utc).isoformat()
        try:
            self.db.execute_write(
                """
                INSERT INTO users (uid, email, display_name, password_hash, disabled,
                                   failed_sign_ins, created_at)
                VALUES (?, ?, ?, ?, 0, 0, ?)
                """,
                (
                    uid,
                    normalized,
                    (display_name or "").strip() or None,
                    generate_password_hash(password, method=self.hash_method),
                    created_at,
                ),
            )
        except sqlite3.IntegrityError:
            raise IdentityError(ErrorCodes.AUTH_EMAIL_ALREADY_IN_USE)

        logger.info("Created account %s", uid)
        return self.get_user(uid)

    def get_user(self, uid: str) -> Optional[UserAccount]:
        row = self.db.execute_one(
            "SELECT uid, email, display_name, disabled, created_at FROM users WHERE uid = ?",
            (uid,),
        )
        return UserAccount.from_dict(row) if row else None

    def set_disabled(self, uid: str, disabled: bool = True) -> None:
        """Enable or disable an account."""
        updated = self.db.execute_write(
            "UPDATE users SET disabled = ? WHERE uid = ?", (1 if disabled else 0, uid)
        )
        if not updated:
            raise IdentityError(ErrorCodes.AUTH_USER_NOT_FOUND)

    def sign_in(self, email: str, password: str) -> UserAccount:
        """
        Check credentials.

        After ``max_failed_sign_ins`` consecutive wrong passwords the account
        is locked and further attempts fail with auth/too-many-requests.

        Raises:
            IdentityError: auth/invalid-email, auth/user-not-found,
                auth/too-many-requests, auth/user-disabled or
                auth/wrong-password
        """
        if not validate_email(email).is_valid:
            raise IdentityError(ErrorCodes.AUTH_INVALID_EMAIL)

        row = self._row_by_email(email)
        if row is None:
            raise IdentityError(ErrorCodes.AUTH_USER_NOT_FOUND)

        if row["failed_sign_ins"] >= self.max_failed_sign_ins:
            logger.warning("Sign-in blocked for locked account %s", row["uid"])
            raise IdentityError(ErrorCodes.AUTH_TOO_MANY_REQUESTS)

        if row["disabled"]:
            raise IdentityError(ErrorCodes.AUTH_USER_DISABLED)

        if not check_password_hash(row["password_hash"], password or ""):
            self.db.execute_write(
                "UPDATE users SET failed_sign_ins = failed_sign_ins + 1 WHERE uid = ?",
                (row["uid"],),
            )
            raise IdentityError(ErrorCodes.AUTH_WRONG_PASSWORD)

        if row["failed_sign_ins"]:
            self.db.execute_write(
                "UPDATE users SET failed_sign_ins = 0 WHERE uid = ?", (row["uid"],)
            )
        return UserAccount.from_dict(row)

    # =========================================================================
    # Tokens
    # =========================================================================

    def issue_id_token(self, user: UserAccount) -> str:
        """Signed token for ``user`` valid for ``token_ttl_seconds``."""
        issued_at = int(self._clock())
        claims = {
            "iss": self.issuer,
            "aud": self.audience,
            "sub": user.uid,
            "email": user.email,
            "name": user.display_name,
            "iat": issued_at,
            "exp": issued_at + self.token_ttl,
        }
        return encode_token(claims, self.secret)

    def verify_id_token(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Verify signature, audience and expiry.

        Returns:
            The token's claims

        Raises:
            IdentityError: auth/invalid-id-token
        """
        if not token or not verify_signature(token, self.secret):
            raise IdentityError(ErrorCodes.AUTH_INVALID_TOKEN)

        try:
            claims = decode_payload(token)
        except TokenError:
            raise IdentityError(ErrorCodes.AUTH_INVALID_TOKEN)

        if claims.get("aud") != self.audience or not claims.get("sub"):
            raise IdentityError(ErrorCodes.AUTH_INVALID_TOKEN)

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp < self._clock():
            raise IdentityError(ErrorCodes.AUTH_INVALID_TOKEN)

        return claims
