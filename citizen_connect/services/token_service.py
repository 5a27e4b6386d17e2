"""
Token Service - signed session tokens and opaque password-reset tokens.

Session tokens are stateless JWTs (python-jose, HS256) carrying
{sub, email, role, iat, exp}. There is no revocation list: a token stays
valid for its whole lifetime, and a role change made after issuance only
shows up in the next token the user receives at login.

Reset tokens are 256-bit random hex strings. Only their SHA-256 digest is
stored on the user record, with a 1 hour expiry. Issuing a new one
overwrites the old, and consuming one clears it in the same store write.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Tuple

from jose import ExpiredSignatureError, JWTError, jwt

from citizen_connect.core.errors import (
    ConfigError,
    ExpiredToken,
    InvalidOrExpiredResetToken,
    InvalidToken,
)
from citizen_connect.models.user import Identity, Role, UserRecord
from citizen_connect.services.password_hasher import PasswordHasher
from citizen_connect.stores.base import CredentialStore
from citizen_connect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32


def digest_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenService:
    """
    Issues and validates session tokens; issues and consumes reset tokens.
    """

    def __init__(
        self,
        secret: str,
        credential_store: CredentialStore,
        hasher: PasswordHasher,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(hours=1),
        clock: Clock = utc_now,
    ):
        if not secret:
            raise ConfigError("Session signing secret is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self.credential_store = credential_store
        self.hasher = hasher
        self.session_ttl = session_ttl
        self.reset_ttl = reset_ttl
        self.clock = clock

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def issue_session(self, user: UserRecord) -> Tuple[str, datetime]:
        issued_at = self.clock()
        expires_at = issued_at + self.session_ttl
        claims = {
            "sub": user.id,
            "email": user.email,
            "role": user.role.value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)
        return token, expires_at

    def validate_session(self, token: str) -> Identity:
        """
        Verify signature and expiry and return the embedded identity.

        Raises:
            InvalidToken: bad signature, malformed token or missing claims
            ExpiredToken: exp has passed
        """
        if not token:
            raise InvalidToken()
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise ExpiredToken()
        except JWTError:
            raise InvalidToken()

        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            raise InvalidToken("Token is missing required claims")
        try:
            role = Role(claims.get("role") or Role.CITIZEN.value)
        except ValueError:
            raise InvalidToken("Token carries an unknown role")
        return Identity(user_id=str(user_id), email=email, role=role)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def issue_reset_token(self, user: UserRecord) -> Tuple[str, datetime]:
        token = secrets.token_hex(RESET_TOKEN_BYTES)
        expires_at = self.clock() + self.reset_ttl
        self.credential_store.set_reset_token(user.id, digest_reset_token(token), expires_at)
        logger.info(f"Password reset token issued for user {user.id} (expires at {expires_at.isoformat()})")
        return token, expires_at

    def consume_reset_token(self, token: str, new_password: str) -> UserRecord:
        """
        Exchange a live reset token for a password change. Single use.

        Raises:
            InvalidOrExpiredResetToken: unknown, already used or expired
        """
        if not token:
            raise InvalidOrExpiredResetToken()
        new_hash = self.hasher.hash(new_password)
        user = self.credential_store.consume_reset_token(digest_reset_token(token), self.clock(), new_hash)
        if user is None:
            raise InvalidOrExpiredResetToken()
        logger.info(f"Password reset completed for user {user.id}")
        return user
