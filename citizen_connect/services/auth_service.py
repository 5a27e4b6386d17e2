"""
Auth Service - registration, login and password management.

Orchestrates the credential store, password hasher, token service and
reset notifier. Routes call these methods and wrap the results in the
response envelope.
"""

import logging
from typing import Dict, Optional, Tuple

from citizen_connect.core.errors import Unauthorized, ValidationError
from citizen_connect.models.user import Identity, Role, UserRecord, UserResponse
from citizen_connect.services.password_hasher import PasswordHasher
from citizen_connect.services.reset_notifier import ResetNotifier
from citizen_connect.services.token_service import TokenService
from citizen_connect.stores.base import CredentialStore

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"


class AuthService:

    def __init__(
        self,
        credential_store: CredentialStore,
        hasher: PasswordHasher,
        token_service: TokenService,
        notifier: ResetNotifier,
        password_min_length: int = 6,
        frontend_url: str = "http://localhost:3000",
    ):
        self.credential_store = credential_store
        self.hasher = hasher
        self.token_service = token_service
        self.notifier = notifier
        self.password_min_length = password_min_length
        self.frontend_url = frontend_url.rstrip("/")

    def register(self, name: str, email: str, password: str) -> Tuple[UserResponse, str]:
        """
        Create a citizen account and open a session for it.

        Raises:
            ValidationError: blank name or short password
            Conflict: email already registered
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name, email and password are required")
        self._check_password_strength(password, "Password")

        user = self.credential_store.create_user(
            name=name,
            email=email,
            password_hash=self.hasher.hash(password),
            role=Role.CITIZEN,
        )
        token, _ = self.token_service.issue_session(user)
        logger.info(f"User registered: {user.id}")
        return UserResponse.from_record(user), token

    def login(self, email: str, password: str) -> Tuple[UserResponse, str]:
        """
        Raises:
            Unauthorized: unknown email or wrong password (same message for both)
        """
        user = self.credential_store.get_by_email(email)
        if user is None:
            self.hasher.dummy_verify()
            logger.info("Login failed: unknown email")
            raise Unauthorized("Invalid email or password")

        if not self.hasher.verify(password, user.password_hash):
            if self.hasher.is_legacy(user.password_hash):
                logger.warning(f"Login refused for user {user.id}: password record awaits migration")
            else:
                logger.info(f"Login failed: wrong password for user {user.id}")
            raise Unauthorized("Invalid email or password")

        if self.hasher.needs_rehash(user.password_hash):
            self.credential_store.set_password_hash(user.id, self.hasher.hash(password))

        token, _ = self.token_service.issue_session(user)
        logger.info(f"Login successful for user {user.id} (role: {user.role.value})")
        return UserResponse.from_record(user), token

    def verify(self, identity: Identity) -> UserResponse:
        """Fresh user data for a validated session. Deleted users get 401."""
        return UserResponse.from_record(self._current_user(identity))

    def profile(self, identity: Identity) -> UserResponse:
        return UserResponse.from_record(self._current_user(identity), include_created=True)

    def forgot_password(self, email: str) -> str:
        """
        Issue a reset token if the account exists. The returned message is
        identical either way so callers cannot discover which emails are registered.
        """
        user = self.credential_store.get_by_email(email)
        if user is None:
            logger.info("Forgot password for unknown email, returning generic response")
            return FORGOT_PASSWORD_MESSAGE

        token, _ = self.token_service.issue_reset_token(user)
        reset_url = f"{self.frontend_url}/reset-password/{token}"
        try:
            self.notifier.send_reset_link(user, reset_url)
        except Exception as e:
            logger.error(f"Failed to deliver reset link for user {user.id}: {e}", exc_info=True)
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, token: str, new_password: str) -> UserRecord:
        """
        Raises:
            ValidationError: weak password
            InvalidOrExpiredResetToken: token unknown, used or expired
        """
        self._check_password_strength(new_password, "Password")
        return self.token_service.consume_reset_token(token, new_password)

    def change_password(self, identity: Identity, current_password: str, new_password: str) -> None:
        """
        Raises:
            ValidationError: wrong current password or weak new password
        """
        self._check_password_strength(new_password, "New password")
        user = self._current_user(identity)
        if not self.hasher.verify(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        self.credential_store.set_password_hash(user.id, self.hasher.hash(new_password))
        logger.info(f"Password changed for user {user.id}")

    def _current_user(self, identity: Identity) -> UserRecord:
        user = self.credential_store.get_by_id(identity.user_id)
        if user is None:
            raise Unauthorized("User not found")
        return user

    def _check_password_strength(self, password: Optional[str], label: str) -> None:
        if not password or len(password) < self.password_min_length:
            raise ValidationError(f"{label} must be at least {self.password_min_length} characters long")


def user_payload(user: UserResponse) -> Dict:
    return user.model_dump(exclude_none=True)
