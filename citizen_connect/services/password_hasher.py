"""
Password hashing with passlib (bcrypt, tunable cost).

Stored values that passlib does not recognize as a hash (legacy plaintext
rows) never verify. They are migrated once by
`scripts/manage_users.py migrate-passwords`.
"""

import logging
from typing import Optional

from passlib.context import CryptContext

logger = logging.getLogger(__name__)


class PasswordHasher:

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, stored_hash: Optional[str]) -> bool:
        """
        Constant-time check of password against a stored bcrypt hash.
        Returns False for empty or unrecognized stored values.
        """
        if not stored_hash or self.is_legacy(stored_hash):
            self.dummy_verify()
            return False
        try:
            return self._context.verify(password, stored_hash)
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    def dummy_verify(self) -> None:
        """Spend one hash computation so unknown accounts cost the same as known ones."""
        self._context.dummy_verify()

    def is_legacy(self, stored_value: str) -> bool:
        """True when the stored value is not a hash this context can verify."""
        return self._context.identify(stored_value) is None

    def needs_rehash(self, stored_hash: str) -> bool:
        return self._context.needs_update(stored_hash)
