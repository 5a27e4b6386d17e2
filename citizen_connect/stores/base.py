"""
Storage interfaces for users and service requests.

Contract shared by every backend:
- Methods return pydantic records, never backend documents.
- Connectivity failures and timeouts raise StoreUnavailable.
- update_status and consume_reset_token are single atomic
  read-modify-write operations; partial writes are never visible.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from citizen_connect.models.service_request import RequestStatus, ServiceRequestRecord
from citizen_connect.models.user import Role, UserRecord

# Called with the stored record inside the atomic update; raises to abort.
TransitionGuard = Callable[[ServiceRequestRecord], None]


class CredentialStore(ABC):
    """Persists user records and their reset-token fields."""

    @abstractmethod
    def create_user(self, name: str, email: str, password_hash: str, role: Role = Role.CITIZEN) -> UserRecord:
        """
        Raises:
            Conflict: if a user with this exact email already exists
        """
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserRecord]:
        raise NotImplementedError

    @abstractmethod
    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_reset_token(self, user_id: str, token_digest: str, expiry: datetime) -> None:
        """Store the digest and expiry, overwriting any outstanding token."""
        raise NotImplementedError

    @abstractmethod
    def consume_reset_token(self, token_digest: str, now: datetime, new_password_hash: str) -> Optional[UserRecord]:
        """
        Atomically find the user holding token_digest with expiry after now,
        set the new password hash and clear both reset fields.

        Returns:
            The updated user, or None if no live token matched
        """
        raise NotImplementedError

    @abstractmethod
    def set_role(self, user_id: str, role: Role) -> None:
        raise NotImplementedError

    @abstractmethod
    def iter_users(self) -> Iterator[UserRecord]:
        raise NotImplementedError

    def ping(self) -> None:
        """Raise StoreUnavailable if the backend cannot be reached."""


class RequestStore(ABC):
    """Persists service requests."""

    @abstractmethod
    def create(
        self,
        owner_user_id: str,
        service_type: str,
        description: str,
        location: str,
        exact_location: Optional[str],
        priority: str,
        status: str,
        image_reference: Optional[str],
        now: datetime,
    ) -> ServiceRequestRecord:
        raise NotImplementedError

    @abstractmethod
    def get(self, request_id: str) -> Optional[ServiceRequestRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_by_owner(self, owner_user_id: str) -> List[ServiceRequestRecord]:
        """All requests owned by owner_user_id, newest first."""
        raise NotImplementedError

    @abstractmethod
    def list_page(self, status: Optional[str], offset: int, limit: int) -> Tuple[List[ServiceRequestRecord], int]:
        """
        One page of requests newest first, optionally filtered by status.

        Returns:
            (records on the page, total matching records)
        """
        raise NotImplementedError

    @abstractmethod
    def count_by_status(self, owner_user_id: Optional[str] = None) -> Dict[str, int]:
        """Counts keyed by status value; global when owner_user_id is None."""
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        guard: TransitionGuard,
        now: datetime,
    ) -> ServiceRequestRecord:
        """
        Compare-and-set against the stored status. guard runs on the stored
        record inside the atomic section; if it raises, nothing is written.
        guard also runs for a same-status update, which then returns the
        record without touching updated_at.

        Raises:
            NotFound: no such request
        """
        raise NotImplementedError

    def ping(self) -> None:
        """Raise StoreUnavailable if the backend cannot be reached."""
