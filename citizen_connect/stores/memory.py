"""
In-process stores used when USE_MOCK_DB is set (local development, tests).

State lives in dicts guarded by one lock per store, so every public method
is atomic with respect to the others.
"""

import itertools
import logging
import threading
import uuid
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from citizen_connect.core.errors import Conflict, NotFound
from citizen_connect.models.service_request import RequestStatus, ServiceRequestRecord
from citizen_connect.models.user import Role, UserRecord
from citizen_connect.stores.base import CredentialStore, RequestStore, TransitionGuard
from citizen_connect.utils.clock import utc_now

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(CredentialStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[str, UserRecord] = {}
        self._ids_by_email: Dict[str, str] = {}

    def create_user(self, name: str, email: str, password_hash: str, role: Role = Role.CITIZEN) -> UserRecord:
        with self._lock:
            if email in self._ids_by_email:
                raise Conflict("User with this email already exists")
            now = utc_now()
            record = UserRecord(
                id=uuid.uuid4().hex,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                created_at=now,
                updated_at=now,
            )
            self._users[record.id] = record
            self._ids_by_email[email] = record.id
            return record.model_copy()

    def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            record = self._users.get(user_id)
            return record.model_copy() if record else None

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            user_id = self._ids_by_email.get(email)
            return self._users[user_id].model_copy() if user_id else None

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        self._update(user_id, password_hash=password_hash)

    def set_reset_token(self, user_id: str, token_digest: str, expiry: datetime) -> None:
        self._update(user_id, reset_token=token_digest, reset_token_expiry=expiry)

    def consume_reset_token(self, token_digest: str, now: datetime, new_password_hash: str) -> Optional[UserRecord]:
        with self._lock:
            for user_id, record in self._users.items():
                if record.reset_token != token_digest:
                    continue
                if record.reset_token_expiry is None or record.reset_token_expiry <= now:
                    return None
                updated = record.model_copy(update={
                    "password_hash": new_password_hash,
                    "reset_token": None,
                    "reset_token_expiry": None,
                    "updated_at": now,
                })
                self._users[user_id] = updated
                return updated.model_copy()
            return None

    def set_role(self, user_id: str, role: Role) -> None:
        self._update(user_id, role=role)

    def iter_users(self) -> Iterator[UserRecord]:
        with self._lock:
            snapshot = [record.model_copy() for record in self._users.values()]
        return iter(snapshot)

    def _update(self, user_id: str, **fields) -> None:
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                raise NotFound(f"User {user_id} not found")
            fields["updated_at"] = utc_now()
            self._users[user_id] = record.model_copy(update=fields)


class InMemoryRequestStore(RequestStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._requests: Dict[str, ServiceRequestRecord] = {}
        # Insertion sequence breaks created_at ties so "newest first" is stable.
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()

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
        record = ServiceRequestRecord(
            id=uuid.uuid4().hex,
            owner_user_id=owner_user_id,
            service_type=service_type,
            description=description,
            location=location,
            exact_location=exact_location,
            priority=priority,
            status=status,
            image_reference=image_reference,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._requests[record.id] = record
            self._sequence[record.id] = next(self._counter)
        return record.model_copy()

    def get(self, request_id: str) -> Optional[ServiceRequestRecord]:
        with self._lock:
            record = self._requests.get(request_id)
            return record.model_copy() if record else None

    def list_by_owner(self, owner_user_id: str) -> List[ServiceRequestRecord]:
        with self._lock:
            return [r for r in self._newest_first() if r.owner_user_id == owner_user_id]

    def list_page(self, status: Optional[str], offset: int, limit: int) -> Tuple[List[ServiceRequestRecord], int]:
        with self._lock:
            matching = [r for r in self._newest_first() if status is None or r.status.value == status]
        return matching[offset:offset + limit], len(matching)

    def count_by_status(self, owner_user_id: Optional[str] = None) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for record in self._requests.values():
                if owner_user_id is not None and record.owner_user_id != owner_user_id:
                    continue
                counts[record.status.value] = counts.get(record.status.value, 0) + 1
        return counts

    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        guard: TransitionGuard,
        now: datetime,
    ) -> ServiceRequestRecord:
        with self._lock:
            record = self._requests.get(request_id)
            if record is None:
                raise NotFound("Service request not found")
            guard(record)
            if record.status == new_status:
                return record.model_copy()
            updated = record.model_copy(update={"status": new_status, "updated_at": now})
            self._requests[request_id] = updated
            return updated.model_copy()

    def _newest_first(self) -> List[ServiceRequestRecord]:
        ordered = sorted(
            self._requests.values(),
            key=lambda r: (r.created_at, self._sequence[r.id]),
            reverse=True,
        )
        return [r.model_copy() for r in ordered]
