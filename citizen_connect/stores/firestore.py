"""
Firestore-backed credential and request stores.

Collections:
- users:            one document per user
- user_emails:      uniqueness index, document id = sha256(email)
- service_requests: one document per request

Atomic operations run inside Firestore transactions, which retry on
contention and re-read the stored state each attempt.
"""

import logging
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists

from citizen_connect.core.errors import Conflict, NotFound
from citizen_connect.models.service_request import RequestStatus, ServiceRequestRecord
from citizen_connect.models.user import Role, UserRecord
from citizen_connect.stores.base import CredentialStore, RequestStore, TransitionGuard
from citizen_connect.utils.clock import utc_now
from citizen_connect.utils.firestore_helpers import (
    email_key,
    snapshot_to_dict,
    translate_store_errors,
    where_filter,
)

logger = logging.getLogger(__name__)

USERS = "users"
USER_EMAILS = "user_emails"
SERVICE_REQUESTS = "service_requests"

USER_TIMESTAMPS = ("created_at", "updated_at", "reset_token_expiry")
REQUEST_TIMESTAMPS = ("created_at", "updated_at")


def _user_from_snapshot(snapshot) -> UserRecord:
    return UserRecord(**snapshot_to_dict(snapshot, *USER_TIMESTAMPS))


def _request_from_snapshot(snapshot) -> ServiceRequestRecord:
    return ServiceRequestRecord(**snapshot_to_dict(snapshot, *REQUEST_TIMESTAMPS))


class FirestoreCredentialStore(CredentialStore):

    def __init__(self, db: firestore.Client, timeout: float):
        self.db = db
        self.timeout = timeout

    def create_user(self, name: str, email: str, password_hash: str, role: Role = Role.CITIZEN) -> UserRecord:
        user_ref = self.db.collection(USERS).document()
        email_ref = self.db.collection(USER_EMAILS).document(email_key(email))
        now = utc_now()
        user_data = {
            "name": name,
            "email": email,
            "password_hash": password_hash,
            "role": role.value,
            "reset_token": None,
            "reset_token_expiry": None,
            "created_at": now,
            "updated_at": now,
        }

        @firestore.transactional
        def _create(transaction):
            # create() fails the commit if the email index document exists
            transaction.create(email_ref, {"user_id": user_ref.id, "email": email})
            transaction.create(user_ref, user_data)

        with translate_store_errors("create_user"):
            try:
                _create(self.db.transaction())
            except AlreadyExists:
                raise Conflict("User with this email already exists")

        logger.info(f"User created: {user_ref.id}")
        return UserRecord(id=user_ref.id, **user_data)

    def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        with translate_store_errors("get_user"):
            snapshot = self.db.collection(USERS).document(user_id).get(timeout=self.timeout)
        return _user_from_snapshot(snapshot) if snapshot.exists else None

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        query = where_filter(self.db.collection(USERS), "email", "==", email).limit(1)
        with translate_store_errors("get_user_by_email"):
            docs = list(query.stream(timeout=self.timeout))
        return _user_from_snapshot(docs[0]) if docs else None

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        self._update(user_id, {"password_hash": password_hash})

    def set_reset_token(self, user_id: str, token_digest: str, expiry: datetime) -> None:
        self._update(user_id, {"reset_token": token_digest, "reset_token_expiry": expiry})

    def consume_reset_token(self, token_digest: str, now: datetime, new_password_hash: str) -> Optional[UserRecord]:
        query = where_filter(self.db.collection(USERS), "reset_token", "==", token_digest).limit(1)

        @firestore.transactional
        def _consume(transaction):
            docs = list(transaction.get(query, timeout=self.timeout))
            if not docs:
                return None
            record = _user_from_snapshot(docs[0])
            if record.reset_token_expiry is None or record.reset_token_expiry <= now:
                return None
            update = {
                "password_hash": new_password_hash,
                "reset_token": None,
                "reset_token_expiry": None,
                "updated_at": now,
            }
            transaction.update(docs[0].reference, update)
            return record.model_copy(update=update)

        with translate_store_errors("consume_reset_token"):
            return _consume(self.db.transaction())

    def set_role(self, user_id: str, role: Role) -> None:
        self._update(user_id, {"role": role.value})

    def iter_users(self) -> Iterator[UserRecord]:
        with translate_store_errors("iter_users"):
            docs = list(self.db.collection(USERS).stream(timeout=self.timeout))
        return (_user_from_snapshot(doc) for doc in docs)

    def ping(self) -> None:
        with translate_store_errors("ping"):
            list(self.db.collection(USERS).limit(1).stream(timeout=self.timeout))

    def _update(self, user_id: str, update_data: Dict) -> None:
        update_data["updated_at"] = utc_now()
        user_ref = self.db.collection(USERS).document(user_id)
        with translate_store_errors("update_user"):
            if not user_ref.get(timeout=self.timeout).exists:
                raise NotFound(f"User {user_id} not found")
            user_ref.update(update_data, timeout=self.timeout)


class FirestoreRequestStore(RequestStore):

    def __init__(self, db: firestore.Client, timeout: float):
        self.db = db
        self.timeout = timeout

    @property
    def collection(self):
        return self.db.collection(SERVICE_REQUESTS)

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
        doc_ref = self.collection.document()  # Auto-generate unique ID
        request_data = {
            "owner_user_id": owner_user_id,
            "service_type": service_type,
            "description": description,
            "location": location,
            "exact_location": exact_location,
            "priority": priority,
            "status": status,
            "image_reference": image_reference,
            "created_at": now,
            "updated_at": now,
        }
        with translate_store_errors("create_request"):
            doc_ref.set(request_data, timeout=self.timeout)
        logger.info(f"Service request saved to Firestore: {doc_ref.id}")
        return ServiceRequestRecord(id=doc_ref.id, **request_data)

    def get(self, request_id: str) -> Optional[ServiceRequestRecord]:
        with translate_store_errors("get_request"):
            snapshot = self.collection.document(request_id).get(timeout=self.timeout)
        return _request_from_snapshot(snapshot) if snapshot.exists else None

    def list_by_owner(self, owner_user_id: str) -> List[ServiceRequestRecord]:
        query = where_filter(self.collection, "owner_user_id", "==", owner_user_id)
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        with translate_store_errors("list_by_owner"):
            return [_request_from_snapshot(doc) for doc in query.stream(timeout=self.timeout)]

    def list_page(self, status: Optional[str], offset: int, limit: int) -> Tuple[List[ServiceRequestRecord], int]:
        query = self.collection
        if status is not None:
            query = where_filter(query, "status", "==", status)
        page_query = query.order_by("created_at", direction=firestore.Query.DESCENDING).offset(offset).limit(limit)
        with translate_store_errors("list_page"):
            records = [_request_from_snapshot(doc) for doc in page_query.stream(timeout=self.timeout)]
            total = self._count(query)
        return records, total

    def count_by_status(self, owner_user_id: Optional[str] = None) -> Dict[str, int]:
        base = self.collection
        if owner_user_id is not None:
            base = where_filter(base, "owner_user_id", "==", owner_user_id)
        counts = {}
        with translate_store_errors("count_by_status"):
            for status in RequestStatus:
                count = self._count(where_filter(base, "status", "==", status.value))
                if count:
                    counts[status.value] = count
        return counts

    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        guard: TransitionGuard,
        now: datetime,
    ) -> ServiceRequestRecord:
        doc_ref = self.collection.document(request_id)

        @firestore.transactional
        def _update(transaction):
            snapshot = doc_ref.get(transaction=transaction, timeout=self.timeout)
            if not snapshot.exists:
                raise NotFound("Service request not found")
            record = _request_from_snapshot(snapshot)
            guard(record)
            if record.status == new_status:
                return record
            transaction.update(doc_ref, {"status": new_status.value, "updated_at": now})
            return record.model_copy(update={"status": new_status, "updated_at": now})

        with translate_store_errors("update_status"):
            return _update(self.db.transaction())

    def ping(self) -> None:
        with translate_store_errors("ping"):
            list(self.collection.limit(1).stream(timeout=self.timeout))

    def _count(self, query) -> int:
        results = query.count(alias="total").get(timeout=self.timeout)
        return int(results[0][0].value) if results else 0
