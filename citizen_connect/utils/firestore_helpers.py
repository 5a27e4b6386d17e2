"""
Firestore query and document helpers shared by the Firestore stores.
"""

import hashlib
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

from google.api_core.exceptions import GoogleAPICallError, RetryError

from citizen_connect.core.errors import StoreUnavailable
from citizen_connect.utils.clock import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "owner_user_id", "==", user_id)
        query = where_filter(query, "status", "==", "pending")
    """
    return query.where(field_path, op_string, value)


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """
    Turn Firestore transport failures and deadlines into StoreUnavailable.
    Application errors raised inside the block pass through untouched.
    """
    try:
        yield
    except (GoogleAPICallError, RetryError, TimeoutError) as e:
        logger.error(f"Firestore {operation} failed: {e}", exc_info=True)
        raise StoreUnavailable(f"Data store unavailable during {operation}, please retry")


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a Firestore timestamp field to an aware UTC datetime.

    Handles datetimes (including DatetimeWithNanoseconds), objects exposing
    to_datetime(), and missing values. Unknown types fall back to now.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if hasattr(value, "to_datetime"):
        return ensure_utc(value.to_datetime())
    logger.warning(f"Unknown timestamp type: {type(value)}, using current time")
    return utc_now()


def snapshot_to_dict(snapshot, *timestamp_fields: str) -> Dict[str, Any]:
    """Document snapshot to dict with id and converted timestamps."""
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    for field in timestamp_fields:
        if field in data:
            data[field] = to_datetime(data[field])
    return data


def email_key(email: str) -> str:
    """Document id for the email uniqueness index. Emails may contain '/'."""
    return hashlib.sha256(email.encode("utf-8")).hexdigest()
