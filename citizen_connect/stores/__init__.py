"""
Storage backends. build_stores() picks one from Settings.
"""

import logging
from typing import Tuple

from citizen_connect.core.settings import Settings
from citizen_connect.stores.base import CredentialStore, RequestStore

logger = logging.getLogger(__name__)


def build_stores(settings: Settings) -> Tuple[CredentialStore, RequestStore]:
    """
    Resolve the storage backend based on settings.

    Rules:
    - USE_MOCK_DB=true: in-process stores (nothing survives a restart)
    - Otherwise: Firestore, initialized from FIREBASE_* settings
    """
    if settings.USE_MOCK_DB:
        from citizen_connect.stores.memory import InMemoryCredentialStore, InMemoryRequestStore
        logger.info("[STORE] USING IN-MEMORY MOCK DATABASE")
        return InMemoryCredentialStore(), InMemoryRequestStore()

    from citizen_connect.config.firebase import initialize_firestore
    from citizen_connect.stores.firestore import FirestoreCredentialStore, FirestoreRequestStore

    db = initialize_firestore(settings)
    timeout = settings.STORE_TIMEOUT_SECONDS
    logger.info("[STORE] USING FIRESTORE DATABASE")
    return FirestoreCredentialStore(db, timeout), FirestoreRequestStore(db, timeout)


__all__ = ["CredentialStore", "RequestStore", "build_stores"]
