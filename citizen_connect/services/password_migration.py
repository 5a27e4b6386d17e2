"""
One-time migration of legacy plaintext password rows to bcrypt hashes.

Login never compares plaintext; accounts created before hashing was
introduced cannot sign in until this has been applied.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from citizen_connect.services.password_hasher import PasswordHasher
from citizen_connect.stores.base import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    scanned: int = 0
    migrated: List[str] = field(default_factory=list)
    skipped_empty: List[str] = field(default_factory=list)
    applied: bool = False


def migrate_legacy_passwords(
    credential_store: CredentialStore,
    hasher: PasswordHasher,
    apply: bool = False,
) -> MigrationReport:
    """
    Hash every stored password value that is not already a recognized hash.

    Args:
        apply: write the new hashes; otherwise only report what would change

    Returns:
        MigrationReport with the emails that were (or would be) migrated
    """
    report = MigrationReport(applied=apply)
    for user in credential_store.iter_users():
        report.scanned += 1
        if not user.password_hash:
            logger.warning(f"User {user.email} has no stored password, skipping")
            report.skipped_empty.append(user.email)
            continue
        if not hasher.is_legacy(user.password_hash):
            continue

        report.migrated.append(user.email)
        if apply:
            credential_store.set_password_hash(user.id, hasher.hash(user.password_hash))
            logger.info(f"Migrated password for {user.email}")

    logger.info(
        f"Password migration {'applied' if apply else 'dry run'}: "
        f"{len(report.migrated)} of {report.scanned} accounts need hashing"
    )
    return report
