"""
Account maintenance for CitizenConnect.

Usage:
  - Promote a citizen to admin (dry run): python scripts/manage_users.py promote alice@example.com
  - Apply it:                             python scripts/manage_users.py promote alice@example.com --apply
  - Hash legacy plaintext passwords:      python scripts/manage_users.py migrate-passwords --apply

Behavior:
  - Reads settings from the environment / `.env` like the API does.
  - Builds the configured stores (Firestore, or in-memory when USE_MOCK_DB=true,
    which is only useful for trying the commands out).
  - Without --apply nothing is written.

NOTE: A promoted user keeps their citizen session until the token expires;
the admin role is picked up at their next login.
"""

import argparse
import sys

from citizen_connect.core.errors import ConfigError
from citizen_connect.core.settings import load_settings
from citizen_connect.models.user import Role
from citizen_connect.services.password_hasher import PasswordHasher
from citizen_connect.services.password_migration import migrate_legacy_passwords
from citizen_connect.stores import build_stores
from citizen_connect.stores.base import CredentialStore


def promote(credential_store: CredentialStore, email: str, apply: bool = False) -> int:
    user = credential_store.get_by_email(email.strip())
    if user is None:
        print(f"No user with email {email}")
        return 1
    if user.role == Role.ADMIN:
        print(f"{user.email} is already an admin")
        return 0

    print(f"Preparing: {user.email} ({user.id}) citizen -> admin")
    if apply:
        credential_store.set_role(user.id, Role.ADMIN)
        print(f"Promoted: {user.email}")
    return 0


def migrate_passwords(credential_store: CredentialStore, hasher: PasswordHasher, apply: bool = False) -> int:
    report = migrate_legacy_passwords(credential_store, hasher, apply=apply)
    for email in report.migrated:
        print(f"{'Hashed' if apply else 'Needs hashing'}: {email}")
    for email in report.skipped_empty:
        print(f"Skipped (no password stored): {email}")
    print(f"Scanned {report.scanned} accounts, {len(report.migrated)} legacy passwords")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="CitizenConnect account maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    promote_parser = subparsers.add_parser("promote", help="Give a user the admin role")
    promote_parser.add_argument("email")
    promote_parser.add_argument("--apply", action="store_true", help="Write the change instead of dry-run")

    migrate_parser = subparsers.add_parser("migrate-passwords", help="Hash legacy plaintext passwords")
    migrate_parser.add_argument("--apply", action="store_true", help="Write the hashes instead of dry-run")

    args = parser.parse_args(argv)

    settings = load_settings()
    try:
        credential_store, _ = build_stores(settings)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 2

    if args.command == "promote":
        code = promote(credential_store, args.email, apply=args.apply)
    else:
        hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
        code = migrate_passwords(credential_store, hasher, apply=args.apply)

    if not args.apply:
        print("Dry run complete. Re-run with --apply to write changes.")
    return code


if __name__ == "__main__":
    sys.exit(main())
