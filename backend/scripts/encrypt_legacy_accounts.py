#!/usr/bin/env python3
"""
Migration Script: Encrypt legacy plaintext account names

Rewrites every subscription account name that is still stored in plaintext
into the per-user encrypted format. Rows already encrypted are skipped, so
the script can be re-run safely.
"""

import logging
import sys
from pathlib import Path

# Add backend root to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from subnudge.database import get_db_context
from subnudge.services.accounts import encrypt_legacy_account_names
from subnudge.services.crypto import get_field_cipher


def main():
    """Main migration function."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    print("🔐 Account Name Encryption Migration")
    print("=" * 40)
    print("This will encrypt plaintext account names in place.")
    print("WARNING: This will modify your database!")
    print()

    response = input("Do you want to continue? (yes/no): ").lower().strip()
    if response != "yes":
        print("Migration cancelled.")
        return 1

    cipher = get_field_cipher()
    with get_db_context() as db:
        result = encrypt_legacy_account_names(db, cipher)

    print(f"\nMigrated: {result['migrated']} subscriptions")
    print(f"Already encrypted: {result['skipped']} subscriptions")

    if result["failed"]:
        print(f"\n❌ {result['failed']} subscriptions failed, see log output above.")
        return 1

    print("\n✅ Migration completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
