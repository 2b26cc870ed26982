#!/usr/bin/env python3
"""
Materialize services embedded in approved provider profiles into the
services collection.

Usage:
    python scripts/sync_provider_services.py                     # Sync all approved providers
    python scripts/sync_provider_services.py --provider USER_ID  # Sync one provider
    python scripts/sync_provider_services.py --dry-run           # Show what would be created
"""

import argparse
import os
import sys

BACKEND_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, BACKEND_ROOT)

from pymongo.errors import PyMongoError  # noqa: E402

from marketplace.services.provider_sync import (  # noqa: E402
    SERVICES_COLLECTION,
    ensure_sync_indexes,
    load_approved_providers,
    sync_provider_services,
)
from marketplace.services.service_repository import (  # noqa: E402
    ensure_search_indexes,
    get_mongo_db,
    reset_mongo_client,
)


def print_stats(result, dry_run: bool) -> None:
    label = "Would create" if dry_run else "Created"
    print(f"\n  {label}: {result.created} services")
    print(f"  Skipped: {result.skipped} services")
    print(f"  Providers processed: {len(result.providers)}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Sync provider-embedded services into the services collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/sync_provider_services.py                     # Sync everything
  python scripts/sync_provider_services.py --provider 65f0c0   # One provider
  python scripts/sync_provider_services.py --dry-run           # Preview changes
""",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done")
    parser.add_argument("--provider", metavar="USER_ID", help="Only sync this provider's userId")
    args = parser.parse_args(argv)

    print("\n  Provider Service Sync")
    print("  " + "=" * 40)

    db = get_mongo_db()
    if db is None:
        print("  ⚠ MONGO_URI is not set")
        return 1

    try:
        services = db[SERVICES_COLLECTION]
        if not args.dry_run:
            ensure_sync_indexes(services)
            ensure_search_indexes(services)

        providers = load_approved_providers(db, provider_id=args.provider)
        print(f"  Syncing services for {len(providers)} approved providers...")
        result = sync_provider_services(providers, services, dry_run=args.dry_run)

        print_stats(result, args.dry_run)
        print("\n  " + "-" * 40)
        if args.dry_run:
            print("  [DRY RUN] No changes made")
        else:
            print("  ✓ Sync complete!")
            print(f"  Total services in database: {services.count_documents({})}")
        print()
    except PyMongoError as e:
        print(f"  ⚠ MongoDB error: {e}")
        return 1
    finally:
        reset_mongo_client()
    return 0


if __name__ == "__main__":
    sys.exit(main())
