"""
Maintenance Script: Recompute AOG downtime buckets

Events imported from spreadsheets or edited directly in the database can carry
stale technical/procurement/ops/total hours. This script recomputes the four
bucket fields from the milestone timestamps and updates every event whose
stored values differ.

Legacy events (no reported_at, no metrics, no milestone history) are skipped;
their downtime is derived on read.

Run with: python scripts/recompute_aog_buckets.py [--dry-run]
"""

import argparse
import asyncio
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv

from models.common import utcnow
from services.downtime import BUCKET_FIELDS, compute_downtime_metrics, is_legacy_event

load_dotenv()


def changed_fields(event, metrics):
    """Bucket fields whose stored value differs from the recomputed one"""
    return {
        field: value
        for field, value in metrics.items()
        if (event.get(field) or 0.0) != value
    }


async def recompute(db, dry_run: bool):
    print("\n" + "=" * 60)
    print("RECOMPUTING AOG BUCKETS" + (" (DRY RUN)" if dry_run else ""))
    print("=" * 60)

    updated = 0
    unchanged = 0
    skipped = 0

    async for event in db.aog_events.find({}):
        event_id = event["_id"]

        if event.get("is_legacy") or is_legacy_event(event):
            skipped += 1
            continue

        diff = changed_fields(event, compute_downtime_metrics(event))
        if not diff:
            unchanged += 1
            continue

        before = ", ".join(f"{f}={event.get(f) or 0.0}" for f in BUCKET_FIELDS if f in diff)
        after = ", ".join(f"{f}={v}" for f, v in diff.items())
        print(f"  {event_id}: {before} -> {after}")

        if not dry_run:
            await db.aog_events.update_one(
                {"_id": event_id},
                {"$set": {**diff, "updated_at": utcnow()}}
            )
        updated += 1

    print(f"\nEvents: updated={updated}, unchanged={unchanged}, legacy skipped={skipped}")
    return updated


async def main():
    parser = argparse.ArgumentParser(description="Recompute AOG downtime buckets")
    parser.add_argument("--dry-run", action="store_true", help="print changes without writing")
    args = parser.parse_args()

    mongo_url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    db_name = os.getenv("DB_NAME", "fleet_ops")

    client = AsyncIOMotorClient(mongo_url)
    db = client[db_name]

    print(f"Connected to: {mongo_url}/{db_name}")

    try:
        await recompute(db, args.dry_run)
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
