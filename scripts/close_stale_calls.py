#!/usr/bin/env python3
"""
Script to close calls left in a non-terminal status, e.g. after a restart
lost the status callbacks that would have ended them.

Usage:
    python scripts/close_stale_calls.py                      # Dry run (shows what would be updated)
    python scripts/close_stale_calls.py --execute            # Actually update the database
    python scripts/close_stale_calls.py --older-than 120     # Only calls started over 2 hours ago
"""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database.connection import build_engine, build_session_factory
from app.models.call import CallStatus
from app.services.call_store import CallStore


async def close_stale_calls(older_than_minutes: int, dry_run: bool = True):
    """Mark unfinished calls older than the cutoff as completed"""
    engine = build_engine()
    store = CallStore(build_session_factory(engine), engine.dialect.name)
    cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)

    try:
        unfinished = await store.find_unfinished_calls()
        stale = [call for call in unfinished if call.start_time is None or call.start_time < cutoff]

        if not stale:
            print("✅ No stale calls found in database.")
            return

        print(f"\n📊 Found {len(stale)} stale call(s) to close:\n")

        updated_count = 0
        for call in stale:
            # Best guess for when the call really ended
            end_time = call.updated_at or datetime.utcnow()

            print(f"  Call SID: {call.call_sid}")
            print(f"    Status: {call.status}")
            print(f"    From: {call.from_number or 'N/A'} → To: {call.to_number or 'N/A'}")
            print(f"    Start: {call.start_time}")
            print(f"    End: {end_time}")
            print()

            if not dry_run:
                if await store.upsert_call(call.call_sid, status=CallStatus.COMPLETED, end_time=end_time):
                    updated_count += 1

        if dry_run:
            print(f"\n⚠️  DRY RUN: Would close {len(stale)} call(s).")
            print("   Run with --execute flag to actually update the database.")
        else:
            print(f"\n✅ Successfully closed {updated_count} call(s) as 'completed'.")
    finally:
        await engine.dispose()


async def main():
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="Close calls stuck in a non-terminal status"
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Actually update the database (default is dry-run)"
    )
    parser.add_argument(
        "--older-than",
        type=int,
        default=60,
        metavar="MINUTES",
        help="Only close calls that started more than this many minutes ago (default: 60)"
    )

    args = parser.parse_args()

    dry_run = not args.execute

    if dry_run:
        print("🔍 Running in DRY RUN mode (no changes will be made)")
    else:
        print("⚠️  EXECUTE mode: Will update the database")
        response = input("Continue? (yes/no): ")
        if response.lower() not in ['yes', 'y']:
            print("Aborted.")
            return

    try:
        await close_stale_calls(args.older_than, dry_run=dry_run)
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
