#!/usr/bin/env python3
"""
Push notifications that are still pending (and optionally failed ones).

Usage:
  python scripts/dispatch_notifications.py
  python scripts/dispatch_notifications.py --customer-id 01 --include-failed
  # Requires DATABASE_URL and PUSH_API_URL in .env (or export)

Run from cron as a safety net behind the after-commit dispatch.
"""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_root, ".env"))

# Add project root to path
sys.path.insert(0, _root)

from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, close_db
from app.services.notification_service import NotificationService


async def run(customer_id, include_failed, limit):
    try:
        async with AsyncSessionLocal() as session:
            outcome = await NotificationService.dispatch_pending(
                session, customer_id=customer_id, include_failed=include_failed, limit=limit
            )
            await session.commit()
    finally:
        await close_db()
    return outcome


def main():
    parser = argparse.ArgumentParser(description="Dispatch pending push notifications")
    parser.add_argument("--customer-id", default=None, help="Only this customer")
    parser.add_argument("--include-failed", action="store_true", help="Retry rows marked failed")
    parser.add_argument("--limit", type=int, default=None, help="Maximum rows to process")
    args = parser.parse_args()

    setup_logging()
    outcome = asyncio.run(run(args.customer_id, args.include_failed, args.limit))
    print(f"sent={outcome['sent']} failed={outcome['failed']} skipped={outcome['skipped']}")
    if outcome["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
