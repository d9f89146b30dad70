from __future__ import annotations

import argparse

from marketplace.core.db import SessionLocal
from marketplace.core.logging_config import setup_logging
from marketplace.services.outbox import retry_undelivered


def main():
    parser = argparse.ArgumentParser(description="Re-send confirmation emails that never went out.")
    parser.add_argument("--max-attempts", type=int, default=None)
    parser.add_argument("--limit", type=int, default=100)
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    try:
        summary = retry_undelivered(db, max_attempts=args.max_attempts, limit=args.limit)
    finally:
        db.close()

    print(f"Attempted: {summary['attempted']}")
    print(f"Sent: {summary['sent']}")
    print(f"Failed: {summary['failed']}")


if __name__ == "__main__":
    main()
