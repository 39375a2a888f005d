"""
prune_audit_logs.py
───────────────────
Deletes audit log entries older than the retention period.
Meant for a daily cron job:

    python prune_audit_logs.py            # uses AUDIT_RETENTION_DAYS (365)
    python prune_audit_logs.py --days=90
"""
import argparse
import asyncio

from dotenv import load_dotenv

load_dotenv()


async def prune(days: int) -> int:
    from app.core.config import settings
    from app.core.database import AsyncSessionLocal, engine
    from app.core.logging_config import setup_logging
    from app.services.audit_recorder import prune_audit_logs

    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    async with AsyncSessionLocal() as db:
        deleted = await prune_audit_logs(db, days)

    await engine.dispose()
    return deleted


def main() -> None:
    from app.core.config import settings

    parser = argparse.ArgumentParser(description="Delete old audit log entries")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.AUDIT_RETENTION_DAYS,
        help="Keep entries from the last N days (default: %(default)s)",
    )
    args = parser.parse_args()
    if args.days < 1:
        parser.error("--days must be at least 1")

    deleted = asyncio.run(prune(args.days))
    print(f"🧹  Deleted {deleted} audit log entries older than {args.days} days")


if __name__ == "__main__":
    main()
