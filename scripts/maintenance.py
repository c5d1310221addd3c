"""
Client Files Portal - Maintenance Tasks

Periodic cleanup meant to be triggered by cron (or any external
scheduler). Both tasks are single delete statements and are safe to run
while the API is serving traffic.

- Delete expired refresh-token sessions
- Delete login history older than the retention period

Usage:
    python -m scripts.maintenance                 # both tasks
    python -m scripts.maintenance sessions
    python -m scripts.maintenance history --days 30
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from portal.auth import history, sessions
from portal.auth.database import get_engine, init_db
from portal.config import settings
from portal.errors import InternalError
from portal.logging import get_logger


logger = get_logger("maintenance")


async def run(task: str, days: int) -> int:
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    exit_code = 0

    with Session(engine, expire_on_commit=False) as db:
        if task in ("all", "sessions"):
            try:
                count = await sessions.sweep_expired(db)
                print(f"Expired sessions deleted: {count}")
            except InternalError as e:
                print(f"Session cleanup failed: {e.message}")
                exit_code = 1

        if task in ("all", "history"):
            try:
                count = history.cleanup(db, days)
                print(f"Login history entries deleted: {count}")
            except InternalError as e:
                print(f"Login history cleanup failed: {e.message}")
                exit_code = 1

    engine.dispose()
    logger.info("maintenance_finished", task=task, exit_code=exit_code)
    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(description="Client Files Portal maintenance")
    parser.add_argument(
        "task",
        nargs="?",
        default="all",
        choices=["all", "sessions", "history"],
    )
    parser.add_argument(
        "--days",
        type=int,
        default=settings.LOGIN_HISTORY_RETENTION_DAYS,
        help="Login history retention in days",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.task, args.days)))


if __name__ == "__main__":
    main()
