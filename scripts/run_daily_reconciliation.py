"""
Daily reconciliation: expire stale sessions, then recompute attendance for every active
field actor for the given operational date (default: yesterday).
Schedule once a day shortly after midnight Asia/Kolkata.

Usage:
  python scripts/run_daily_reconciliation.py
  python scripts/run_daily_reconciliation.py --date 2026-03-02
  python scripts/run_daily_reconciliation.py --skip-expire
"""
import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root so app is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.orm import Session
from app.core.logging import setup_logging
from app.db import session as db_session
from app.services import attendance_service, session_service
from app.utils.datetime_utils import get_operational_date

logger = logging.getLogger("run_daily_reconciliation")


def main():
    parser = argparse.ArgumentParser(description="Expire stale sessions and reconcile attendance")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Operational date (YYYY-MM-DD); default yesterday")
    parser.add_argument("--skip-expire", action="store_true", help="Only recompute attendance")
    args = parser.parse_args()

    setup_logging()
    target = args.date or (get_operational_date() - timedelta(days=1))

    db: Session = db_session.SessionLocal()
    try:
        if not args.skip_expire:
            expired = session_service.expire_stale_sessions(db)
            logger.info("Expired %s stale sessions", len(expired))
        records = attendance_service.reconcile_attendance_for_date(db, target)
        counts = {}
        for record in records:
            key = getattr(record.status, "value", record.status)
            counts[key] = counts.get(key, 0) + 1
        logger.info("Reconciled %s: %s records %s", target, len(records), counts)
    finally:
        db.close()


if __name__ == "__main__":
    main()
