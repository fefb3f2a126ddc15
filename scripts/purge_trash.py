#!/usr/bin/env python3
"""
Permanently delete processes that have been in the trash for too long.

Steps, participants and routing history of each purged process are removed with it.

Usage:
    # Preview what would be deleted (dry run)
    python scripts/purge_trash.py --days 30 --dry-run

    # Actually delete (requires confirmation)
    python scripts/purge_trash.py --days 30 --confirm
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session

from database import SessionLocal, ProcessDB
from services.workflow.engine import purge_process

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def purge_trashed_processes(db: Session, older_than_days: int, dry_run: bool = True) -> dict:
    """Purge processes deleted more than `older_than_days` days ago."""
    cutoff = datetime.utcnow() - timedelta(days=older_than_days)
    candidates = db.query(ProcessDB).filter(
        ProcessDB.deleted_at.isnot(None),
        ProcessDB.deleted_at < cutoff,
    ).order_by(ProcessDB.deleted_at).all()

    stats = {"total": len(candidates), "deleted": 0, "pbdoc_numbers": [], "errors": []}
    for process in candidates:
        stats["pbdoc_numbers"].append(process.pbdoc_number)
        if dry_run:
            logger.info(f"  Would purge {process.pbdoc_number} (in trash since {process.deleted_at:%Y-%m-%d})")
            continue
        try:
            purge_process(db, process)
            stats["deleted"] += 1
        except Exception as e:
            db.rollback()
            logger.error(f"  Failed to purge {process.pbdoc_number}: {e}")
            stats["errors"].append(process.pbdoc_number)
    return stats


def main():
    parser = argparse.ArgumentParser(description="Permanently delete old processes from the trash")
    parser.add_argument("--days", type=int, default=30, help="Minimum number of days in the trash (default: 30)")
    parser.add_argument("--dry-run", action="store_true", help="Preview what would be deleted without making changes")
    parser.add_argument("--confirm", action="store_true", help="Actually perform the deletion (required for real run)")
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        logger.error("Must specify --dry-run to preview OR --confirm to execute.")
        logger.error("  python scripts/purge_trash.py --days 30 --dry-run")
        logger.error("  python scripts/purge_trash.py --days 30 --confirm")
        sys.exit(1)

    dry_run = args.dry_run
    if dry_run:
        logger.info("=" * 60)
        logger.info("DRY RUN - No changes will be made")
        logger.info("=" * 60)

    db = SessionLocal()
    try:
        stats = purge_trashed_processes(db, args.days, dry_run=dry_run)
        logger.info("=" * 60)
        if dry_run:
            logger.info(f"DRY RUN complete. Would purge {stats['total']} process(es).")
            logger.info("Run with --confirm to execute.")
        else:
            logger.info(f"Done. Purged {stats['deleted']}/{stats['total']} process(es).")
            if stats["errors"]:
                logger.warning(f"  Errors: {len(stats['errors'])}")
        logger.info("=" * 60)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
