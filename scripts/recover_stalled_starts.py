#!/usr/bin/env python3
"""
Recovery Script: finish campaigns whose start sequence was interrupted.

A campaign left in `starting` for longer than STALLED_START_SECONDS is
resumed: the missing turn 1, resolution or world state is written and the
campaign becomes active.

Usage:
    python scripts/recover_stalled_starts.py [--older-than SECONDS] [--dry-run]

Features:
    - Finds campaigns stuck in `starting` past the timeout
    - Resumes each one from its last completed step
    - Idempotent: safe to run repeatedly (e.g. from cron)
"""

import argparse
import logging
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.config import STALLED_START_SECONDS
from backend.db import SessionLocal, init_db
from backend.logging_config import setup_logging
from backend.narrative import StoryNarrator
from backend.campaign_logic import find_stalled_starts, resume_start
from backend.rejections import CampaignRejection

logger = logging.getLogger("recover_stalled_starts")


def recover(older_than: int, dry_run: bool = False) -> dict:
    """Resume every stalled start. Returns a summary of what happened."""
    summary = {"found": 0, "resumed": [], "skipped": [], "errors": []}

    db = SessionLocal()
    try:
        with StoryNarrator() as narrator:
            stalled = find_stalled_starts(db, older_than_seconds=older_than)
            summary["found"] = len(stalled)
            for campaign in stalled:
                code = campaign.code
                if dry_run:
                    logger.info(f"[dry-run] would resume {code} (last step: {campaign.start_step})")
                    summary["skipped"].append(code)
                    continue
                try:
                    resume_start(db, narrator, code)
                    summary["resumed"].append(code)
                except CampaignRejection as e:
                    # Another worker finished it first
                    logger.info(f"Skipped {code}: {e.message}")
                    summary["skipped"].append(code)
                except Exception as e:
                    db.rollback()
                    logger.error(f"Failed to resume {code}: {e}", exc_info=e)
                    summary["errors"].append(f"{code}: {e}")
    finally:
        db.close()

    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Resume campaigns stuck in the starting state")
    parser.add_argument("--older-than", type=int, default=STALLED_START_SECONDS,
                        help="Seconds a campaign must have been starting before it is resumed")
    parser.add_argument("--dry-run", action="store_true", help="List stalled campaigns without resuming them")
    args = parser.parse_args(argv)

    setup_logging()
    init_db()

    summary = recover(args.older_than, dry_run=args.dry_run)
    logger.info(
        f"Stalled starts: found={summary['found']} resumed={len(summary['resumed'])} "
        f"skipped={len(summary['skipped'])} errors={len(summary['errors'])}"
    )
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
