"""
Sends the daily poster/quiz push notification. Meant for cron.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from poster_pipeline.templates import campaign_today
from sevadar.config import get_settings
from sevadar.dependencies import get_db_client, get_poster_catalog, get_push_notifier
from sevadar.notifications import choose_daily_message, send_daily_notification

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Send the daily Sevadar push notification")
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Campaign day as YYYY-MM-DD (defaults to today in the campaign timezone)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the chosen message without sending it",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    today = (
        datetime.strptime(args.date, "%Y-%m-%d").date()
        if args.date
        else campaign_today(settings.campaign_timezone)
    )
    db = get_db_client()
    catalog = get_poster_catalog()

    if args.dry_run:
        message = choose_daily_message(catalog, db, settings.notification_link, today=today)
        if message is None:
            logger.info("Nothing special to notify on %s", today)
        else:
            logger.info("Would send %s notification: %s / %s", message.kind, message.title, message.body)
        return 0

    try:
        send_daily_notification(
            db, catalog, get_push_notifier(), settings.notification_link, today=today
        )
    except Exception:
        logger.exception("Daily notification failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
