"""Command-line tool for ad-hoc notifications and manual sweep testing"""
import argparse
import asyncio
import os
import sys
import uuid
from datetime import timedelta
from typing import List, Optional

from .config import Config
from .errors import NotifierError
from .main import NotifierApp
from .storage.models import Match, MatchStatus
from .utils.logger import setup_logger
from .utils.timezone import now_utc

logger = setup_logger(__name__)


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def create_test_match(court: str, player_ids: List[str], minutes: int) -> Match:
    """
    Create a confirmed match starting N minutes from now
    
    Args:
        court: Court name
        player_ids: Participants
        minutes: Minutes from now to set match start time
    
    Returns:
        Match object
    """
    return Match(
        id=f"test-{uuid.uuid4().hex[:12]}",
        status=MatchStatus.CONFIRMED,
        match_date=now_utc() + timedelta(minutes=minutes),
        court_name=court,
        player_ids=player_ids
    )


async def send_custom(
    app: NotifierApp,
    recipients: List[str],
    title: str,
    body: str,
    id_token: Optional[str]
) -> bool:
    """Send an ad-hoc notification as the caller the ID token belongs to"""
    try:
        result = await app.send_custom_notification(
            {"recipientIds": recipients, "title": title, "body": body},
            id_token
        )
    except NotifierError as e:
        logger.error(f"✗ {e.code}: {e}")
        return False
    
    if not result["success"]:
        logger.error(f"✗ {result['message']}")
        return False
    
    logger.info(
        f"✓ Sent: {result['successCount']} succeeded, {result['failureCount']} failed"
    )
    return True


async def run_sweep(app: NotifierApp, name: str):
    """Run a single sweep now"""
    sweeps = {
        "reminder": app.sweeps.run_reminder_sweep,
        "status": app.sweeps.run_status_sweep,
        "cleanup": app.sweeps.run_cleanup_sweep,
    }
    report = await sweeps[name]()
    logger.info(f"✓ {report.summary()}")


async def seed_match(app: NotifierApp, court: str, players: List[str], minutes: int):
    """Store a test match so the reminder sweep picks it up"""
    match = create_test_match(court, players, minutes)
    await app.events.save_match(match)
    
    logger.info(f"✓ Test match stored in database (ID: {match.id})")
    logger.info(f"  Court: {match.court_name}, starts at {match.match_date} UTC")
    logger.info("Next steps:")
    logger.info("1. Start the notifier: python -m match_notifier.main")
    logger.info("   or run once: python -m match_notifier.send_notification --sweep reminder")
    logger.info("2. Reminders go out 23-25 hours and 1.5-2.5 hours before start")


async def cancel_match(app: NotifierApp, match_id: str, reason: Optional[str]) -> bool:
    """Cancel a stored match and notify its players"""
    match = app.database.get_match(match_id)
    if match is None:
        logger.error(f"✗ Match {match_id} not found")
        return False
    
    match.status = MatchStatus.CANCELLED
    match.cancel_reason = reason
    match.updated_at = now_utc()
    records = await app.events.save_match(match)
    
    logger.info(f"✓ Match {match_id} cancelled, {len(records)} notification(s) dispatched")
    return True


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Send ad-hoc match notifications or exercise the sweeps"
    )
    parser.add_argument(
        "--recipients",
        type=str,
        default="",
        help="Comma-separated user IDs to notify"
    )
    parser.add_argument("--title", type=str, default="Test Notification", help="Notification title")
    parser.add_argument("--body", type=str, default="This is a test notification", help="Notification body")
    parser.add_argument(
        "--sweep",
        choices=["reminder", "status", "cleanup"],
        help="Run one sweep immediately instead of sending"
    )
    parser.add_argument(
        "--seed-match",
        action="store_true",
        help="Store a test match instead of sending"
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=120,
        help="Minutes from now for the seeded match start (default: 120)"
    )
    parser.add_argument("--court", type=str, default="Test Court 1", help="Court name for the seeded match")
    parser.add_argument(
        "--cancel-match",
        type=str,
        metavar="MATCH_ID",
        help="Cancel a stored match and notify its players"
    )
    parser.add_argument("--reason", type=str, help="Cancellation reason shown to players")
    parser.add_argument(
        "--id-token",
        type=str,
        default=os.getenv("FIREBASE_ID_TOKEN"),
        help="Firebase ID token of the sender (default: FIREBASE_ID_TOKEN)"
    )
    
    args = parser.parse_args()
    
    try:
        config = Config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    
    app = NotifierApp(config)
    
    if args.seed_match:
        asyncio.run(seed_match(app, args.court, _split(args.recipients), args.minutes))
        return
    
    if args.cancel_match:
        if not asyncio.run(cancel_match(app, args.cancel_match, args.reason)):
            sys.exit(1)
        return
    
    if args.sweep:
        asyncio.run(run_sweep(app, args.sweep))
        return
    
    recipients = _split(args.recipients)
    if not recipients:
        logger.error("--recipients is required when sending a notification")
        sys.exit(1)
    
    if not asyncio.run(send_custom(app, recipients, args.title, args.body, args.id_token)):
        sys.exit(1)


if __name__ == "__main__":
    main()
