"""Scheduled sweeps: reminders, status transitions and retention cleanup"""
import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Sequence

from .composer import NotificationComposer
from .dispatcher import DeliveryDispatcher
from .recipients import RecipientResolver
from .tracker import ReminderTracker, ReminderWindow, is_due_for_completion
from ..errors import StoreError
from ..storage.database import MAX_BATCH_SIZE, Database
from ..storage.models import (
    NON_TERMINAL_STATUSES,
    REMINDER_STATUSES,
    Match,
    MatchStatus,
    NotificationStatus,
)
from ..utils.logger import setup_logger
from ..utils.timezone import now_utc

logger = setup_logger(__name__)

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class SweepReport:
    """Outcome counts of one sweep invocation"""
    name: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    deadline_hit: bool = False
    
    def summary(self) -> str:
        text = (
            f"{self.name}: {self.attempted} attempted, {self.succeeded} succeeded, "
            f"{self.failed} failed, {self.skipped} skipped"
        )
        if self.deadline_hit:
            text += " (stopped at deadline)"
        return text


def chunked(items: Sequence[str], size: int) -> Iterator[List[str]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class SweepService:
    """Runs the periodic sweeps against the record store"""
    
    def __init__(
        self,
        database: Database,
        resolver: RecipientResolver,
        composer: NotificationComposer,
        dispatcher: DeliveryDispatcher,
        tracker: ReminderTracker,
        batch_size: int = MAX_BATCH_SIZE,
        dispatch_concurrency: int = 10,
        retention_days: int = 30,
        lookahead_hours: float = 24,
        deadline_seconds: Optional[float] = None
    ):
        """
        Initialize sweep service
        
        Args:
            database: Record store
            resolver: Recipient resolver
            composer: Notification composer
            dispatcher: Delivery dispatcher
            tracker: Reminder flag tracker
            batch_size: Writes per batch commit (capped by the store limit)
            dispatch_concurrency: Max reminder dispatches in flight at once
            retention_days: Age after which notification records are deleted
            lookahead_hours: How far ahead the reminder sweep looks
            deadline_seconds: Time budget per sweep; None means unbounded
        """
        self.database = database
        self.resolver = resolver
        self.composer = composer
        self.dispatcher = dispatcher
        self.tracker = tracker
        self.batch_size = min(batch_size, database.max_batch_size)
        self.dispatch_concurrency = dispatch_concurrency
        self.retention_days = retention_days
        self.lookahead_hours = lookahead_hours
        self.deadline_seconds = deadline_seconds
    
    async def run_reminder_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Send due 24-hour and 2-hour reminders
        
        Reminders for different matches are dispatched concurrently; a
        failure for one match is counted and does not affect the others.
        
        Raises:
            StoreError: if the match query itself fails
        """
        now = now or now_utc()
        report = SweepReport("Reminder sweep")
        
        matches = self.database.get_matches_in_window(
            REMINDER_STATUSES, now, now + timedelta(hours=self.lookahead_hours)
        )
        jobs = [
            (match, window)
            for match in matches
            for window in self.tracker.due_windows(match, now)
        ]
        report.attempted = len(jobs)
        
        if jobs:
            semaphore = asyncio.Semaphore(self.dispatch_concurrency)
            tasks = [
                asyncio.create_task(self._bounded_reminder(semaphore, match, window))
                for match, window in jobs
            ]
            done, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)
            
            if pending:
                report.deadline_hit = True
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                report.skipped += len(pending)
            
            for task in done:
                if task.exception() is not None:
                    logger.error(f"Reminder dispatch failed: {task.exception()}")
                    report.failed += 1
                elif task.result() == SENT:
                    report.succeeded += 1
                elif task.result() == SKIPPED:
                    report.skipped += 1
                else:
                    report.failed += 1
        
        logger.info(report.summary())
        return report
    
    async def _bounded_reminder(
        self,
        semaphore: asyncio.Semaphore,
        match: Match,
        window: ReminderWindow
    ) -> str:
        async with semaphore:
            return await self.send_reminder(match, window)
    
    async def send_reminder(self, match: Match, window: ReminderWindow) -> str:
        """
        Send one reminder if this caller wins the flag claim
        
        Matches nobody can be reached for are left unclaimed so a later
        sweep can still remind them while the window is open.
        """
        tokens = await asyncio.to_thread(self.resolver.resolve_tokens, match.player_ids)
        if not tokens:
            return SKIPPED
        
        if not await asyncio.to_thread(self.tracker.claim, match, window):
            logger.debug(f"{window.timeframe} reminder for match {match.id} already claimed")
            return SKIPPED
        
        record = await self.dispatcher.deliver(
            self.composer.compose_reminder(match, window.timeframe), tokens
        )
        if record is None or record.status != NotificationStatus.SENT:
            return FAILED
        
        logger.info(
            f"Sent {window.timeframe} reminder to {record.success_count} player(s) "
            f"for match {match.id}"
        )
        return SENT
    
    async def run_status_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Mark matches whose scheduled end has passed as completed
        
        Raises:
            StoreError: if the match query itself fails
        """
        now = now or now_utc()
        report = SweepReport("Status sweep")
        
        started = self.database.get_started_matches(NON_TERMINAL_STATUSES, now)
        due = [match.id for match in started if is_due_for_completion(match, now)]
        report.attempted = len(due)
        
        self._commit_batches(
            report,
            due,
            lambda batch: self.database.update_status_batch(
                batch, MatchStatus.COMPLETED, NON_TERMINAL_STATUSES, now
            )
        )
        
        logger.info(report.summary())
        return report
    
    async def run_cleanup_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Delete notification records older than the retention period
        
        Raises:
            StoreError: if the notification query itself fails
        """
        now = now or now_utc()
        report = SweepReport("Cleanup sweep")
        
        cutoff = now - timedelta(days=self.retention_days)
        expired = self.database.get_notification_ids_before(cutoff)
        report.attempted = len(expired)
        
        self._commit_batches(report, expired, self.database.delete_notifications_batch)
        
        logger.info(report.summary())
        return report
    
    def _commit_batches(self, report: SweepReport, ids: List[str], write) -> None:
        """
        Apply a batch write to ids in store-sized chunks
        
        Each chunk commits atomically. A failed chunk is counted and the
        rest still run; once the deadline passes no new chunk is started.
        """
        started = time.monotonic()
        
        for batch in chunked(ids, self.batch_size):
            if self.deadline_seconds is not None and time.monotonic() - started > self.deadline_seconds:
                report.deadline_hit = True
                report.skipped += len(batch)
                continue
            try:
                written = write(batch)
            except StoreError as e:
                logger.error(f"{report.name}: batch of {len(batch)} failed: {e}")
                report.failed += len(batch)
                continue
            report.succeeded += written
            report.skipped += len(batch) - written
