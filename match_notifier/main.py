"""Main entry point for the match notifier"""
import asyncio
import signal
import sys
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .config import Config
from .storage.database import Database
from .services.composer import NotificationComposer
from .services.dispatcher import DeliveryDispatcher
from .services.firebase import initialize_firebase, verify_caller
from .services.notification_service import NotificationService
from .services.push_gateway import FirebasePushGateway, PushGateway
from .services.recipients import RecipientResolver
from .services.store_events import StoreEvents
from .services.sweep_service import SweepReport, SweepService
from .services.tracker import ReminderTracker
from .utils.logger import setup_logger

logger = setup_logger(__name__)


class NotifierApp:
    """Wires the notifier components together and schedules the sweeps"""
    
    def __init__(
        self,
        config: Config,
        database: Optional[Database] = None,
        gateway: Optional[PushGateway] = None
    ):
        """Initialize components, using Firebase when no gateway is given"""
        self.config = config
        self.running = False
        
        self.database = database or Database(
            db_path=config.database_path,
            timeout=config.store_timeout
        )
        if gateway is None:
            initialize_firebase(config.firebase_project_id, config.firebase_credentials_path)
            gateway = FirebasePushGateway()
        
        self.resolver = RecipientResolver(self.database)
        self.composer = NotificationComposer(config.display_timezone)
        self.dispatcher = DeliveryDispatcher(self.database, gateway, config.send_timeout)
        self.notifications = NotificationService(self.resolver, self.composer, self.dispatcher)
        self.events = StoreEvents(self.database, self.notifications)
        self.sweeps = SweepService(
            database=self.database,
            resolver=self.resolver,
            composer=self.composer,
            dispatcher=self.dispatcher,
            tracker=ReminderTracker(self.database),
            batch_size=config.batch_size,
            dispatch_concurrency=config.dispatch_concurrency,
            retention_days=config.notification_retention_days,
            deadline_seconds=config.sweep_deadline
        )
    
    async def send_custom_notification(
        self,
        request: Mapping[str, Any],
        id_token: Optional[str]
    ) -> Dict[str, Any]:
        """
        Ad-hoc dispatch on behalf of the caller holding a Firebase ID token
        
        Raises:
            AuthError: the token is missing or does not verify
            ValidationError: missing or malformed fields
            InternalError: delivery failed
        """
        auth = await asyncio.to_thread(verify_caller, id_token)
        return await self.notifications.send_custom_notification(request, auth)
    
    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.running = False
    
    async def start(self):
        """Run the sweep loops until stopped"""
        self.running = True
        logger.info("Starting match notifier...")
        
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        
        tasks = [
            asyncio.create_task(self._sweep_loop(
                "reminder", self.sweeps.run_reminder_sweep, self.config.reminder_sweep_interval
            )),
            asyncio.create_task(self._sweep_loop(
                "status", self.sweeps.run_status_sweep, self.config.status_sweep_interval
            )),
            asyncio.create_task(self._sweep_loop(
                "cleanup", self.sweeps.run_cleanup_sweep, self.config.cleanup_sweep_interval
            )),
        ]
        
        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            logger.info("Stopping sweeps...")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Match notifier stopped")
    
    async def _sweep_loop(
        self,
        name: str,
        sweep: Callable[[], Awaitable[SweepReport]],
        interval_minutes: int
    ):
        """Run one sweep immediately and then on its fixed interval"""
        logger.info(f"Starting {name} sweep loop (every {interval_minutes}m)")
        
        while self.running:
            try:
                await sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {name} sweep: {e}")
            
            try:
                await asyncio.sleep(interval_minutes * 60)
            except asyncio.CancelledError:
                break


async def main():
    """Main entry point"""
    try:
        app = NotifierApp(Config())
        await app.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


def run():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
