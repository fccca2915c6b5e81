"""Configuration loading and validation"""
import os
from typing import Optional

import pytz
from dotenv import load_dotenv

from .utils.logger import setup_logger

logger = setup_logger(__name__)

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration"""
    
    def __init__(self):
        """Load and validate configuration"""
        # Firebase configuration
        self.firebase_project_id = self._get_required("FIREBASE_PROJECT_ID")
        self.firebase_credentials_path: Optional[str] = os.getenv("FIREBASE_CREDENTIALS_PATH") or None
        
        # Record store
        self.database_path = os.getenv("DATABASE_PATH", "data/notifier.db")
        self.store_timeout = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
        self.batch_size = int(os.getenv("BATCH_SIZE", "500"))
        
        # Delivery
        self.send_timeout = float(os.getenv("SEND_TIMEOUT_SECONDS", "10"))
        self.dispatch_concurrency = int(os.getenv("DISPATCH_CONCURRENCY", "10"))
        self.display_timezone = os.getenv("DISPLAY_TIMEZONE", "UTC")
        
        # Sweep cadences (minutes)
        self.reminder_sweep_interval = int(os.getenv("REMINDER_SWEEP_INTERVAL", "60"))
        self.status_sweep_interval = int(os.getenv("STATUS_SWEEP_INTERVAL", "60"))
        self.cleanup_sweep_interval = int(os.getenv("CLEANUP_SWEEP_INTERVAL", "1440"))
        self.sweep_deadline = float(os.getenv("SWEEP_DEADLINE_SECONDS", "540"))
        
        self.notification_retention_days = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "30"))
        
        self._validate()
        logger.info("Configuration loaded successfully")
    
    def _get_required(self, key: str) -> str:
        """Get required environment variable"""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable {key} is not set")
        return value
    
    def _validate(self):
        """Validate configuration values"""
        for name, value in (
            ("REMINDER_SWEEP_INTERVAL", self.reminder_sweep_interval),
            ("STATUS_SWEEP_INTERVAL", self.status_sweep_interval),
            ("CLEANUP_SWEEP_INTERVAL", self.cleanup_sweep_interval),
        ):
            if value < 1:
                raise ValueError(f"{name} must be at least 1 minute")
        
        if not 1 <= self.batch_size <= 500:
            raise ValueError("BATCH_SIZE must be between 1 and 500")
        
        if self.dispatch_concurrency < 1:
            raise ValueError("DISPATCH_CONCURRENCY must be at least 1")
        
        if self.send_timeout <= 0 or self.store_timeout <= 0 or self.sweep_deadline <= 0:
            raise ValueError("Timeouts and deadlines must be positive")
        
        if self.notification_retention_days < 1:
            raise ValueError("NOTIFICATION_RETENTION_DAYS must be at least 1")
        
        if self.display_timezone not in pytz.all_timezones_set:
            raise ValueError(f"DISPLAY_TIMEZONE '{self.display_timezone}' is not a known timezone")
        
        logger.info(
            f"Sweep intervals: reminders {self.reminder_sweep_interval}m, "
            f"status {self.status_sweep_interval}m, cleanup {self.cleanup_sweep_interval}m"
        )
        logger.info(f"Notification retention: {self.notification_retention_days} days")
