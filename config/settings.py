"""
Configuration settings for VisReminder.
All constants and configuration values centralized here.
"""

from enum import Enum
from pathlib import Path
import os

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("VISREMINDER_DATA_DIR", PROJECT_ROOT / "data"))
LOGS_DIR = Path(os.getenv("VISREMINDER_LOGS_DIR", PROJECT_ROOT / "logs"))
ATTACHMENTS_DIR = DATA_DIR / "attachments"
DB_PATH = DATA_DIR / "visreminder.db"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
ATTACHMENTS_DIR.mkdir(exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Application
APP_NAME = "VisReminder"
APP_VERSION = "1.0.0"

# Persistence Configuration
STORAGE_KEY = "VisualReminders"  # Single key holding the whole collection

# Adapter Configuration
ADAPTER_TIMEOUT = float(os.getenv("VISREMINDER_ADAPTER_TIMEOUT", "10.0"))  # Seconds

# Notification Configuration
DEFAULT_NOTIFICATION_BODY = "Time for your visual reminder!"
NOTIFICATION_JOB_PREFIX = "reminder_"

# Scheduler Configuration
SCHEDULER_MISFIRE_GRACE_TIME = 300  # Seconds (5 minutes)
SCHEDULER_COALESCE = True  # Merge multiple pending executions
SCHEDULER_MAX_INSTANCES = 3  # Max concurrent notification deliveries

# External Sync Configuration (Apple Reminders via remindctl)
ENABLE_EXTERNAL_SYNC = os.getenv("VISREMINDER_EXTERNAL_SYNC", "true").lower() == "true"
REMINDCTL_PATH = os.getenv("REMINDCTL_PATH", "remindctl")
REMINDCTL_LIST = os.getenv("REMINDCTL_LIST")  # None = default list

# Service Configuration
STORE_RELOAD_INTERVAL = 30.0  # Seconds between reloads of the saved collection

# Dashboard
PRODUCTIVITY_TREND_DAYS = 7
RECENT_REMINDERS_LIMIT = 5

# System Configuration
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true"


# Enums for type safety
class ReminderFilter(Enum):
    """Record list filters."""
    ALL = "All"
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    UPCOMING = "Upcoming"
    COMPLETED = "Completed"


class EventType(Enum):
    """Event bus event types."""
    REMINDER_CREATED = "reminder_created"
    REMINDER_UPDATED = "reminder_updated"
    REMINDER_DELETED = "reminder_deleted"
    REMINDERS_CLEARED = "reminders_cleared"
    REMINDER_TRIGGERED = "reminder_triggered"
    EXTERNAL_ID_ATTACHED = "external_id_attached"
    PERSISTENCE_FAILED = "persistence_failed"
    ADAPTER_FAILED = "adapter_failed"
    SHUTDOWN_REQUESTED = "shutdown_requested"
