"""Configuration for the medication reminder tracker.

All tunable parameters live here. Environment variables are loaded
from .env at import time via python-dotenv.
"""

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent


def _env_flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


# ---------------------------------------------------------------------------
# Module configs
# ---------------------------------------------------------------------------

@dataclass
class ReminderConfig:
    """Reminder escalation and dwell-time settings."""
    default_reminder_minutes: int = 3       # Pre-reminder lead time when a medication has none
    default_min_reminder_seconds: int = 120  # Stored dismiss minimum before the 3-minute floor
    min_alert_seconds: int = 180            # Floor applied to the dismiss minimum and countdown
    until_action_seconds: int = 86400       # "Until action" keeps the alert up for a full day
    snooze_seconds: int = 300               # Snooze re-evaluation delay
    tick_interval: float = 1.0              # Resolution tick
    sensor_tolerance_minutes: int = 15      # Sensor events auto-confirm within this window


@dataclass
class StorageConfig:
    """Where medications and settings are persisted."""
    data_dir: str = field(
        default_factory=lambda: os.getenv("MEDTRACKER_DATA_DIR", str(PROJECT_ROOT / "data"))
    )
    medications_file: str = "medications.json"
    settings_file: str = "settings.json"


@dataclass
class RelayConfig:
    """Hardware event relay (WebSocket fan-out + serial bridge)."""
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    serial_port: str = field(default_factory=lambda: os.getenv("ARDUINO_PORT", "COM3"))
    baud_rate: int = 9600
    serial_enabled: bool = field(default_factory=lambda: _env_flag("SERIAL_ENABLED"))
    log_file: str = field(
        default_factory=lambda: os.getenv("MEDICATION_LOG_FILE", "medication_logs.txt")
    )


@dataclass
class NotificationConfig:
    """Audio + desktop notification settings."""
    sound_file: str = field(default_factory=lambda: os.getenv("NOTIFICATION_SOUND", ""))
    desktop_notifications: bool = field(
        default_factory=lambda: _env_flag("DESKTOP_NOTIFICATIONS")
    )
    app_name: str = "Medication Tracker"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """Named logger with a single console handler."""
    logger = logging.getLogger(f"medtracker.{name}")
    if not logger.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S"))
        logger.addHandler(_h)
        logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    return logger


# ---------------------------------------------------------------------------
# Display text
# ---------------------------------------------------------------------------

ALERT_TITLES = {
    "take": "Take Your Medication Now!",
    "remind": "Medication Reminder",
}

SOURCE_LABELS = {
    "manual": "",
    "ir_sensor": " via IR sensor",
    "simulation": " via simulation",
}
