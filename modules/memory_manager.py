"""Persistent storage for the medication list and user settings.

Manages:
  - Medications (with their append-only dose history)
  - Settings (minimum reminder duration)

Each is a JSON file in the data directory. A missing or malformed file
loads as the empty/default value and is never reported as an error.
"""

import json
from pathlib import Path
from typing import List

from config import ReminderConfig, StorageConfig, get_logger
from core.models import Medication, Settings

logger = get_logger("storage")


class MemoryManager:
    def __init__(self, data_dir: str = None, config: StorageConfig = None,
                 reminder_config: ReminderConfig = None):
        self.config = config or StorageConfig()
        self.reminder_config = reminder_config or ReminderConfig()
        self.data_dir = Path(data_dir or self.config.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.medications_path = self.data_dir / self.config.medications_file
        self.settings_path = self.data_dir / self.config.settings_file

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {path.name}: {e}")
            return None

    def _write_json(self, path: Path, data):
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        tmp.replace(path)

    # ------------------------------------------------------------------
    # Medications
    # ------------------------------------------------------------------

    def load_medications(self) -> List[Medication]:
        data = self._read_json(self.medications_path)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(f"{self.medications_path.name} is not a list; starting empty")
            return []
        try:
            return [
                Medication.from_dict(item, self.reminder_config.default_reminder_minutes)
                for item in data
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed medication data ({e}); starting empty")
            return []

    def save_medications(self, medications: List[Medication]) -> None:
        self._write_json(self.medications_path, [m.to_dict() for m in medications])

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def load_settings(self) -> Settings:
        settings = Settings.from_dict(self._read_json(self.settings_path))
        if not self.settings_path.exists():
            settings.min_reminder_duration_seconds = self.reminder_config.default_min_reminder_seconds
        return settings

    def save_settings(self, settings: Settings) -> None:
        self._write_json(self.settings_path, settings.to_dict())
