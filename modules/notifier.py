"""Notifier module: audible chime and desktop notification for reminder alerts.

Both channels are best effort: a missing audio device, sound file or
``notify-send`` binary never reaches the reminder loop.

Audio playback uses pygame (MP3 + WAV) on a daemon thread so the tick is
never blocked while the chime plays.
"""

import os
import subprocess
import threading
import time

from config import ALERT_TITLES, NotificationConfig, get_logger

logger = get_logger("notifier")

try:
    import pygame
    _HAS_PYGAME = True
except Exception as _e:
    _HAS_PYGAME = False
    logger.debug(f"pygame not available: {_e}")


class Notifier:
    def __init__(self, config: NotificationConfig = None):
        self.config = config or NotificationConfig()
        self._mixer_ready = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def notify(self, alert) -> None:
        """Chime and pop a desktop notification for ``alert``."""
        title = ALERT_TITLES.get(alert.kind, ALERT_TITLES["remind"])
        body = f"{alert.name} - {alert.dosage}"
        self.play_sound()
        self.show_desktop(title, body, urgent=alert.kind == "take")

    def play_sound(self) -> None:
        path = self.config.sound_file
        if not path or not _HAS_PYGAME:
            return
        threading.Thread(target=self._play_file, args=(path,), daemon=True).start()

    def show_desktop(self, title: str, body: str, urgent: bool = False) -> None:
        if not self.config.desktop_notifications:
            return
        try:
            subprocess.Popen(
                [
                    "notify-send",
                    "-u", "critical" if urgent else "normal",
                    "-a", self.config.app_name,
                    title,
                    body,
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except Exception as e:
            logger.debug(f"Desktop notification failed: {e}")

    # ------------------------------------------------------------------
    # Audio file playback
    # ------------------------------------------------------------------

    def _init_mixer(self) -> bool:
        if not self._mixer_ready:
            try:
                pygame.mixer.init()
                self._mixer_ready = True
            except Exception as e:
                logger.debug(f"pygame mixer unavailable: {e}")
        return self._mixer_ready

    def _play_file(self, filepath: str) -> None:
        if not os.path.exists(filepath):
            logger.debug(f"Notification sound missing: {filepath}")
            return
        if not self._init_mixer():
            return
        try:
            if filepath.endswith(".mp3"):
                pygame.mixer.music.load(filepath)
                pygame.mixer.music.play()
                while pygame.mixer.music.get_busy():
                    time.sleep(0.05)
            else:
                sound = pygame.mixer.Sound(filepath)
                channel = sound.play()
                while channel and channel.get_busy():
                    time.sleep(0.05)
        except Exception as e:
            logger.debug(f"pygame playback error: {e}")
