"""Hardware event relay.

Bridges "medication taken" events from the sensor hardware to every
connected client:

  Arduino (serial)  ─┐
  ESP8266 (socket)  ─┼─→ RelayHub ─→ WebSocket clients + in-process subscribers
  simulation        ─┘

Delivery is best effort to each currently open connection: a client that
fails a send is dropped, nothing is retried.
"""

import itertools
import json
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

import serial

from config import RelayConfig, get_logger
from core.events import CONNECTION_STATUS, DEVICE_UPDATE, MEDICATION_TAKEN, SIMULATION_DEVICE

logger = get_logger("relay")

SERIAL_MARKER = "MEDICATION_TAKEN"
ARDUINO_DEVICE = "arduino"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Device:
    device_id: str
    ip: str
    type: str
    connected_at: str

    def to_dict(self) -> Dict:
        return {
            "deviceId": self.device_id,
            "ip": self.ip,
            "type": self.type,
            "connectedAt": self.connected_at,
        }


class RelayHub:
    def __init__(self, config: RelayConfig = None):
        self.config = config or RelayConfig()
        self.log_path = Path(self.config.log_file)
        self.serial_connected = False
        self._clients: Dict[object, Device] = {}
        self._subscribers: List[Callable[[Dict], None]] = []
        self._lock = threading.Lock()
        self._client_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[Dict], None]) -> None:
        """Receive every broadcast in-process (the tracker session)."""
        self._subscribers.append(callback)

    def connection_status(self) -> str:
        return "connected" if self.serial_connected else "wifi_only"

    def connect(self, client, ip: str = "") -> Device:
        device = Device(
            device_id=f"client-{int(time.time() * 1000)}-{next(self._client_ids)}",
            ip=ip or "",
            type="web",
            connected_at=_utc_now(),
        )
        with self._lock:
            self._clients[client] = device
        logger.info(f"Client connected from {device.ip or 'unknown'}")
        self._send(client, {
            "type": CONNECTION_STATUS,
            "status": self.connection_status(),
            "message": "Connected to medication sensor server",
            "devices": self.devices(),
        })
        return device

    def disconnect(self, client) -> None:
        with self._lock:
            device = self._clients.pop(client, None)
        if device is not None:
            logger.info(f"Device disconnected: {device.device_id}")
            self.broadcast_device_update()

    def devices(self) -> List[Dict]:
        with self._lock:
            return [d.to_dict() for d in self._clients.values()]

    def handle_client_message(self, client, raw) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Error parsing client message: {e}")
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object client message")
            return

        kind = message.get("type")
        if kind == "device_connected":
            with self._lock:
                current = self._clients.get(client)
                device = Device(
                    device_id=message.get("device_id") or f"device-{int(time.time() * 1000)}",
                    ip=message.get("ip") or (current.ip if current else ""),
                    type="esp8266",
                    connected_at=_utc_now(),
                )
                self._clients[client] = device
            logger.info(f"Device registered: {device.device_id} at {device.ip}")
            self.broadcast_device_update()
        elif kind == MEDICATION_TAKEN:
            with self._lock:
                device = self._clients.get(client)
            self.broadcast_medication_taken(message.get("medication") or "", device.device_id if device else None)
        elif kind == "simulation":
            self.broadcast_medication_taken(message.get("medication") or "", SIMULATION_DEVICE)
        else:
            logger.warning(f"Ignoring client message of type {kind!r}")

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------

    def _send(self, client, message: Dict) -> bool:
        try:
            client.send(json.dumps(message))
            return True
        except Exception as e:
            logger.warning(f"Error sending to client: {e}")
            with self._lock:
                self._clients.pop(client, None)
            return False

    def broadcast(self, message: Dict) -> int:
        """Send ``message`` to every open client; returns how many received it."""
        with self._lock:
            clients = list(self._clients)
        return sum(1 for client in clients if self._send(client, message))

    def broadcast_device_update(self) -> None:
        self.broadcast({"type": DEVICE_UPDATE, "devices": self.devices()})

    def broadcast_medication_taken(self, medication: str = "", device_id: Optional[str] = None) -> Dict:
        message = {
            "type": MEDICATION_TAKEN,
            "medication": medication,
            "timestamp": _utc_now(),
            "deviceId": device_id,
        }
        self._log_event(message)
        self.broadcast(message)
        for callback in list(self._subscribers):
            try:
                callback(message)
            except Exception:
                logger.exception("Relay subscriber failed")
        return message

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def _log_event(self, message: Dict) -> None:
        entry = dict(message, serverTime=_utc_now())
        try:
            if self.log_path.parent:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.error(f"Error writing to log file: {e}")

    def read_logs(self) -> List[Dict]:
        try:
            with open(self.log_path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except OSError:
            return []
        logs = []
        for line in lines:
            if not line.strip():
                continue
            try:
                logs.append(json.loads(line))
            except ValueError:
                continue
        return logs

    def status(self) -> Dict:
        return {
            "status": "online",
            "arduino": "connected" if self.serial_connected else "disconnected",
            "serverTime": _utc_now(),
            "connectedDevices": self.devices(),
        }


# ---------------------------------------------------------------------------
# Serial bridge (Arduino Uno over USB)
# ---------------------------------------------------------------------------

def parse_serial_line(line: str) -> Optional[str]:
    """Medication name from a ``MEDICATION_TAKEN[:name]`` line ("" if unnamed), else None."""
    if SERIAL_MARKER not in line:
        return None
    if ":" in line:
        return line.split(":", 1)[1].strip()
    return ""


class SerialBridge:
    def __init__(self, hub: RelayHub, config: RelayConfig = None):
        self.hub = hub
        self.config = config or hub.config
        self._port = None
        self._stop = threading.Event()
        self._thread = None

    def start(self) -> bool:
        if not self.config.serial_enabled:
            logger.info("Serial bridge disabled; relaying WiFi devices only")
            return False
        try:
            self._port = serial.Serial(self.config.serial_port, self.config.baud_rate, timeout=1.0)
        except (serial.SerialException, OSError, ValueError) as e:
            logger.warning(f"Failed to open serial port {self.config.serial_port}: {e}")
            logger.info("Running without Arduino serial connection; ESP8266 devices still work over WiFi")
            return False
        self.hub.serial_connected = True
        logger.info(f"Serial port {self.config.serial_port} connected at {self.config.baud_rate} baud")
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)
        if self._port is not None:
            try:
                self._port.close()
            except (serial.SerialException, OSError) as e:
                logger.debug(f"Error closing serial port: {e}")
        self.hub.serial_connected = False

    def handle_line(self, line: str) -> Optional[Dict]:
        name = parse_serial_line(line)
        if name is None:
            return None
        logger.info(f"Received from Arduino serial: {line}")
        return self.hub.broadcast_medication_taken(name, ARDUINO_DEVICE)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                raw = self._port.readline()
            except (serial.SerialException, OSError) as e:
                logger.error(f"Error reading from serial port: {e}")
                self.hub.serial_connected = False
                return
            if raw:
                self.handle_line(raw.decode("utf-8", errors="replace").strip())
