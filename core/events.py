"""Messages published by the event relay.

Inbound payloads are parsed once at the boundary into one of three
message kinds; anything else raises ``RelayMessageError``.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

MEDICATION_TAKEN = "medication_taken"
CONNECTION_STATUS = "connection_status"
DEVICE_UPDATE = "device_update"

SIMULATION_DEVICE = "simulation"


class RelayMessageError(ValueError):
    pass


@dataclass
class MedicationTakenEvent:
    medication: Optional[str] = None
    device_id: Optional[str] = None
    timestamp: Optional[str] = None

    @property
    def is_simulation(self) -> bool:
        return self.device_id == SIMULATION_DEVICE

    @property
    def medication_name(self) -> str:
        return (self.medication or "").strip()


@dataclass
class ConnectionStatusEvent:
    status: str
    devices: List[Dict] = field(default_factory=list)
    message: str = ""


@dataclass
class DeviceUpdateEvent:
    devices: List[Dict] = field(default_factory=list)


RelayMessage = Union[MedicationTakenEvent, ConnectionStatusEvent, DeviceUpdateEvent]


def _optional_str(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RelayMessageError(f"'{key}' must be a string")
    return value


def _devices(data: Dict) -> List[Dict]:
    devices = data.get("devices") or []
    if not isinstance(devices, list) or not all(isinstance(d, dict) for d in devices):
        raise RelayMessageError("'devices' must be a list of objects")
    return devices


def parse_relay_message(payload: Union[str, bytes, Dict]) -> RelayMessage:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise RelayMessageError(f"invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise RelayMessageError("message must be a JSON object")

    kind = payload.get("type")
    if kind == MEDICATION_TAKEN:
        return MedicationTakenEvent(
            medication=_optional_str(payload, "medication"),
            device_id=_optional_str(payload, "deviceId"),
            timestamp=_optional_str(payload, "timestamp"),
        )
    if kind == CONNECTION_STATUS:
        return ConnectionStatusEvent(
            status=_optional_str(payload, "status") or "",
            devices=_devices(payload),
            message=_optional_str(payload, "message") or "",
        )
    if kind == DEVICE_UPDATE:
        return DeviceUpdateEvent(devices=_devices(payload))
    raise RelayMessageError(f"unknown message type: {kind!r}")
