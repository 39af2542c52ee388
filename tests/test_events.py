import unittest
import json
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.events import (
    ConnectionStatusEvent, DeviceUpdateEvent, MedicationTakenEvent,
    RelayMessageError, parse_relay_message,
)


class TestParseRelayMessage(unittest.TestCase):
    def test_medication_taken(self):
        event = parse_relay_message(json.dumps({
            "type": "medication_taken", "medication": " Aspirin ",
            "timestamp": "2026-10-19T09:00:00Z", "deviceId": "esp-1",
        }))
        self.assertIsInstance(event, MedicationTakenEvent)
        self.assertEqual(event.medication_name, "Aspirin")
        self.assertEqual(event.device_id, "esp-1")
        self.assertFalse(event.is_simulation)

    def test_unnamed_simulation_event(self):
        event = parse_relay_message({"type": "medication_taken", "deviceId": "simulation"})
        self.assertTrue(event.is_simulation)
        self.assertEqual(event.medication_name, "")

    def test_connection_status(self):
        event = parse_relay_message(b'{"type": "connection_status", "status": "wifi_only", "devices": []}')
        self.assertIsInstance(event, ConnectionStatusEvent)
        self.assertEqual(event.status, "wifi_only")

    def test_device_update(self):
        event = parse_relay_message({"type": "device_update", "devices": [{"deviceId": "esp-1"}]})
        self.assertIsInstance(event, DeviceUpdateEvent)
        self.assertEqual(event.devices[0]["deviceId"], "esp-1")

    def test_rejects_bad_payloads(self):
        for payload in ("not json", "[1, 2]", {"type": "reboot"}, {"type": "medication_taken", "medication": 5},
                        {"type": "device_update", "devices": "esp-1"}):
            with self.assertRaises(RelayMessageError):
                parse_relay_message(payload)


if __name__ == '__main__':
    unittest.main()
