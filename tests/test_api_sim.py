"""Integration-style tests for the FastAPI bridge using fakes."""
from __future__ import annotations

import csv
import tempfile
import unittest
from pathlib import Path
from typing import List, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient

import evenlink.api as api_module
from evenlink.errors import BluetoothAccessError
from evenlink.metrics import QueryMetrics
from evenlink.models import BondedDevice, DeviceType


class _FakeManager:
    def __init__(
        self,
        bonded: Optional[List[BondedDevice]] = None,
        connected: Optional[List[str]] = None,
        *,
        enabled: bool = True,
        deny_bonded: bool = False,
        fail_with: Optional[Exception] = None,
    ) -> None:
        self.bonded = bonded or []
        self.connected = set(connected or [])
        self.enabled = enabled
        self.deny_bonded = deny_bonded
        self.fail_with = fail_with

    async def is_available(self) -> bool:
        return True

    async def is_enabled(self) -> bool:
        return self.enabled

    async def bonded_devices(self):
        if self.deny_bonded:
            raise BluetoothAccessError("BLUETOOTH_CONNECT not granted")
        if self.fail_with is not None:
            raise self.fail_with
        return self.bonded

    async def connected_addresses(self, profile: str):
        return self.connected


BONDED = [
    BondedDevice(address="AA:BB", name="Even G1-42", device_type=DeviceType.LE),
    BondedDevice(address="CC:DD", name="Pixel Buds", device_type=DeviceType.CLASSIC),
    BondedDevice(address="EE:FF", name="R02_7A1C", device_type=DeviceType.LE),
]


class ApiSimulationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(api_module.app)

    def tearDown(self) -> None:
        self.client.close()

    def _serve(self, manager: _FakeManager):
        return patch.object(api_module, "manager_factory", lambda: manager)

    def test_health_endpoint_returns_ok(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "ok")
        self.assertIn("time", payload)

    def test_paired_devices_returns_filtered_records(self) -> None:
        with self._serve(_FakeManager(BONDED, ["AA:BB"])):
            response = self.client.get("/paired-devices")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{"name": "Even G1-42", "address": "AA:BB", "connected": True}])

    def test_prefix_parameter_overrides_default(self) -> None:
        with self._serve(_FakeManager(BONDED)):
            response = self.client.get("/paired-devices", params={"prefix": "R02"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{"name": "R02_7A1C", "address": "EE:FF", "connected": False}])

    def test_empty_prefix_is_rejected(self) -> None:
        response = self.client.get("/paired-devices", params={"prefix": ""})
        self.assertEqual(response.status_code, 422)

    def test_client_shape(self) -> None:
        with self._serve(_FakeManager(BONDED, ["AA:BB"])):
            response = self.client.get("/paired-devices/client")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{"id": "AA:BB", "name": "Even G1-42", "isConnected": True}])

    def test_disabled_adapter_is_not_an_error(self) -> None:
        with self._serve(_FakeManager(BONDED, enabled=False)):
            response = self.client.get("/paired-devices")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_permission_denied_maps_to_403(self) -> None:
        with self._serve(_FakeManager(BONDED, deny_bonded=True)):
            response = self.client.get("/paired-devices")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json(),
            {"code": "E_BLUETOOTH_PERMISSION", "message": "Missing Bluetooth permission"},
        )

    def test_query_failure_maps_to_500(self) -> None:
        with self._serve(_FakeManager(fail_with=RuntimeError("adapter vanished"))):
            response = self.client.get("/paired-devices")

        self.assertEqual(response.status_code, 500)
        payload = response.json()
        self.assertEqual(payload["code"], "E_BLUETOOTH_ERROR")
        self.assertIn("adapter vanished", payload["message"])

    def test_metrics_row_per_request(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp, "bridge.csv")
            with self._serve(_FakeManager(BONDED, ["AA:BB"])), patch.object(api_module, "metrics", QueryMetrics(path)):
                response = self.client.get("/paired-devices")

            self.assertEqual(response.status_code, 200)
            with path.open("r", encoding="utf-8", newline="") as handle:
                rows = list(csv.DictReader(handle))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["event"], "paired_query")
        self.assertEqual(rows[0]["status"], "ok")
        self.assertEqual(rows[0]["returned"], "1")


if __name__ == "__main__":
    unittest.main()
