from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class PairedDevice:
    """Result record for one bonded, BLE-capable, name-matched device."""
    name: str
    address: str
    connected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "connected": self.connected,
        }

    def to_client(self) -> Dict[str, Any]:
        """Shape consumed by the host application's device list."""
        return {
            "id": self.address,
            "name": self.name or None,
            "isConnected": bool(self.connected),
        }
