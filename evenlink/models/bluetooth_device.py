from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DeviceType(str, Enum):
    """Transport capability of a bonded device."""

    CLASSIC = "classic"
    LE = "le"
    DUAL = "dual"
    UNKNOWN = "unknown"

    @property
    def ble_capable(self) -> bool:
        return self in (DeviceType.LE, DeviceType.DUAL)


@dataclass
class BondedDevice:
    """A previously paired device as reported by the OS bonding store.

    Records are snapshots; nothing here talks back to the stack. Backends
    whose records resolve ``name`` or ``device_type`` lazily may raise
    :class:`~evenlink.errors.BluetoothAccessError` from those attributes.
    """
    address: str
    name: Optional[str] = None
    device_type: DeviceType = DeviceType.UNKNOWN
