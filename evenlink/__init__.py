"""EvenLink: bonded Even G1 device lookup over the OS Bluetooth stack."""
from evenlink.errors import BluetoothAccessError, PermissionDenied, QueryFailed
from evenlink.models import BondedDevice, DeviceType, PairedDevice
from evenlink.query import (
    BluetoothManager,
    PairedDeviceQuery,
    QueryConfig,
    query_filtered_paired_devices,
)

__version__ = "0.1.0"

__all__ = [
    "BluetoothAccessError",
    "PermissionDenied",
    "QueryFailed",
    "BondedDevice",
    "DeviceType",
    "PairedDevice",
    "BluetoothManager",
    "PairedDeviceQuery",
    "QueryConfig",
    "query_filtered_paired_devices",
]
