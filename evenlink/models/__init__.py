"""Value types shared by the query service, its backends and its callers."""
from .access import Access, Authorized, Denied, guard, guard_sync
from .bluetooth_device import BondedDevice, DeviceType
from .paired_device import PairedDevice

__all__ = [
    "Access",
    "Authorized",
    "Denied",
    "guard",
    "guard_sync",
    "BondedDevice",
    "DeviceType",
    "PairedDevice",
]
