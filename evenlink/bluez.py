"""BlueZ-backed :class:`~evenlink.query.BluetoothManager` over the system D-Bus."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from evenlink.errors import BluetoothAccessError
from evenlink.models import BondedDevice, DeviceType

logger = logging.getLogger(__name__)

try:  # pragma: no cover - dbus-fast only ships for Linux
	from dbus_fast import BusType, Message, MessageType
	from dbus_fast.aio import MessageBus
	from dbus_fast.errors import AuthError, DBusError
except Exception:  # pragma: no cover
	BusType = Message = MessageType = None  # type: ignore
	MessageBus = None  # type: ignore
	AuthError = DBusError = None  # type: ignore

BLUEZ_SERVICE = "org.bluez"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
GATT_SERVICE_INTERFACE = "org.bluez.GattService1"
LE_BEARER_INTERFACE = "org.bluez.Bearer.LE1"
BREDR_BEARER_INTERFACE = "org.bluez.Bearer.BREDR1"
SIG_BASE_SUFFIX = "-0000-1000-8000-00805f9b34fb"

ACCESS_ERRORS = frozenset({
	"org.freedesktop.DBus.Error.AccessDenied",
	"org.freedesktop.DBus.Error.AuthFailed",
	"org.bluez.Error.NotAuthorized",
	"org.bluez.Error.NotPermitted",
})
MISSING_SERVICE_ERRORS = frozenset({
	"org.freedesktop.DBus.Error.ServiceUnknown",
	"org.freedesktop.DBus.Error.NameHasNoOwner",
})

ManagedObjects = Mapping[str, Mapping[str, Mapping[str, Any]]]


def _unwrap(value: Any) -> Any:
	"""Strip dbus-fast ``Variant`` wrappers, recursively."""
	if hasattr(value, "signature") and hasattr(value, "value"):
		return _unwrap(value.value)
	if isinstance(value, dict):
		return {key: _unwrap(item) for key, item in value.items()}
	if isinstance(value, list):
		return [_unwrap(item) for item in value]
	return value


def uuid_evidence(uuids: Iterable[Any]) -> Tuple[bool, bool]:
	"""Return ``(le, classic)`` evidence from a ``Device1.UUIDs`` list.

	SIG services in 0x18xx are GATT services, 0x11xx are classic profiles.
	Vendor 128-bit UUIDs only appear as GATT services.
	"""
	le = classic = False
	for raw in uuids or ():
		uuid = str(raw).lower()
		if uuid.startswith("0x"):
			uuid = uuid[2:]
		if len(uuid) == 36:
			if not (uuid.startswith("0000") and uuid.endswith(SIG_BASE_SUFFIX)):
				le = True
				continue
			uuid = uuid[4:8]
		if len(uuid) != 4:
			continue
		if uuid.startswith("18"):
			le = True
		elif uuid.startswith("11"):
			classic = True
	return le, classic


def classify_device(props: Mapping[str, Any], interfaces: Set[str], has_gatt: bool) -> DeviceType:
	le_uuids, classic_uuids = uuid_evidence(props.get("UUIDs") or ())
	le = (
		props.get("AddressType") == "random"
		or "Appearance" in props
		or has_gatt
		or le_uuids
		or LE_BEARER_INTERFACE in interfaces
	)
	classic = "Class" in props or classic_uuids or BREDR_BEARER_INTERFACE in interfaces
	if le and classic:
		return DeviceType.DUAL
	if le:
		return DeviceType.LE
	if classic:
		return DeviceType.CLASSIC
	return DeviceType.UNKNOWN


@dataclass(slots=True)
class DeviceEntry:
	"""Flattened view of one ``org.bluez.Device1`` object."""

	path: str
	address: str
	name: Optional[str]
	device_type: DeviceType
	bonded: bool = False
	connected: bool = False
	services_resolved: bool = False
	has_gatt: bool = False

	def to_bonded_device(self) -> BondedDevice:
		return BondedDevice(address=self.address, name=self.name, device_type=self.device_type)

	def gatt_connected(self) -> bool:
		return self.connected and (self.services_resolved or self.has_gatt)


@dataclass(slots=True)
class BlueZSnapshot:
	"""Adapter and device state parsed from one ``GetManagedObjects`` reply."""

	adapter_path: Optional[str] = None
	powered: bool = False
	devices: List[DeviceEntry] = field(default_factory=list)

	@classmethod
	def from_managed_objects(cls, objects: ManagedObjects, adapter: Optional[str] = None) -> "BlueZSnapshot":
		plain: Dict[str, Dict[str, Dict[str, Any]]] = {
			str(path): {iface: _unwrap(dict(props)) for iface, props in interfaces.items()}
			for path, interfaces in objects.items()
		}

		adapter_path: Optional[str] = None
		for path in sorted(plain):
			if ADAPTER_INTERFACE not in plain[path]:
				continue
			if adapter is None or path.rsplit("/", 1)[-1] == adapter or path == adapter:
				adapter_path = path
				break
		if adapter_path is None:
			return cls()

		powered = bool(plain[adapter_path][ADAPTER_INTERFACE].get("Powered", False))

		gatt_owners: Set[str] = set()
		for interfaces in plain.values():
			service = interfaces.get(GATT_SERVICE_INTERFACE)
			if service and service.get("Device"):
				gatt_owners.add(str(service["Device"]))

		devices: List[DeviceEntry] = []
		for path, interfaces in plain.items():
			props = interfaces.get(DEVICE_INTERFACE)
			if props is None or str(props.get("Adapter", "")) != adapter_path:
				continue
			address = props.get("Address")
			if not address:
				continue
			has_gatt = path in gatt_owners
			bonded = props.get("Bonded")
			if bonded is None:
				bonded = props.get("Paired", False)
			devices.append(
				DeviceEntry(
					path=path,
					address=str(address),
					name=props.get("Name"),
					device_type=classify_device(props, set(interfaces), has_gatt),
					bonded=bool(bonded),
					connected=bool(props.get("Connected", False)),
					services_resolved=bool(props.get("ServicesResolved", False)),
					has_gatt=has_gatt,
				)
			)
		return cls(adapter_path=adapter_path, powered=powered, devices=devices)

	def bonded(self) -> List[BondedDevice]:
		return [entry.to_bonded_device() for entry in self.devices if entry.bonded]

	def connected_addresses(self, profile: str) -> Set[str]:
		if profile == "gatt":
			return {entry.address for entry in self.devices if entry.gatt_connected()}
		return {entry.address for entry in self.devices if entry.connected}


class BlueZManager:
	"""Reads adapter and device state from ``org.bluez``.

	Every read takes a fresh ``GetManagedObjects`` snapshot over its own bus
	connection; nothing is cached between reads.
	"""

	def __init__(self, adapter: Optional[str] = None, *, bus_address: Optional[str] = None) -> None:
		self.adapter = adapter
		self.bus_address = bus_address

	async def is_available(self) -> bool:
		snapshot = await self.snapshot()
		return snapshot is not None and snapshot.adapter_path is not None

	async def is_enabled(self) -> bool:
		snapshot = await self.snapshot()
		return snapshot is not None and snapshot.powered

	async def bonded_devices(self) -> Optional[List[BondedDevice]]:
		snapshot = await self.snapshot()
		if snapshot is None or snapshot.adapter_path is None:
			return None
		return snapshot.bonded()

	async def connected_addresses(self, profile: str) -> Set[str]:
		snapshot = await self.snapshot()
		if snapshot is None:
			return set()
		return snapshot.connected_addresses(profile)

	async def snapshot(self) -> Optional[BlueZSnapshot]:
		objects = await self._managed_objects()
		if objects is None:
			return None
		return BlueZSnapshot.from_managed_objects(objects, adapter=self.adapter)

	async def _managed_objects(self) -> Optional[ManagedObjects]:
		if MessageBus is None:
			raise RuntimeError("dbus-fast is required to query BlueZ")

		try:
			bus = await MessageBus(bus_address=self.bus_address, bus_type=BusType.SYSTEM).connect()
		except (FileNotFoundError, ConnectionRefusedError) as exc:
			logger.warning("System D-Bus is not reachable: %s", exc)
			return None
		except PermissionError as exc:
			raise BluetoothAccessError(f"system bus refused connection: {exc}") from exc
		except AuthError as exc:
			raise BluetoothAccessError(f"system bus authentication failed: {exc}") from exc

		try:
			reply = await bus.call(
				Message(
					destination=BLUEZ_SERVICE,
					path="/",
					interface=OBJECT_MANAGER_INTERFACE,
					member="GetManagedObjects",
				)
			)
		finally:
			bus.disconnect()

		if reply.message_type == MessageType.ERROR:
			error_name = reply.error_name or ""
			text = str(reply.body[0]) if reply.body else error_name
			if error_name in ACCESS_ERRORS:
				raise BluetoothAccessError(text)
			if error_name in MISSING_SERVICE_ERRORS:
				logger.warning("BlueZ is not running: %s", text)
				return None
			raise DBusError(error_name, text)
		return reply.body[0]


__all__ = [
	"BlueZManager",
	"BlueZSnapshot",
	"DeviceEntry",
	"classify_device",
	"uuid_evidence",
]
