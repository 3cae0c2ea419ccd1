"""Bonded-device query with GATT connection state and product-name filtering."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Protocol, runtime_checkable

from evenlink.errors import EvenLinkError, PermissionDenied, QueryFailed
from evenlink.metrics import QueryMetrics
from evenlink.models import BondedDevice, Denied, DeviceType, PairedDevice, guard, guard_sync

logger = logging.getLogger(__name__)

TARGET_NAME_PREFIX = "Even G1"
GATT_PROFILE = "gatt"
BLE_CAPABLE_TYPES: FrozenSet[DeviceType] = frozenset(kind for kind in DeviceType if kind.ble_capable)


@runtime_checkable
class BluetoothManager(Protocol):
	"""What the query needs from the OS Bluetooth stack.

	Any read may raise :class:`~evenlink.errors.BluetoothAccessError` when the
	process is not authorized to perform it.
	"""

	async def is_available(self) -> bool: ...

	async def is_enabled(self) -> bool: ...

	async def bonded_devices(self) -> Optional[Iterable[BondedDevice]]: ...

	async def connected_addresses(self, profile: str) -> Iterable[str]: ...


@dataclass(slots=True)
class QueryConfig:
	"""Filters and hooks used by :class:`PairedDeviceQuery`."""

	target_name_prefix: str = TARGET_NAME_PREFIX
	device_types: FrozenSet[DeviceType] = BLE_CAPABLE_TYPES
	profile: str = GATT_PROFILE
	metrics: Optional[QueryMetrics] = None

	def __post_init__(self) -> None:
		if not self.target_name_prefix:
			raise ValueError("target_name_prefix must be a non-empty string")
		self.device_types = frozenset(self.device_types)

	def allows_type(self, device_type: DeviceType) -> bool:
		return device_type in self.device_types

	def allows_name(self, name: Optional[str]) -> bool:
		# Exact, case-sensitive prefix.
		return name is not None and name.startswith(self.target_name_prefix)

	def allows(self, device: BondedDevice) -> bool:
		return self.allows_type(device.device_type) and self.allows_name(device.name)


class PairedDeviceQuery:
	"""One-shot, read-only snapshot of matching bonded devices."""

	def __init__(self, manager: BluetoothManager, config: QueryConfig | None = None) -> None:
		self.manager = manager
		self.config = config or QueryConfig()

	async def run(self) -> List[PairedDevice]:
		metrics = self.config.metrics
		if metrics is None:
			return await self._run()
		with metrics.timer("paired_query", prefix=self.config.target_name_prefix) as stats:
			devices = await self._run()
			stats["returned"] = len(devices)
			stats["connected"] = sum(1 for device in devices if device.connected)
		return devices

	async def _run(self) -> List[PairedDevice]:
		try:
			return await self._collect()
		except EvenLinkError:
			raise
		except Exception as exc:
			logger.exception("Paired device query failed")
			raise QueryFailed(str(exc) or type(exc).__name__) from exc

	async def _collect(self) -> List[PairedDevice]:
		available = await guard(self.manager.is_available)
		if isinstance(available, Denied):
			raise PermissionDenied()
		if not available.value:
			logger.info("No Bluetooth adapter present; returning no devices")
			return []

		enabled = await guard(self.manager.is_enabled)
		if isinstance(enabled, Denied):
			raise PermissionDenied()
		if not enabled.value:
			logger.info("Bluetooth adapter is disabled; returning no devices")
			return []

		connected = await self._connected_snapshot()

		bonded = await guard(self._read_bonded)
		if isinstance(bonded, Denied):
			logger.warning("Bonded device read denied: %s", bonded.reason)
			raise PermissionDenied()
		if bonded.value is None:
			logger.info("Bonded device set unavailable; returning no devices")
			return []

		results: List[PairedDevice] = []
		for device in bonded.value:
			record = self._inspect(device, connected)
			if record is not None:
				results.append(record)

		logger.debug(
			"Paired query matched %d of %d bonded devices (%d connected)",
			len(results),
			len(bonded.value),
			len(connected),
		)
		return results

	async def _connected_snapshot(self) -> FrozenSet[str]:
		outcome = await guard(lambda: self.manager.connected_addresses(self.config.profile))
		if isinstance(outcome, Denied):
			logger.warning(
				"Connected %s device read denied (%s); reporting all devices as disconnected",
				self.config.profile,
				outcome.reason,
			)
			return frozenset()
		return frozenset(address for address in (outcome.value or ()) if address)

	async def _read_bonded(self) -> Optional[List[BondedDevice]]:
		devices = await self.manager.bonded_devices()
		if devices is None:
			return None
		return list(devices)

	def _inspect(self, device: BondedDevice, connected: FrozenSet[str]) -> Optional[PairedDevice]:
		outcome = guard_sync(lambda: self._match(device, connected))
		if isinstance(outcome, Denied):
			logger.debug("Skipping bonded device, inspection denied: %s", outcome.reason)
			return None
		return outcome.value

	def _match(self, device: BondedDevice, connected: FrozenSet[str]) -> Optional[PairedDevice]:
		if not self.config.allows(device):
			return None
		address = device.address
		return PairedDevice(
			name=device.name or "",
			address=address,
			connected=bool(address) and address in connected,
		)


async def query_filtered_paired_devices(
	manager: Optional[BluetoothManager] = None,
	*,
	prefix: str = TARGET_NAME_PREFIX,
	profile: str = GATT_PROFILE,
	metrics: Optional[QueryMetrics] = None,
) -> List[PairedDevice]:
	"""Return bonded BLE devices whose name starts with ``prefix``.

	Without an explicit ``manager`` the system BlueZ daemon is queried.
	Raises :class:`PermissionDenied` or :class:`QueryFailed`.
	"""
	if manager is None:
		from evenlink.bluez import BlueZManager

		manager = BlueZManager()
	config = QueryConfig(target_name_prefix=prefix, profile=profile, metrics=metrics)
	return await PairedDeviceQuery(manager, config).run()


__all__ = [
	"BluetoothManager",
	"QueryConfig",
	"PairedDeviceQuery",
	"query_filtered_paired_devices",
	"TARGET_NAME_PREFIX",
	"GATT_PROFILE",
	"BLE_CAPABLE_TYPES",
]
