"""Simple smoke test to ensure the model types import and behave."""
from evenlink.models import Authorized, BondedDevice, Denied, DeviceType, PairedDevice, guard_sync
from evenlink.errors import BluetoothAccessError


def test_imports():
    device = BondedDevice(address="00:11:22:33:44:55", name="Even G1_7_L", device_type=DeviceType.LE)
    record = PairedDevice(name="", address=device.address)
    assert device.device_type.ble_capable
    assert not DeviceType.CLASSIC.ble_capable
    assert record.to_client() == {"id": "00:11:22:33:44:55", "name": None, "isConnected": False}


def test_guard_sync_folds_access_errors():
    def refuse():
        raise BluetoothAccessError("no")

    assert guard_sync(lambda: 5) == Authorized(5)
    assert guard_sync(refuse) == Denied("no")


if __name__ == "__main__":
    test_imports()
    test_guard_sync_folds_access_errors()
    print("models import smoke test: OK")
