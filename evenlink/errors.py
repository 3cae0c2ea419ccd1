"""Error taxonomy for the paired-device query."""
from __future__ import annotations

from typing import Any, Dict

PERMISSION_DENIED_CODE = "E_BLUETOOTH_PERMISSION"
QUERY_FAILED_CODE = "E_BLUETOOTH_ERROR"
PERMISSION_DENIED_MESSAGE = "Missing Bluetooth permission"


class BluetoothAccessError(Exception):
    """Raised by a backend when the OS refuses a Bluetooth read.

    Never escapes the query service: it is either absorbed or converted into
    :class:`PermissionDenied`.
    """


class EvenLinkError(Exception):
    """Base class for errors surfaced to callers of the query."""

    code = "E_EVENLINK"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class PermissionDenied(EvenLinkError):
    """The caller lacks runtime authorization for Bluetooth access."""

    code = PERMISSION_DENIED_CODE

    def __init__(self, message: str = PERMISSION_DENIED_MESSAGE) -> None:
        super().__init__(message)


class QueryFailed(EvenLinkError):
    """Unexpected failure while reading the Bluetooth service."""

    code = QUERY_FAILED_CODE


__all__ = [
    "BluetoothAccessError",
    "EvenLinkError",
    "PermissionDenied",
    "QueryFailed",
    "PERMISSION_DENIED_CODE",
    "QUERY_FAILED_CODE",
    "PERMISSION_DENIED_MESSAGE",
]
