from __future__ import annotations
import logging, time
from typing import Callable, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from evenlink.bluez import BlueZManager
from evenlink.errors import EvenLinkError, PermissionDenied, QueryFailed
from evenlink.metrics import QueryMetrics
from evenlink.query import TARGET_NAME_PREFIX, BluetoothManager, query_filtered_paired_devices

logger = logging.getLogger("evenlink.api")

app = FastAPI(title="EvenLink API", version="0.1.0")

# Replaced in tests and by embedders that bring their own stack.
manager_factory: Callable[[], BluetoothManager] = BlueZManager
metrics: Optional[QueryMetrics] = None


@app.exception_handler(PermissionDenied)
async def permission_denied(_: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content=exc.to_dict())


@app.exception_handler(QueryFailed)
async def query_failed(_: Request, exc: QueryFailed):
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "ok", "time": time.time()}


async def _query(prefix: str):
    try:
        return await query_filtered_paired_devices(
            manager_factory(),
            prefix=prefix,
            metrics=metrics,
        )
    except EvenLinkError as exc:
        logger.warning("paired device query rejected: %s (%s)", exc.message, exc.code)
        raise


@app.get("/paired-devices")
async def paired_devices(
    prefix: str = Query(TARGET_NAME_PREFIX, min_length=1, description="Device name prefix"),
):
    """Bonded BLE devices whose name starts with ``prefix``.

    Responds 403 with ``E_BLUETOOTH_PERMISSION`` when Bluetooth access is not
    authorized and 500 with ``E_BLUETOOTH_ERROR`` on any other failure.
    """
    devices = await _query(prefix)
    return [device.to_dict() for device in devices]


@app.get("/paired-devices/client")
async def paired_devices_client(
    prefix: str = Query(TARGET_NAME_PREFIX, min_length=1, description="Device name prefix"),
):
    devices = await _query(prefix)
    return [device.to_client() for device in devices]
