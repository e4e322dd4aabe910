"""Rowing monitor access.

Modules:
    address — Normalize user-supplied monitor addresses to base URLs
    client  — DeviceClient (httpx) for sessions, status, mark-synced, delete
    errors  — NetworkError / ProtocolError
"""

from rowsync.device.address import normalize_address
from rowsync.device.client import DeviceClient, build_device_client
from rowsync.device.errors import DeviceError, NetworkError, ProtocolError

__all__ = [
    "DeviceClient",
    "DeviceError",
    "NetworkError",
    "ProtocolError",
    "build_device_client",
    "normalize_address",
]
