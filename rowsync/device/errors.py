"""Exceptions raised by the rowing monitor client."""

from __future__ import annotations


class DeviceError(Exception):
    """Base class for rowing monitor failures."""


class NetworkError(DeviceError):
    """The monitor was unreachable, timed out, or the connection broke."""


class ProtocolError(DeviceError):
    """The monitor answered with an unexpected status or a malformed payload."""
