"""Rowing monitor address normalization."""

from __future__ import annotations

_SCHEMES = ("http://", "https://")


def normalize_address(raw: str) -> str:
    """Turn a user-supplied address into a base URL for the monitor API.

    ``"192.168.4.1"`` becomes ``"http://192.168.4.1/"``.  A trailing slash is
    only appended when the address has no query component.  Applying the
    function to its own output returns it unchanged.

    Raises:
        ValueError: If the address is empty.
    """
    normalized = raw.strip()
    if not normalized:
        raise ValueError("Device address must not be empty")

    if not normalized.startswith(_SCHEMES):
        normalized = f"http://{normalized}"

    if not normalized.endswith("/") and "?" not in normalized:
        normalized = f"{normalized}/"

    return normalized
