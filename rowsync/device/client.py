"""HTTP client for the rowing monitor.

The monitor exposes a small JSON API on the local network:

    GET    api/status               — Online flag, workout-in-progress, live counters
    GET    api/sessions             — Summaries of all recorded sessions
    GET    api/sessions/{id}        — One session with HR / power / speed samples
    POST   api/sessions/{id}/synced — Mark a session as copied to the health store
    DELETE api/sessions/{id}        — Delete a session from the monitor

Every call is attempted exactly once.  Transport failures surface as
``NetworkError``; unexpected status codes and malformed payloads surface as
``ProtocolError``.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from rowsync.config import Settings, get_settings
from rowsync.device.address import normalize_address
from rowsync.device.errors import NetworkError, ProtocolError
from rowsync.models.base import DeviceModel
from rowsync.models.device import (
    Ack,
    DeviceStatus,
    SessionDetail,
    SessionsResponse,
    SessionSummary,
)

logger = logging.getLogger("rowsync.device.client")

ModelT = TypeVar("ModelT", bound=DeviceModel)

# The monitor only recognizes POST bodies that carry a content type
_EMPTY_JSON_BODY = {"content": b"", "headers": {"Content-Type": "application/json"}}


class DeviceClient:
    """Client bound to a single monitor base URL.

    Instances are cheap and immutable with respect to their address; to talk
    to a different monitor, build a new client with ``build_device_client``.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:    Normalized monitor base URL (see ``normalize_address``).
            http_client: Optional pre-configured httpx client (for testing).
                         Must already carry ``base_url``.
            timeout:     Timeouts for the client created when none is injected.
        """
        self.base_url = base_url
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    # ------------------------------------------------------------------
    # Monitor API
    # ------------------------------------------------------------------

    async def get_status(self) -> DeviceStatus:
        payload = await self._request("GET", "api/status")
        return self._parse(DeviceStatus, payload)

    async def list_sessions(self) -> list[SessionSummary]:
        payload = await self._request("GET", "api/sessions")
        return self._parse(SessionsResponse, payload).sessions

    async def get_detail(self, session_id: int) -> SessionDetail:
        payload = await self._request("GET", f"api/sessions/{session_id}")
        detail = self._parse(SessionDetail, payload)
        logger.debug(
            "Fetched session %d: %d HR, %d power, %d speed samples",
            session_id,
            len(detail.heart_rate_samples),
            len(detail.power_samples),
            len(detail.speed_samples),
        )
        return detail

    async def mark_synced(self, session_id: int) -> Ack:
        payload = await self._request(
            "POST", f"api/sessions/{session_id}/synced", **_EMPTY_JSON_BODY
        )
        return self._parse(Ack, payload)

    async def delete_session(self, session_id: int) -> Ack:
        payload = await self._request("DELETE", f"api/sessions/{session_id}")
        return self._parse(Ack, payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            NetworkError:  On connection failures and timeouts.
            ProtocolError: On non-2xx responses or a non-JSON body.
        """
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProtocolError(
                f"{method} {path} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{method} {path} timed out") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Could not reach {self.base_url}: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse(model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(
                f"Unexpected {model.__name__} payload: {exc.error_count()} invalid field(s)"
            ) from exc


def build_device_client(address: str, settings: Settings | None = None) -> DeviceClient:
    """Build a client for the monitor at ``address``.

    Pure with respect to the address: the same input always yields a client
    for the same normalized base URL, and no shared state is touched.

    Raises:
        ValueError: If the address is empty.
    """
    s = settings or get_settings()
    base_url = normalize_address(address)
    timeout = httpx.Timeout(
        s.device_read_timeout_s,
        connect=s.device_connect_timeout_s,
        write=s.device_write_timeout_s,
    )
    logger.info("Device client configured for %s", base_url)
    return DeviceClient(base_url, timeout=timeout)
