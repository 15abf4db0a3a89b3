"""SolisCloud API client for reading and writing inverter settings."""
from __future__ import annotations

import asyncio
import base64
from datetime import datetime, timezone
import hashlib
import hmac
import json
import logging
from typing import Any

import aiohttp

from ..const import REQUEST_TIMEOUT, SOLISCLOUD_URL

_LOGGER = logging.getLogger(__name__)

ERROR_MESSAGE = "ERROR"


class SolisCloudError(Exception):
    """Raised when the SolisCloud API cannot be reached or rejects a request."""


class SolisCloudClient:
    """Signed JSON client for the SolisCloud platform API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        api_secret: str,
        inverter_serial: str,
        *,
        base_url: str = SOLISCLOUD_URL,
    ) -> None:
        """Initialize the client."""
        self._session = session
        self._api_key = api_key
        self._api_secret = api_secret
        self.inverter_serial = inverter_serial
        self._base_url = base_url

    def _sign(self, path: str, content: str, request_date: str) -> dict[str, str]:
        content_md5 = base64.b64encode(
            hashlib.md5(content.encode("utf-8")).digest()
        ).decode("ascii")
        payload = f"POST\n{content_md5}\napplication/json\n{request_date}\n{path}"
        signature = base64.b64encode(
            hmac.new(
                self._api_secret.encode("utf-8"),
                payload.encode("utf-8"),
                hashlib.sha1,
            ).digest()
        ).decode("ascii")
        return {
            "Content-MD5": content_md5,
            "Content-Type": "application/json;charset=UTF-8",
            "Date": request_date,
            "Time": request_date,
            "Authorization": f"API {self._api_key}:{signature}",
        }

    async def _post(self, version: int, resource: str, body: dict[str, Any]) -> Any:
        path = f"/v{version}/api/{resource}"
        content = json.dumps(body)
        request_date = datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")
        headers = self._sign(path, content, request_date)

        try:
            async with self._session.post(
                f"{self._base_url}{path}",
                data=content,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            ) as resp:
                if resp.status != 200:
                    raise SolisCloudError(f"{resource} returned status {resp.status}")
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            raise SolisCloudError(f"Error posting {resource}: {err}") from err

        if not isinstance(payload, dict):
            raise SolisCloudError(f"Unexpected {resource} response: {payload!r}")

        _LOGGER.debug("Posted %s: %s", path, content)
        return payload.get("data")

    async def async_read(self, cid: int) -> str | None:
        """Read a control value; unreadable values return None."""
        data = await self._post(
            2, "atRead", {"inverterSn": self.inverter_serial, "cid": int(cid)}
        )
        message = data.get("msg") if isinstance(data, dict) else None
        if not message:
            _LOGGER.warning("No data returned reading control state (CID = %s)", cid)
            return None
        if message == ERROR_MESSAGE:
            _LOGGER.warning("ERROR reading control state (CID = %s)", cid)
            return None
        return str(message)

    async def async_write(self, cid: int, value: str) -> None:
        """Send a control value."""
        await self._post(
            2,
            "control",
            {"inverterSn": self.inverter_serial, "cid": int(cid), "value": value},
        )

    async def async_inverter_detail(self) -> dict[str, Any]:
        """Return the inverter detail record (SOC and day energy totals)."""
        data = await self._post(1, "inverterDetail", {"sn": self.inverter_serial})
        if not isinstance(data, dict):
            raise SolisCloudError("No inverter detail returned")
        return data

