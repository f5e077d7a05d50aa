"""HTTP client for the remote structured-logging collector.

The collector accepts ``POST <base>/logs`` with a bearer token and a JSON body
``{"stack", "level", "package", "message"}`` and answers ``{"logID", "message"}``.

How to Use
===========
**Step 1 — Create a client**::
    client = RemoteLogClient("http://collector.local/evaluation-service", token)

**Step 2 — Ship a line**::
    await client.log("backend", "info", "service", "Short URL created")

Key Behaviours
===============
- Stack, level and package are validated locally against the collector's
  vocabulary before any request is made.
- Every failure (validation, missing token, transport, non-2xx) surfaces as
  :class:`RemoteLogError`; callers decide whether to swallow it.
- Requests are bounded by the configured timeout.
"""

import logging
from typing import Any

import httpx

from shortener.enums import LogLevel, LogPackage, LogStack

__all__ = ["RemoteLogClient", "RemoteLogError"]

logger = logging.getLogger("shortener.remote_log")


class RemoteLogError(Exception):
    pass


class RemoteLogClient:
    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    async def log(self, stack: str, level: str, package: str, message: str) -> dict[str, Any]:
        try:
            payload = {
                "stack": LogStack(stack).value,
                "level": LogLevel(level).value,
                "package": LogPackage(package).value,
                "message": message,
            }
        except ValueError as exc:
            raise RemoteLogError(f"Logging failed: {exc}") from exc

        if not self._access_token:
            raise RemoteLogError("Logging failed: access token not set")

        try:
            response = await self._client.post(
                f"{self._base_url}/logs",
                json=payload,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            raise RemoteLogError(f"Logging failed: {detail}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteLogError(f"Logging failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"
