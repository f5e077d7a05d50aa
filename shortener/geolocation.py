"""Best-effort IP geolocation used when recording clicks."""

import abc
import ipaddress
import logging

import httpx

from shortener.config import Settings
from shortener.models import GeoLocation

__all__ = ["GeoLocator", "NullGeoLocator", "HttpGeoLocator", "build_geolocator"]

logger = logging.getLogger("shortener.geolocation")


class GeoLocator(abc.ABC):
    @abc.abstractmethod
    async def lookup(self, ip_address: str) -> GeoLocation | None:
        """Resolve ``ip_address`` to a location, or None when unknown."""

    async def aclose(self) -> None:
        return None


class NullGeoLocator(GeoLocator):
    async def lookup(self, ip_address: str) -> GeoLocation | None:
        return None


def _is_public_ip(ip_address: str) -> bool:
    try:
        parsed = ipaddress.ip_address(ip_address)
    except ValueError:
        return False
    return parsed.is_global


class HttpGeoLocator(GeoLocator):
    """Looks addresses up against an ip-api style JSON endpoint.

    ``url_template`` must contain an ``{ip}`` placeholder, e.g.
    ``http://ip-api.com/json/{ip}?fields=status,country,city``. Private,
    loopback and malformed addresses are answered locally with None.
    """

    def __init__(self, url_template: str, timeout: float = 1.0, client: httpx.AsyncClient | None = None) -> None:
        if "{ip}" not in url_template:
            raise ValueError("GEOLOCATION_URL must contain an '{ip}' placeholder")
        self._url_template = url_template
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def lookup(self, ip_address: str) -> GeoLocation | None:
        if not _is_public_ip(ip_address):
            return None
        try:
            response = await self._client.get(self._url_template.format(ip=ip_address))
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug(f"Geolocation lookup failed for {ip_address}: {exc}")
            return None

        if not isinstance(payload, dict) or payload.get("status") == "fail":
            return None
        country = payload.get("country") or payload.get("countryCode")
        city = payload.get("city")
        if not country and not city:
            return None
        return GeoLocation(country=country, city=city)

    async def aclose(self) -> None:
        await self._client.aclose()


def build_geolocator(settings: Settings) -> GeoLocator:
    if not settings.GEOLOCATION_URL:
        return NullGeoLocator()
    return HttpGeoLocator(settings.GEOLOCATION_URL, timeout=settings.GEOLOCATION_TIMEOUT_SECONDS)
