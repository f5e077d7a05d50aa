"""GET /{shortcode} redirect tests."""

import pytest
from httpx import AsyncClient

from shortener.config import get_settings
from shortener.dependencies import get_shortener_service
from shortener.geolocation import GeoLocator
from shortener.main import app
from shortener.models import GeoLocation
from shortener.service import ShortenerService


async def _create(client: AsyncClient, url: str, shortcode: str, validity: int | None = None) -> None:
    payload = {"url": url, "shortcode": shortcode}
    if validity is not None:
        payload["validity"] = validity
    response = await client.post("/shorturls", json=payload)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient) -> None:
    await _create(client, "https://www.google.com", "ggl")

    response = await client.get("/ggl", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "https://www.google.com"


@pytest.mark.asyncio
async def test_redirect_unknown_code(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "message": "Short URL not found"}


@pytest.mark.asyncio
async def test_redirect_expired_code(client: AsyncClient, clock) -> None:
    await _create(client, "https://www.example.com", "brief", validity=1)
    clock.advance(seconds=61)

    response = await client.get("/brief", follow_redirects=False)

    assert response.status_code == 410
    assert response.json() == {"error": "Gone", "message": "Short URL has expired"}


@pytest.mark.asyncio
async def test_redirect_inactive_code(client: AsyncClient, store) -> None:
    await _create(client, "https://www.example.com", "paused")
    await store.set_active("paused", False)

    response = await client.get("/paused", follow_redirects=False)

    assert response.status_code == 410
    assert response.json()["message"] == "Short URL is no longer active"


@pytest.mark.asyncio
async def test_redirect_records_click_details(client: AsyncClient) -> None:
    await _create(client, "https://www.python.org", "py")

    await client.get("/py", follow_redirects=False, headers={"Referer": "https://news.example/item"})
    await client.get("/py", follow_redirects=False, headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})

    stats = (await client.get("/shorturls/py")).json()
    assert stats["totalClicks"] == 2
    assert [c["referrer"] for c in stats["clicks"]] == ["https://news.example/item", "direct"]
    assert all(c["location"] == "Unknown" for c in stats["clicks"])


class RecordingGeoLocator(GeoLocator):
    def __init__(self) -> None:
        self.seen: list[str] = []

    async def lookup(self, ip_address: str) -> GeoLocation | None:
        self.seen.append(ip_address)
        return GeoLocation(country="Japan", city="Osaka")


@pytest.mark.asyncio
async def test_redirect_ignores_forwarded_header_by_default(client: AsyncClient, store, settings, clock) -> None:
    locator = RecordingGeoLocator()
    service = ShortenerService(store, settings, geolocator=locator, clock=clock)
    app.dependency_overrides[get_shortener_service] = lambda: service
    await _create(client, "https://www.example.com", "spoof")

    await client.get("/spoof", follow_redirects=False, headers={"X-Forwarded-For": "198.51.100.7"})

    assert locator.seen == ["127.0.0.1"]


@pytest.mark.asyncio
async def test_redirect_uses_forwarded_ip_when_trusted(
    client: AsyncClient, store, settings, clock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(get_settings(), "TRUST_FORWARDED_FOR", True)
    locator = RecordingGeoLocator()
    service = ShortenerService(store, settings, geolocator=locator, clock=clock)
    app.dependency_overrides[get_shortener_service] = lambda: service
    await _create(client, "https://www.example.com", "geo")

    await client.get("/geo", follow_redirects=False, headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})

    assert locator.seen == ["198.51.100.7"]
    stats = (await client.get("/shorturls/geo")).json()
    assert stats["clicks"][0]["location"] == "Osaka, Japan"
