"""URL Shortener Service Layer - Core Business Logic

This module holds the alias lifecycle: creating short links, resolving them for
redirects while recording clicks, and projecting statistics.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    ShortenerService                         │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │  create()       │  │  resolve()      │  │ stats_for()  │ │
    │  │                 │  │                 │  │ stats_for_   │ │
    │  │ • Validate URL  │  │ • State checks  │  │   all()      │ │
    │  │ • Validity      │  │ • Geolocation   │  │ • Projection │ │
    │  │ • Allocate      │  │ • Append click  │  │              │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │ AliasAllocator  │  │   GeoLocator    │  │ OperationObserver│
    │  → AliasStore   │  │ (time-boxed)    │  │ (after each op) │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Redirect Flow
-------------
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐   missing   ┌───────────────┐
    │ store.get() ├────────────►│ AliasNotFound │
    └──────┬──────┘             └───────────────┘
           ▼
    ┌─────────────┐ now > exp   ┌───────────────┐
    │ expired?    ├────────────►│ AliasExpired  │
    └──────┬──────┘             └───────────────┘
           ▼
    ┌─────────────┐ inactive    ┌───────────────┐
    │ active?     ├────────────►│ AliasInactive │
    └──────┬──────┘             └───────────────┘
           ▼
    ┌─────────────┐
    │ geolocate   │  failure/timeout → "Unknown"
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ append click│  failure → logged, redirect still succeeds
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ original URL│
    └─────────────┘

How to Use
===========
**Step 1 — Build the service**::
    store = InMemoryAliasStore()
    service = ShortenerService(store, get_settings())

**Step 2 — Create and resolve**::
    created = await service.create("https://example.com", validity_minutes=5, requested_alias="abc123")
    target = await service.resolve("abc123", "203.0.113.7", "curl/8.0", None)

**Step 3 — Read statistics**::
    stats = await service.stats_for("abc123")
    print(stats.total_clicks, stats.is_active_now)

Key Behaviours
===============
- Failures are raised as ``ShortenerError`` subclasses carrying an ``ErrorKind``.
- The observer is notified exactly once per operation, after it completes.
- The click is appended before ``resolve`` returns, so stats read afterwards
  include it.
- Expired aliases keep their record and clicks; only redirects stop.
"""

import asyncio
import contextlib
import datetime
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from urllib.parse import urlparse

import validators
from prometheus_client import Counter

from shortener.allocator import AliasAllocator
from shortener.config import Settings
from shortener.enums import Operation, RequestStatus
from shortener.errors import (
    AliasExpired,
    AliasInactive,
    AliasNotFound,
    InvalidUrl,
    InvalidValidity,
    ShortenerError,
)
from shortener.geolocation import GeoLocator, NullGeoLocator
from shortener.models import (
    DIRECT_REFERRER,
    AliasRecord,
    AliasStats,
    ClickEvent,
    ClickSummary,
    CreatedAlias,
    GeoLocation,
    utc_now,
)
from shortener.observers import LoggingObserver, OperationObserver, OperationOutcome
from shortener.store import AliasStore

__all__ = ["ShortenerService", "validate_url"]

logger = logging.getLogger("shortener.service")

ALLOWED_SCHEMES = ("http", "https")
LATEST_EXPIRY = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)
ONE_MINUTE = datetime.timedelta(minutes=1)

CLICKS_RECORDED_TOTAL = Counter(
    "shortener_clicks_recorded_total",
    "Clicks appended to alias records",
)
CLICK_RECORD_FAILURES_TOTAL = Counter(
    "shortener_click_record_failures_total",
    "Redirects whose click could not be recorded",
)
GEOLOCATION_FAILURES_TOTAL = Counter(
    "shortener_geolocation_failures_total",
    "Geolocation lookups that failed or timed out",
)


def validate_url(url: str | None) -> str:
    """Return the trimmed URL or raise InvalidUrl."""
    if url is None or not url.strip():
        raise InvalidUrl("URL is required")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidUrl()
    # validators rejects "_" in host labels; browsers accept it.
    candidate = parsed._replace(netloc=parsed.netloc.replace("_", "-")).geturl()
    if not validators.url(candidate, simple_host=True, strict_query=False):
        raise InvalidUrl()
    return url


@dataclass
class _Tracker:
    alias_text: str | None = None
    message: str = ""


class ShortenerService:
    """Alias lifecycle and redirect/analytics engine."""

    def __init__(
        self,
        store: AliasStore,
        settings: Settings,
        allocator: AliasAllocator | None = None,
        geolocator: GeoLocator | None = None,
        observer: OperationObserver | None = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._allocator = allocator or AliasAllocator.from_settings(store, settings)
        self._geolocator = geolocator or NullGeoLocator()
        self._observer = observer or LoggingObserver(logger)
        self._clock = clock

    @property
    def store(self) -> AliasStore:
        return self._store

    def short_link(self, alias_text: str) -> str:
        return f"{self._settings.BASE_URL.rstrip('/')}/{alias_text}"

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create(
        self,
        original_url: str | None,
        validity_minutes: int | None = None,
        requested_alias: str | None = None,
    ) -> CreatedAlias:
        """Create a short link.

        Args:
            original_url: Absolute http(s) URL to shorten.
            validity_minutes: Lifetime in minutes; defaults to DEFAULT_VALIDITY_MINUTES.
            requested_alias: Custom alias text, or None to auto-generate.

        Returns:
            CreatedAlias: Alias text, composed short link and expiry.

        Raises:
            InvalidUrl, InvalidValidity, InvalidAliasFormat, AliasAlreadyExists,
            StoreUnavailable
        """
        with self._observe(Operation.CREATE, requested_alias) as tracker:
            url = validate_url(original_url)
            now = self._clock()
            validity = self._resolve_validity(validity_minutes, now)

            def build(alias_text: str) -> AliasRecord:
                return AliasRecord.create(alias_text, url, validity, now)

            record = await self._allocator.allocate(requested_alias, build)
            tracker.alias_text = record.alias_text
            tracker.message = f"-> {record.original_url}"
            return CreatedAlias(
                alias_text=record.alias_text,
                short_link=self.short_link(record.alias_text),
                expires_at=record.expires_at,
            )

    async def resolve(
        self,
        alias_text: str,
        ip_address: str | None,
        user_agent: str | None,
        referrer: str | None,
    ) -> str:
        """Resolve an alias to its target URL and record the click.

        Raises:
            AliasNotFound, AliasExpired, AliasInactive, StoreUnavailable
        """
        with self._observe(Operation.RESOLVE, alias_text) as tracker:
            record = await self._store.get(alias_text)
            now = self._clock()
            if record is None:
                raise AliasNotFound(alias_text=alias_text)
            if record.is_expired(now):
                raise AliasExpired(alias_text=alias_text)
            if not record.is_active:
                raise AliasInactive(alias_text=alias_text)

            await self._record_click(record, ip_address, user_agent, referrer, now)
            tracker.message = f"-> {record.original_url}"
            return record.original_url

    async def stats_for(self, alias_text: str) -> AliasStats:
        with self._observe(Operation.STATS, alias_text):
            record = await self._store.get(alias_text)
            if record is None:
                raise AliasNotFound(alias_text=alias_text)
            return self._project(record, self._clock())

    async def stats_for_all(self, active_only: bool = False) -> list[AliasStats]:
        with self._observe(Operation.STATS_ALL) as tracker:
            now = self._clock()
            records = await self._store.list_active(now) if active_only else await self._store.list_all()
            results: list[AliasStats] = []
            for record in records:
                try:
                    results.append(self._project(record, now))
                except Exception:
                    logger.exception(f"Failed to project stats for {record.alias_text}")
            tracker.message = f"{len(results)} aliases"
            return results

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    def _resolve_validity(self, validity_minutes: int | None, now: datetime.datetime) -> int:
        if validity_minutes is None:
            return self._settings.DEFAULT_VALIDITY_MINUTES
        if isinstance(validity_minutes, bool) or not isinstance(validity_minutes, int) or validity_minutes <= 0:
            raise InvalidValidity()
        limit = self._settings.MAX_VALIDITY_MINUTES
        if limit is not None and validity_minutes > limit:
            raise InvalidValidity(f"Validity must not exceed {limit} minutes")
        if validity_minutes > (LATEST_EXPIRY - now) // ONE_MINUTE:
            raise InvalidValidity("Validity is too large to compute an expiry time")
        return validity_minutes

    async def _record_click(
        self,
        record: AliasRecord,
        ip_address: str | None,
        user_agent: str | None,
        referrer: str | None,
        now: datetime.datetime,
    ) -> None:
        geo = await self._locate(ip_address)
        click = ClickEvent(
            alias_text=record.alias_text,
            timestamp=now,
            ip_address=ip_address or "unknown",
            user_agent=user_agent or "unknown",
            referrer=referrer or DIRECT_REFERRER,
            geo=geo,
        )
        try:
            appended = await self._store.append_click(record.alias_text, click)
        except Exception as exc:
            CLICK_RECORD_FAILURES_TOTAL.inc()
            logger.error(f"Failed to record click for {record.alias_text}: {exc}")
            return

        if not appended:
            CLICK_RECORD_FAILURES_TOTAL.inc()
            logger.warning(f"Click for {record.alias_text} was not recorded")
            return
        CLICKS_RECORDED_TOTAL.inc()
        logger.debug(f"Click recorded for {record.alias_text} from {click.location}")

    async def _locate(self, ip_address: str | None) -> GeoLocation | None:
        if not ip_address:
            return None
        try:
            return await asyncio.wait_for(
                self._geolocator.lookup(ip_address),
                timeout=self._settings.GEOLOCATION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            GEOLOCATION_FAILURES_TOTAL.inc()
            logger.warning(f"Geolocation lookup timed out for {ip_address}")
        except Exception as exc:
            GEOLOCATION_FAILURES_TOTAL.inc()
            logger.warning(f"Geolocation lookup failed for {ip_address}: {exc}")
        return None

    def _project(self, record: AliasRecord, now: datetime.datetime) -> AliasStats:
        clicks = record.click_snapshot()
        return AliasStats(
            short_link=self.short_link(record.alias_text),
            original_url=record.original_url,
            alias_text=record.alias_text,
            created_at=record.created_at,
            expires_at=record.expires_at,
            total_clicks=len(clicks),
            is_active_now=record.is_active_now(now),
            clicks=tuple(
                ClickSummary(timestamp=click.timestamp, referrer=click.referrer, location=click.location)
                for click in clicks
            ),
        )

    @contextlib.contextmanager
    def _observe(self, operation: Operation, alias_text: str | None = None) -> Iterator[_Tracker]:
        start_time = time.perf_counter()
        tracker = _Tracker(alias_text=alias_text)
        status = RequestStatus.SUCCESS
        error_kind = None
        try:
            yield tracker
        except ShortenerError as exc:
            status = exc.kind.request_status
            error_kind = exc.kind
            tracker.message = exc.message
            raise
        except BaseException as exc:
            status = RequestStatus.ERROR
            tracker.message = f"{type(exc).__name__}: {exc}"
            raise
        finally:
            outcome = OperationOutcome(
                operation=operation,
                status=status,
                duration_seconds=time.perf_counter() - start_time,
                alias_text=tracker.alias_text,
                error_kind=error_kind,
                message=tracker.message,
            )
            try:
                self._observer.notify(outcome)
            except Exception:
                logger.exception(f"Observer failed for {operation}")
