"""Domain models for the URL shortener service.

Records live in the in-memory alias store for the lifetime of the process.
They are plain dataclasses rather than ORM rows; each record owns its click
log together with the lock that serializes appends to it.

Data Model Layout
=================
::
    AliasRecord (one per short link)
    ├─ id (uuid4 hex, immutable)
    ├─ alias_text (unique, immutable)
    ├─ original_url (immutable)
    ├─ validity_minutes (> 0, immutable)
    ├─ created_at (UTC, immutable)
    ├─ expires_at (created_at + validity, immutable)
    ├─ is_active (mutable admin flag)
    └─ clicks ──► [ClickEvent, ...] (append-only)

    ClickEvent (one per successful redirect)
    ├─ id
    ├─ alias_text (back-reference)
    ├─ timestamp
    ├─ ip_address / user_agent / referrer ("direct" when absent)
    └─ geo ──► GeoLocation | None

How to Use
===========
**Step 1 — Create a record**::
    record = AliasRecord.create("abc123", "https://example.com", 30, now=utc_now())

**Step 2 — Check state**::
    record.is_resolvable(utc_now())   # active and not past expires_at
    record.is_active_now(utc_now())   # what stats report

**Step 3 — Read clicks safely**::
    for click in record.click_snapshot():
        print(click.timestamp, click.location)

Key Behaviours
===============
- A record is resolvable while ``now <= expires_at`` (the expiry instant
  itself still redirects), while stats report it active only while
  ``now < expires_at``.
- ``clicks`` only grows; readers take a snapshot under the record lock.
- ``location`` falls back to ``"Unknown"`` when geolocation produced nothing.
"""

import datetime
import threading
import uuid
from dataclasses import dataclass, field

__all__ = [
    "DIRECT_REFERRER",
    "UNKNOWN_LOCATION",
    "GeoLocation",
    "ClickEvent",
    "AliasRecord",
    "ClickSummary",
    "AliasStats",
    "CreatedAlias",
    "utc_now",
]

DIRECT_REFERRER = "direct"
UNKNOWN_LOCATION = "Unknown"


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class GeoLocation:
    country: str | None = None
    city: str | None = None

    @property
    def display(self) -> str:
        return f"{self.city or UNKNOWN_LOCATION}, {self.country or UNKNOWN_LOCATION}"


@dataclass(frozen=True)
class ClickEvent:
    alias_text: str
    timestamp: datetime.datetime
    ip_address: str
    user_agent: str
    referrer: str = DIRECT_REFERRER
    geo: GeoLocation | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def location(self) -> str:
        return self.geo.display if self.geo else UNKNOWN_LOCATION


@dataclass
class AliasRecord:
    id: str
    alias_text: str
    original_url: str
    validity_minutes: int
    created_at: datetime.datetime
    expires_at: datetime.datetime
    is_active: bool = True
    clicks: list[ClickEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @classmethod
    def create(
        cls,
        alias_text: str,
        original_url: str,
        validity_minutes: int,
        now: datetime.datetime,
    ) -> "AliasRecord":
        assert validity_minutes > 0, f"validity_minutes must be positive, got {validity_minutes!r}"
        return cls(
            id=uuid.uuid4().hex,
            alias_text=alias_text,
            original_url=original_url,
            validity_minutes=validity_minutes,
            created_at=now,
            expires_at=now + datetime.timedelta(minutes=validity_minutes),
        )

    def is_expired(self, now: datetime.datetime) -> bool:
        return now > self.expires_at

    def is_resolvable(self, now: datetime.datetime) -> bool:
        return self.is_active and not self.is_expired(now)

    def is_active_now(self, now: datetime.datetime) -> bool:
        return self.is_active and now < self.expires_at

    def append_click(self, click: ClickEvent) -> None:
        assert click.alias_text == self.alias_text, "click belongs to a different alias"
        with self._lock:
            self.clicks.append(click)

    def click_snapshot(self) -> tuple[ClickEvent, ...]:
        with self._lock:
            return tuple(self.clicks)

    def __repr__(self) -> str:
        return f"<AliasRecord(alias_text='{self.alias_text}', clicks={len(self.clicks)}, active={self.is_active})>"


@dataclass(frozen=True)
class ClickSummary:
    timestamp: datetime.datetime
    referrer: str
    location: str


@dataclass(frozen=True)
class AliasStats:
    """Public statistics view of one alias, computed at query time."""

    short_link: str
    original_url: str
    alias_text: str
    created_at: datetime.datetime
    expires_at: datetime.datetime
    total_clicks: int
    is_active_now: bool
    clicks: tuple[ClickSummary, ...]


@dataclass(frozen=True)
class CreatedAlias:
    alias_text: str
    short_link: str
    expires_at: datetime.datetime
