"""Pydantic schemas for request/response validation in the URL shortener.

Schema Hierarchy
=================
::
    ShortURLCreate (Input)
    ├─ url: str | None        (required; checked by the service → 400)
    ├─ validity: int | None   (strict int, minutes)
    └─ shortcode: str | None  (custom alias)

    ShortURLResponse (Output)
    ├─ shortLink: str
    └─ expiry: datetime

    URLStats (Output)
    ├─ shortLink, originalUrl, shortcode
    ├─ createdAt, expiresAt
    ├─ totalClicks, isActive
    └─ clicks: [ClickStats{timestamp, referrer, location}]

    HealthResponse (Output)
    ├─ status, timestamp, service
    └─ store

    ErrorResponse (Output)
    ├─ error: str
    └─ message: str

Key Behaviours
===============
- JSON keys are camelCase; Python attributes stay snake_case.
- ``validity`` is a strict integer: ``5.0``, ``"5"`` and ``true`` are rejected.
- An empty ``shortcode`` means "generate one for me".
- URL and alias format checks live in the service, so every caller of the core
  gets the same errors.
"""

import datetime

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator
from pydantic.alias_generators import to_camel

from shortener.enums import HealthStatus
from shortener.models import AliasStats, CreatedAlias

__all__ = [
    "ShortURLCreate",
    "ShortURLResponse",
    "ClickStats",
    "URLStats",
    "HealthResponse",
    "ErrorResponse",
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortURLCreate(BaseModel):
    url: str | None = None
    validity: StrictInt | None = None
    shortcode: str | None = None

    @field_validator("shortcode")
    @classmethod
    def empty_shortcode_is_absent(cls, v: str | None) -> str | None:
        return v or None


class ShortURLResponse(_CamelModel):
    short_link: str
    expiry: datetime.datetime

    @classmethod
    def from_created(cls, created: CreatedAlias) -> "ShortURLResponse":
        return cls(short_link=created.short_link, expiry=created.expires_at)


class ClickStats(_CamelModel):
    timestamp: datetime.datetime
    referrer: str
    location: str


class URLStats(_CamelModel):
    short_link: str
    original_url: str
    shortcode: str
    created_at: datetime.datetime
    expires_at: datetime.datetime
    total_clicks: int
    is_active: bool
    clicks: list[ClickStats]

    @classmethod
    def from_stats(cls, stats: AliasStats) -> "URLStats":
        return cls(
            short_link=stats.short_link,
            original_url=stats.original_url,
            shortcode=stats.alias_text,
            created_at=stats.created_at,
            expires_at=stats.expires_at,
            total_clicks=stats.total_clicks,
            is_active=stats.is_active_now,
            clicks=[
                ClickStats(timestamp=click.timestamp, referrer=click.referrer, location=click.location)
                for click in stats.clicks
            ],
        )


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: datetime.datetime
    service: str
    store: HealthStatus


class ErrorResponse(BaseModel):
    error: str
    message: str
