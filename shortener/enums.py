"""Shared enums for the URL shortener service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = [
    "HealthStatus",
    "RequestStatus",
    "Operation",
    "ErrorKind",
    "LogLevel",
    "LogStack",
    "LogPackage",
]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_str(cls, value: str) -> "HealthStatus":
        """Safely parse from string, falling back to UNHEALTHY for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNHEALTHY


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    GONE = "gone"
    CONFLICT = "conflict"
    ERROR = "error"

    @classmethod
    def from_str(cls, value: str) -> "RequestStatus":
        """Safely parse from string, falling back to ERROR for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.ERROR


class Operation(StrEnum):
    """Core operations reported to observers."""

    CREATE = "create"
    RESOLVE = "resolve"
    STATS = "stats"
    STATS_ALL = "stats_all"


class ErrorKind(StrEnum):
    """Closed set of failures raised by the core."""

    INVALID_URL = "invalid_url"
    INVALID_VALIDITY = "invalid_validity"
    INVALID_ALIAS_FORMAT = "invalid_alias_format"
    ALIAS_ALREADY_EXISTS = "alias_already_exists"
    ALIAS_NOT_FOUND = "alias_not_found"
    ALIAS_EXPIRED = "alias_expired"
    ALIAS_INACTIVE = "alias_inactive"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def request_status(self) -> RequestStatus:
        return _KIND_TO_STATUS[self]


_KIND_TO_STATUS = {
    ErrorKind.INVALID_URL: RequestStatus.VALIDATION_ERROR,
    ErrorKind.INVALID_VALIDITY: RequestStatus.VALIDATION_ERROR,
    ErrorKind.INVALID_ALIAS_FORMAT: RequestStatus.VALIDATION_ERROR,
    ErrorKind.ALIAS_ALREADY_EXISTS: RequestStatus.CONFLICT,
    ErrorKind.ALIAS_NOT_FOUND: RequestStatus.NOT_FOUND,
    ErrorKind.ALIAS_EXPIRED: RequestStatus.GONE,
    ErrorKind.ALIAS_INACTIVE: RequestStatus.GONE,
    ErrorKind.STORE_UNAVAILABLE: RequestStatus.ERROR,
}


class LogLevel(StrEnum):
    """Levels accepted by the remote log collector."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class LogStack(StrEnum):
    BACKEND = "backend"
    FRONTEND = "frontend"


class LogPackage(StrEnum):
    """Package names accepted by the remote log collector."""

    # backend
    CACHE = "cache"
    CONTROLLER = "controller"
    CRON_JOB = "cron_job"
    DB = "db"
    DOMAIN = "domain"
    HANDLER = "handler"
    REPOSITORY = "repository"
    ROUTE = "route"
    SERVICE = "service"
    # frontend
    API = "api"
    COMPONENT = "component"
    HOOK = "hook"
    PAGE = "page"
    STATE = "state"
    STYLE = "style"
    # shared
    AUTH = "auth"
