"""Dependency injection with a singleton service manager.

This module wires the process-wide resources (settings, logger, alias store,
geolocator, observers and the shortener service) once, and exposes a
lightweight per-request context for handlers.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortener.config import Settings, get_settings
from shortener.geolocation import GeoLocator, build_geolocator
from shortener.observers import (
    CompositeObserver,
    LoggingObserver,
    MetricsObserver,
    OperationObserver,
    RemoteLogObserver,
)
from shortener.remote_log import RemoteLogClient
from shortener.service import ShortenerService
from shortener.store import InMemoryAliasStore


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    The alias store is the only shared mutable state in the service, so it and
    everything built around it are created once per process.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self.store = InMemoryAliasStore()
            self.geolocator = self._setup_geolocator()
            self.remote_log = self._setup_remote_log()
            self.observer = self._setup_observer()
            self.service = ShortenerService(
                self.store,
                self.settings,
                geolocator=self.geolocator,
                observer=self.observer,
            )
            self._initialized = True
            self.logger.info(f"{self.settings.APP_NAME} initialized ({self.settings.APP_ENV})")

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    def _setup_geolocator(self) -> GeoLocator:
        """Setup geolocation lookup; a null locator when no URL is configured."""
        return build_geolocator(self.settings)

    def _setup_remote_log(self) -> RemoteLogObserver | None:
        """Setup remote log shipping if a collector URL is configured."""
        if not self.settings.REMOTE_LOG_URL:
            return None
        client = RemoteLogClient(
            self.settings.REMOTE_LOG_URL,
            access_token=self.settings.REMOTE_LOG_TOKEN,
            timeout=self.settings.REMOTE_LOG_TIMEOUT_SECONDS,
        )
        return RemoteLogObserver(client, stack=self.settings.REMOTE_LOG_STACK)

    def _setup_observer(self) -> OperationObserver:
        observers: list[OperationObserver] = [LoggingObserver(self.logger), MetricsObserver()]
        if self.remote_log is not None:
            observers.append(self.remote_log)
        return CompositeObserver(observers)

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if not self._initialized:
            return
        self.logger.info("Shutting down shared resources")
        await self.store.close()
        await self.geolocator.aclose()
        if self.remote_log is not None:
            await self.remote_log.aclose()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data plus access to shared resources.

    Attributes:
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        user_agent: Client user agent string
        client_ip: Peer address, or the first X-Forwarded-For hop when
            TRUST_FORWARDED_FOR is enabled
        referrer: Referer header, if any
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    referrer: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    def add_tag(self, tag: str) -> None:
        """Add a tag to the request context."""
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    """Get the singleton service manager, initializing it on first use."""
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


def _client_ip(request: Request, trust_forwarded: bool = False) -> Optional[str]:
    if trust_forwarded:
        first_hop = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else None


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    """Build the request context from headers and the shared manager."""
    return RequestContext(
        service_manager=manager,
        trace_id=request.headers.get("x-trace-id"),
        user_agent=request.headers.get("user-agent"),
        client_ip=_client_ip(request, manager.settings.TRUST_FORWARDED_FOR),
        referrer=request.headers.get("referer") or request.headers.get("referrer"),
    )


async def get_shortener_service(manager: ServiceManager = Depends(get_service_manager)) -> ShortenerService:
    return manager.service
