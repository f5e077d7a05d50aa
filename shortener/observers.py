"""Cross-cutting observers notified once per completed core operation.

The service never logs to the remote collector or updates metrics inline.
Instead it hands an :class:`OperationOutcome` to a single observer after each
operation finishes, whether it succeeded or failed.

Observer Fan-out
================
::
    ShortenerService
          │  notify(outcome)
          ▼
    CompositeObserver ──┬──► LoggingObserver    (stdlib logging)
                        ├──► MetricsObserver    (prometheus_client)
                        └──► RemoteLogObserver  (background task → collector)

Key Behaviours
===============
- ``CompositeObserver`` isolates observers: one raising never stops the others
  and never reaches the operation that triggered it.
- ``RemoteLogObserver`` schedules shipping as a background task and returns
  immediately; any shipping failure is logged at debug level and dropped.
- ``drain()`` waits (bounded) for in-flight shipments during shutdown.
"""

import abc
import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from prometheus_client import Counter, Histogram

from shortener.enums import ErrorKind, LogLevel, LogPackage, Operation, RequestStatus
from shortener.remote_log import RemoteLogClient, RemoteLogError

__all__ = [
    "OperationOutcome",
    "OperationObserver",
    "LoggingObserver",
    "MetricsObserver",
    "RemoteLogObserver",
    "CompositeObserver",
]

logger = logging.getLogger("shortener.observers")

OPERATIONS_TOTAL = Counter(
    "shortener_operations_total",
    "Completed core operations",
    ["operation", "status"],
)
OPERATION_DURATION = Histogram(
    "shortener_operation_duration_seconds",
    "Time taken by core operations",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


@dataclass(frozen=True)
class OperationOutcome:
    operation: Operation
    status: RequestStatus
    duration_seconds: float
    alias_text: str | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def level(self) -> LogLevel:
        if self.status is RequestStatus.SUCCESS:
            return LogLevel.INFO
        if self.status is RequestStatus.ERROR:
            return LogLevel.ERROR
        return LogLevel.WARN

    def describe(self) -> str:
        target = f" {self.alias_text}" if self.alias_text else ""
        text = f"{self.operation}{target} {self.status} in {self.duration_seconds * 1000:.1f}ms"
        return f"{text}: {self.message}" if self.message else text


class OperationObserver(abc.ABC):
    @abc.abstractmethod
    def notify(self, outcome: OperationOutcome) -> None:
        ...


_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LoggingObserver(OperationObserver):
    def __init__(self, log: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._log = log or logging.getLogger("shortener")

    def notify(self, outcome: OperationOutcome) -> None:
        self._log.log(
            _PY_LEVELS[outcome.level],
            outcome.describe(),
            extra={
                "operation": outcome.operation.value,
                "short_code": outcome.alias_text,
                "error_kind": outcome.error_kind.value if outcome.error_kind else None,
                "duration_ms": outcome.duration_seconds * 1000,
            },
        )


class MetricsObserver(OperationObserver):
    def notify(self, outcome: OperationOutcome) -> None:
        OPERATIONS_TOTAL.labels(operation=outcome.operation, status=outcome.status).inc()
        OPERATION_DURATION.labels(operation=outcome.operation).observe(outcome.duration_seconds)


class RemoteLogObserver(OperationObserver):
    """Ships outcomes to the remote collector without blocking the caller."""

    def __init__(self, client: RemoteLogClient, stack: str = "backend") -> None:
        self._client = client
        self._stack = stack
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def notify(self, outcome: OperationOutcome) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, remote log line dropped")
            return
        task = loop.create_task(self._ship(outcome))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _ship(self, outcome: OperationOutcome) -> None:
        try:
            await self._client.log(self._stack, outcome.level, LogPackage.SERVICE, outcome.describe())
        except RemoteLogError as exc:
            logger.debug(f"Remote log shipping failed: {exc}")
        except Exception as exc:
            logger.debug(f"Remote log shipping crashed: {type(exc).__name__}: {exc}", exc_info=True)

    async def drain(self, timeout: float = 5.0) -> None:
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()


class CompositeObserver(OperationObserver):
    def __init__(self, observers: Iterable[OperationObserver]) -> None:
        self._observers = list(observers)

    @property
    def observers(self) -> list[OperationObserver]:
        return list(self._observers)

    def notify(self, outcome: OperationOutcome) -> None:
        for observer in self._observers:
            try:
                observer.notify(outcome)
            except Exception:
                logger.exception(f"Observer {type(observer).__name__} failed")
