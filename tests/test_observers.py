"""Operation observer tests: logging, metrics and remote shipping."""

import asyncio
import json
import logging

import httpx
import pytest
from prometheus_client import REGISTRY

from shortener.enums import ErrorKind, LogLevel, Operation, RequestStatus
from shortener.observers import (
    CompositeObserver,
    LoggingObserver,
    MetricsObserver,
    OperationObserver,
    OperationOutcome,
    RemoteLogObserver,
)
from shortener.remote_log import RemoteLogClient

SUCCESS = OperationOutcome(Operation.CREATE, RequestStatus.SUCCESS, 0.004, alias_text="abc123", message="-> https://example.com")
NOT_FOUND = OperationOutcome(
    Operation.RESOLVE,
    RequestStatus.NOT_FOUND,
    0.001,
    alias_text="ghost",
    error_kind=ErrorKind.ALIAS_NOT_FOUND,
    message="Short URL not found",
)
FAILURE = OperationOutcome(Operation.STATS_ALL, RequestStatus.ERROR, 0.002, error_kind=ErrorKind.STORE_UNAVAILABLE)


class Collecting(OperationObserver):
    def __init__(self) -> None:
        self.seen: list[OperationOutcome] = []

    def notify(self, outcome: OperationOutcome) -> None:
        self.seen.append(outcome)


class Exploding(OperationObserver):
    def notify(self, outcome: OperationOutcome) -> None:
        raise RuntimeError("observer down")


def test_outcome_levels() -> None:
    assert SUCCESS.level is LogLevel.INFO
    assert NOT_FOUND.level is LogLevel.WARN
    assert FAILURE.level is LogLevel.ERROR


def test_outcome_describe() -> None:
    assert SUCCESS.describe() == "create abc123 success in 4.0ms: -> https://example.com"
    assert FAILURE.describe().startswith("stats_all error in")


def test_logging_observer_uses_outcome_level(caplog: pytest.LogCaptureFixture) -> None:
    observer = LoggingObserver(logging.getLogger("shortener.test"))
    with caplog.at_level(logging.INFO, logger="shortener.test"):
        observer.notify(SUCCESS)
        observer.notify(NOT_FOUND)

    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]
    assert caplog.records[1].short_code == "ghost"
    assert caplog.records[1].error_kind == "alias_not_found"


def test_metrics_observer_counts_by_operation_and_status() -> None:
    labels = {"operation": "resolve", "status": "not_found"}
    before = REGISTRY.get_sample_value("shortener_operations_total", labels) or 0.0

    MetricsObserver().notify(NOT_FOUND)

    assert REGISTRY.get_sample_value("shortener_operations_total", labels) == before + 1


def test_composite_isolates_failing_observer(caplog: pytest.LogCaptureFixture) -> None:
    first, last = Collecting(), Collecting()
    composite = CompositeObserver([first, Exploding(), last])

    with caplog.at_level(logging.ERROR, logger="shortener.observers"):
        composite.notify(SUCCESS)

    assert first.seen == [SUCCESS]
    assert last.seen == [SUCCESS]
    assert "Exploding" in caplog.text
    assert len(composite.observers) == 3


@pytest.mark.asyncio
async def test_remote_observer_ships_in_background() -> None:
    shipped: list[dict] = []
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        shipped.append(json.loads(request.content))
        return httpx.Response(200, json={"logID": "1", "message": "ok"})

    client = RemoteLogClient(
        "http://collector.test",
        access_token="token",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    observer = RemoteLogObserver(client)

    observer.notify(NOT_FOUND)
    assert observer.pending == 1
    assert shipped == []

    release.set()
    await observer.aclose()

    assert observer.pending == 0
    assert shipped == [
        {"stack": "backend", "level": "warn", "package": "service", "message": NOT_FOUND.describe()},
    ]


@pytest.mark.asyncio
async def test_remote_observer_swallows_collector_failures() -> None:
    client = RemoteLogClient(
        "http://collector.test",
        access_token="token",
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
    )
    observer = RemoteLogObserver(client)

    observer.notify(FAILURE)
    await observer.drain()

    assert observer.pending == 0
    await observer.aclose()


def test_remote_observer_without_event_loop_drops_line() -> None:
    client = RemoteLogClient("http://collector.test", access_token="token")
    observer = RemoteLogObserver(client)

    observer.notify(SUCCESS)

    assert observer.pending == 0


class CrashingClient:
    def __init__(self) -> None:
        self.closed = False

    async def log(self, stack: str, level: str, package: str, message: str) -> dict:
        raise RuntimeError("serializer bug")

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_remote_observer_contains_unexpected_failures(caplog: pytest.LogCaptureFixture) -> None:
    client = CrashingClient()
    observer = RemoteLogObserver(client)

    with caplog.at_level(logging.DEBUG, logger="shortener.observers"):
        observer.notify(SUCCESS)
        tasks = set(observer._pending)
        await observer.aclose()

    assert observer.pending == 0
    assert client.closed is True
    assert all(task.done() and task.exception() is None for task in tasks)
    assert "serializer bug" in caplog.text
