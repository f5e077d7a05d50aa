"""Alias store: the single piece of shared mutable state in the service.

The store maps alias text to :class:`~shortener.models.AliasRecord` and owns the
locking that makes its operations safe under concurrent request handling,
whether handlers run as event-loop tasks or in the threadpool.

Locking Layout
==============
::
    InMemoryAliasStore
    ├─ _lock ─────────► guards _records (insert, snapshot, flag update)
    └─ _records
        ├─ "abc123" ──► AliasRecord ── _lock ──► guards clicks
        ├─ "Xy9k2P" ──► AliasRecord ── _lock ──► guards clicks
        └─ ...

Flow Diagram — create_if_absent()
=================================
::
    ┌─────────────┐
    │ acquire     │
    │ store lock  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ alias text  │
    │ present?    │
    └──────┬──────┘
    ┌──────┴──────┐
    │ YES         │ NO
    ▼             ▼
┌──────────┐  ┌──────────┐
│ raise    │  │ factory()│
│ Already  │  │ insert   │
│ Exists   │  │ return   │
└──────────┘  └──────────┘

Key Behaviours
===============
- ``create_if_absent`` checks and inserts under one lock, so racing callers on
  the same alias resolve to exactly one winner.
- Click appends take only the owning record's lock; appends to different
  aliases never contend.
- ``list_all`` returns a snapshot list; the lock is not held while callers
  iterate it.
- After ``close()`` every operation raises ``StoreUnavailable``.
- The public methods are coroutines so a persistent backend can implement the
  same interface. The in-memory critical sections never await.

Multi-process deployments would need a shared backing store (or per-node alias
ranges) for uniqueness; this store only guarantees it within one process.
"""

import abc
import datetime
import logging
import threading
from collections.abc import Callable

from shortener.errors import AliasAlreadyExists, StoreUnavailable
from shortener.models import AliasRecord, ClickEvent

__all__ = ["AliasStore", "InMemoryAliasStore"]

logger = logging.getLogger("shortener.store")


class AliasStore(abc.ABC):
    """Contract every alias store backend implements."""

    @abc.abstractmethod
    async def create_if_absent(self, alias_text: str, factory: Callable[[], AliasRecord]) -> AliasRecord:
        """Insert ``factory()`` under ``alias_text`` unless the alias is taken.

        Raises:
            AliasAlreadyExists: If a record already uses ``alias_text``.
            StoreUnavailable: If the backend cannot serve the request.
        """

    @abc.abstractmethod
    async def get(self, alias_text: str) -> AliasRecord | None:
        """Return the record for ``alias_text`` or None."""

    @abc.abstractmethod
    async def append_click(self, alias_text: str, click: ClickEvent) -> bool:
        """Append ``click`` to the record's log. Returns False if the alias is unknown."""

    @abc.abstractmethod
    async def set_active(self, alias_text: str, is_active: bool) -> bool:
        """Update the administrative flag. Returns False if the alias is unknown."""

    @abc.abstractmethod
    async def list_all(self) -> list[AliasRecord]:
        """Snapshot of every record, in insertion order."""

    async def list_active(self, now: datetime.datetime) -> list[AliasRecord]:
        return [record for record in await self.list_all() if record.is_active_now(now)]

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources; later calls raise StoreUnavailable."""

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        ...


class InMemoryAliasStore(AliasStore):
    """Process-local store backed by a dict and fine-grained locks."""

    def __init__(self) -> None:
        self._records: dict[str, AliasRecord] = {}
        self._lock = threading.Lock()
        self._open = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_open(self) -> None:
        if not self._open:
            raise StoreUnavailable()

    async def create_if_absent(self, alias_text: str, factory: Callable[[], AliasRecord]) -> AliasRecord:
        assert isinstance(alias_text, str) and alias_text, f"alias_text must be non-empty str, got {alias_text!r}"
        self._ensure_open()
        with self._lock:
            if alias_text in self._records:
                raise AliasAlreadyExists(f"Shortcode '{alias_text}' already exists", alias_text=alias_text)
            record = factory()
            assert record.alias_text == alias_text, "factory produced a record for another alias"
            self._records[alias_text] = record
        logger.debug(f"Stored alias {alias_text}")
        return record

    async def get(self, alias_text: str) -> AliasRecord | None:
        self._ensure_open()
        with self._lock:
            return self._records.get(alias_text)

    async def append_click(self, alias_text: str, click: ClickEvent) -> bool:
        self._ensure_open()
        with self._lock:
            record = self._records.get(alias_text)
        if record is None:
            logger.warning(f"Click dropped for unknown alias {alias_text}")
            return False
        record.append_click(click)
        return True

    async def set_active(self, alias_text: str, is_active: bool) -> bool:
        self._ensure_open()
        with self._lock:
            record = self._records.get(alias_text)
            if record is None:
                return False
            record.is_active = is_active
        return True

    async def list_all(self) -> list[AliasRecord]:
        self._ensure_open()
        with self._lock:
            return list(self._records.values())

    async def close(self) -> None:
        self._open = False
