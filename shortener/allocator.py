"""Alias allocation: validating requested aliases and generating new ones.

Flow Diagram — allocate()
=========================
::
    ┌──────────────────┐
    │ requested alias? │
    └────────┬─────────┘
    ┌────────┴─────────┐
    │ YES              │ NO
    ▼                  ▼
┌───────────┐   ┌──────────────────┐
│ validate  │   │ random 6-char    │◄──┐
│ format    │   │ nanoid candidate │   │ collision
└─────┬─────┘   └────────┬─────────┘   │ (< 10 tries)
      ▼                  ▼             │
┌───────────┐   ┌──────────────────┐   │
│ create_if │   │ create_if_absent ├───┘
│ _absent   │   └────────┬─────────┘
└─────┬─────┘            │ 10 collisions
      │                  ▼
      │         ┌──────────────────┐
      │         │ 8-char base62    │
      │         │ sequence code    │
      │         └────────┬─────────┘
      ▼                  ▼
   record             record

Key Behaviours
===============
- Requested aliases must match ``[A-Za-z0-9]{1,20}``; a taken alias raises
  ``AliasAlreadyExists`` and is never substituted. Names in
  ``RESERVED_ALIASES`` (the app's own single-segment routes) count as taken.
- Random candidates are inserted directly with ``create_if_absent``; there is
  no separate existence check.
- The fallback draws from a process-wide monotonic sequence, so fallback codes
  never repeat and never share a length with random codes. Auto-generation
  never surfaces an error to the caller.
"""

import functools
import logging
import re
import threading
from collections.abc import Callable, Iterable

from nanoid import generate
from prometheus_client import Counter

from shortener.config import Settings
from shortener.errors import AliasAlreadyExists, InvalidAliasFormat
from shortener.models import AliasRecord
from shortener.store import AliasStore

__all__ = [
    "BASE62_ALPHABET",
    "ALIAS_PATTERN",
    "RESERVED_ALIASES",
    "AliasAllocator",
    "FallbackCodeSequence",
    "generate_alias",
    "is_valid_alias",
]

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
ALIAS_PATTERN = re.compile(r"[A-Za-z0-9]{1,20}")
# Single-segment paths the app serves itself; an alias with one of these names
# would be shadowed by the route and never redirect.
RESERVED_ALIASES = frozenset({"docs", "redoc", "health", "metrics", "shorturls"})

logger = logging.getLogger("shortener.allocator")

ALIAS_COLLISIONS_TOTAL = Counter(
    "shortener_alias_collisions_total",
    "Random alias candidates rejected because the alias was taken",
)
ALIAS_FALLBACKS_TOTAL = Counter(
    "shortener_alias_fallbacks_total",
    "Aliases allocated from the fallback sequence after exhausting random attempts",
)


def is_valid_alias(alias_text: str) -> bool:
    return isinstance(alias_text, str) and ALIAS_PATTERN.fullmatch(alias_text) is not None


def generate_alias(length: int = 6) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(BASE62_ALPHABET, length)


def _base62_encode(number: int) -> str:
    """Encode a number to base62 string.

    Example:
        >>> _base62_encode(12345)
        '3d7'
    """
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return BASE62_ALPHABET[0]

    base = len(BASE62_ALPHABET)
    result = []
    while number > 0:
        number, remainder = divmod(number, base)
        result.append(BASE62_ALPHABET[remainder])
    return "".join(reversed(result))


class FallbackCodeSequence:
    """Thread-safe monotonic source of fixed-length base62 codes.

    IDs are handed out from ``[62**(length-1), 62**length)``, the range whose
    base62 encoding is exactly ``length`` characters, so every code has the same
    width without padding.
    """

    def __init__(self, length: int = 8) -> None:
        assert isinstance(length, int) and length > 1, f"length must be > 1, got {length!r}"
        base = len(BASE62_ALPHABET)
        self.length = length
        self._next = base ** (length - 1)
        self._end = base**length - 1
        self._lock = threading.Lock()

    def next_code(self) -> str:
        with self._lock:
            if self._next > self._end:
                raise RuntimeError(f"Fallback alias space of length {self.length} exhausted")
            allocated_id = self._next
            self._next += 1
        return _base62_encode(allocated_id)


class AliasAllocator:
    """Chooses alias text and inserts the record through the store."""

    def __init__(
        self,
        store: AliasStore,
        random_length: int = 6,
        max_attempts: int = 10,
        fallback: FallbackCodeSequence | None = None,
        code_generator: Callable[[int], str] = generate_alias,
        reserved: Iterable[str] = RESERVED_ALIASES,
    ) -> None:
        assert max_attempts >= 0, f"max_attempts must be >= 0, got {max_attempts!r}"
        self._store = store
        self._random_length = random_length
        self._max_attempts = max_attempts
        self._fallback = fallback or FallbackCodeSequence()
        self._code_generator = code_generator
        self._reserved = frozenset(reserved)
        if self._fallback.length == random_length:
            raise ValueError("Fallback and random alias lengths must differ")

    @classmethod
    def from_settings(cls, store: AliasStore, settings: Settings) -> "AliasAllocator":
        return cls(
            store,
            random_length=settings.RANDOM_ALIAS_LENGTH,
            max_attempts=settings.RANDOM_ALIAS_ATTEMPTS,
            fallback=FallbackCodeSequence(settings.FALLBACK_ALIAS_LENGTH),
        )

    async def allocate(
        self,
        requested_alias: str | None,
        factory: Callable[[str], AliasRecord],
    ) -> AliasRecord:
        """Insert a record built by ``factory(alias_text)`` under a unique alias.

        Args:
            requested_alias: User-chosen alias, or None to auto-generate.
            factory: Builds the record for the chosen alias text.

        Raises:
            InvalidAliasFormat: If ``requested_alias`` fails the format check.
            AliasAlreadyExists: If ``requested_alias`` is already taken or is
                the name of one of the app's own routes.
        """
        if requested_alias is not None:
            if not is_valid_alias(requested_alias):
                raise InvalidAliasFormat(alias_text=requested_alias)
            if requested_alias in self._reserved:
                raise AliasAlreadyExists(alias_text=requested_alias)
            return await self._store.create_if_absent(
                requested_alias, functools.partial(factory, requested_alias)
            )

        for attempt in range(1, self._max_attempts + 1):
            candidate = self._code_generator(self._random_length)
            if candidate in self._reserved:
                logger.debug(f"Random alias {candidate} is reserved, retrying")
                continue
            try:
                return await self._store.create_if_absent(candidate, functools.partial(factory, candidate))
            except AliasAlreadyExists:
                ALIAS_COLLISIONS_TOTAL.inc()
                logger.debug(f"Random alias collision on attempt {attempt}: {candidate}")

        ALIAS_FALLBACKS_TOTAL.inc()
        logger.warning(f"Random alias attempts exhausted after {self._max_attempts} tries, using fallback sequence")
        while True:
            candidate = self._fallback.next_code()
            if candidate in self._reserved:
                continue
            try:
                return await self._store.create_if_absent(candidate, functools.partial(factory, candidate))
            except AliasAlreadyExists:
                # Only reachable if a user claimed this exact code as a custom alias.
                logger.warning(f"Fallback alias {candidate} already claimed, advancing sequence")
