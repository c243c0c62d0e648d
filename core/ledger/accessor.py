"""
Custody Core — Ledger Accessor Contract
=========================================
The minimal key-value contract the custody core consumes.

The ledger itself (replication, ordering, durability, conflict detection)
is an external collaborator. The core only:
- reads and writes whole values by key
- replays a key's historical versions
- hands opaque predicate strings to an indexed-query engine

Iterators returned by history_of() and query() are cursors. Consumers must
release them on every exit path (use contextlib.closing).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol, Sequence, TypeVar


T = TypeVar("T")


# ══════════════════════════════════════════════════════════════
# RECORDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HistoryRecord:
    """One historical version of a key, as the ledger reports it."""

    version: str
    timestamp: str
    deleted: bool
    value: bytes


@dataclass(frozen=True)
class QueryRecord:
    """One key matched by a predicate query."""

    key: str
    value: bytes


# ══════════════════════════════════════════════════════════════
# ACCESSOR PROTOCOL
# ══════════════════════════════════════════════════════════════

class LedgerAccessor(Protocol):
    """Key-value substrate consumed by the repository and projections."""

    def get(self, key: str) -> Optional[bytes]:
        """Return the current value, or None if absent or deleted."""
        ...  # pragma: no cover

    def put(self, key: str, value: bytes) -> None:
        """Write a new version of key."""
        ...  # pragma: no cover

    def history_of(self, key: str) -> Iterator[HistoryRecord]:
        """Versions of key, oldest first."""
        ...  # pragma: no cover

    def query(self, predicate: str) -> Iterator[QueryRecord]:
        """Records matching an opaque predicate string."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# CURSOR
# ══════════════════════════════════════════════════════════════

class LedgerIterator(Iterator[T]):
    """
    Forward-only cursor over a finite result snapshot.

    Once closed it yields nothing further. Closing twice is harmless.
    """

    def __init__(self, items: Sequence[T]):
        self._items: List[T] = list(items)
        self._position = 0
        self._closed = False

    def __iter__(self) -> "LedgerIterator[T]":
        return self

    def __next__(self) -> T:
        if self._closed or self._position >= len(self._items):
            raise StopIteration
        item = self._items[self._position]
        self._position += 1
        return item

    def close(self) -> None:
        self._closed = True
        self._items = []

    @property
    def closed(self) -> bool:
        return self._closed
