"""
Custody Core — In-Memory Reference Ledger
===========================================
Versioned key-value store implementing the Ledger Accessor contract.

Used for tests, local runs, and as the behavioural reference for
durable adapters.

RULES:
- Every write appends a version; nothing is overwritten in place
- history_of() replays versions oldest first
- Inside transaction(), writes are buffered and applied together on
  clean exit, discarded on error; reads see committed state only
- indexed=False models a plain key-value store without rich queries
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from core.errors import QueryUnsupported
from core.ledger.accessor import HistoryRecord, LedgerIterator, QueryRecord
from core.ledger.selector import matches, parse_selector
from core.time import Clock, SystemClock, ledger_timestamp

logger = logging.getLogger("custody.ledger")


def _check_key(key: str) -> None:
    if not key or not isinstance(key, str):
        raise ValueError("key must be a non-empty string.")


class _PendingTransaction:
    def __init__(self, tx_id: Optional[str], timestamp: Optional[str]):
        self.tx_id = tx_id
        self.timestamp = timestamp
        self.writes: Dict[str, Optional[bytes]] = {}


class InMemoryLedger:
    """
    Reference ledger held in process memory.

    One instance is one ledger; pass it explicitly to whatever needs it.
    """

    def __init__(self, *, indexed: bool = True, clock: Optional[Clock] = None):
        self._indexed = indexed
        self._clock: Clock = clock or SystemClock()
        self._versions: Dict[str, List[HistoryRecord]] = {}
        self._sequence = 0
        self._pending: Optional[_PendingTransaction] = None

    # ── Reads ─────────────────────────────────────────────────

    def get(self, key: str) -> Optional[bytes]:
        _check_key(key)
        versions = self._versions.get(key)
        if not versions or versions[-1].deleted:
            return None
        return versions[-1].value

    def history_of(self, key: str) -> LedgerIterator[HistoryRecord]:
        _check_key(key)
        return LedgerIterator(self._versions.get(key, ()))

    def query(self, predicate: str) -> LedgerIterator[QueryRecord]:
        if not self._indexed:
            raise QueryUnsupported()
        selector = parse_selector(predicate)
        results: List[QueryRecord] = []
        for key in sorted(self._versions):
            value = self.get(key)
            if value is None:
                continue
            try:
                document = json.loads(value.decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                # Unindexable values only surface through a match-all selector.
                if not selector:
                    results.append(QueryRecord(key=key, value=value))
                continue
            if isinstance(document, dict) and matches(document, selector):
                results.append(QueryRecord(key=key, value=value))
        return LedgerIterator(results)

    # ── Writes ────────────────────────────────────────────────

    def put(self, key: str, value: bytes) -> None:
        _check_key(key)
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes.")
        self._write(key, bytes(value))

    def delete(self, key: str) -> None:
        """Append a tombstone. The custody core never deletes."""
        _check_key(key)
        self._write(key, None)

    def _write(self, key: str, value: Optional[bytes]) -> None:
        if self._pending is not None:
            self._pending.writes[key] = value
            return
        self._sequence += 1
        self._append(key, value, str(self._sequence), ledger_timestamp(self._clock.now_utc()))

    def _append(self, key: str, value: Optional[bytes], version: str, timestamp: str) -> None:
        self._versions.setdefault(key, []).append(
            HistoryRecord(
                version=version,
                timestamp=timestamp,
                deleted=value is None,
                value=value if value is not None else b"",
            )
        )

    # ── Transaction boundary ──────────────────────────────────

    @contextmanager
    def transaction(
        self, tx_id: Optional[str] = None, timestamp: Optional[str] = None,
    ) -> Iterator["InMemoryLedger"]:
        """
        Scope one ledger transaction.

        All writes made inside share one version marker (tx_id, or the next
        sequence number) and one timestamp, and become visible together.
        """
        if self._pending is not None:
            raise RuntimeError("Nested ledger transactions are not supported.")
        self._pending = _PendingTransaction(tx_id, timestamp)
        try:
            yield self
        except BaseException:
            logger.debug("Ledger transaction %s discarded.", tx_id)
            raise
        else:
            pending = self._pending
            self._sequence += 1
            version = pending.tx_id or str(self._sequence)
            stamp = pending.timestamp or ledger_timestamp(self._clock.now_utc())
            for key, value in pending.writes.items():
                self._append(key, value, version, stamp)
            logger.debug(
                "Ledger transaction %s committed %d write(s).", version, len(pending.writes),
            )
        finally:
            self._pending = None

    # ── Inspection ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, bytes]:
        """Current value of every live key."""
        out: Dict[str, bytes] = {}
        for key in sorted(self._versions):
            value = self.get(key)
            if value is not None:
                out[key] = value
        return out

    @property
    def indexed(self) -> bool:
        return self._indexed
