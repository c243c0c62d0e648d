"""
Custody Django Ledger — Accessor
==================================
Ledger Accessor contract on top of LedgerVersion rows.

Behaves like the in-memory reference ledger:
- get() answers from the newest version of a key
- history_of() replays versions oldest first
- query() applies the JSON selector matcher to the newest live versions
- transaction() buffers writes inside django.db.transaction.atomic and
  inserts them together on clean exit
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from django.db import transaction as db_transaction

from adapters.django_ledger.models import LedgerVersion
from core.ledger.accessor import HistoryRecord, LedgerIterator, QueryRecord
from core.ledger.selector import matches, parse_selector
from core.time import Clock, SystemClock, ledger_timestamp

logger = logging.getLogger("custody.ledger")


class DjangoLedgerAccessor:
    """Durable ledger stored through the Django ORM."""

    def __init__(self, *, clock: Optional[Clock] = None, using: str = "default"):
        self._clock: Clock = clock or SystemClock()
        self._using = using
        self._pending: Optional[Dict[str, Optional[bytes]]] = None

    def _rows(self):
        return LedgerVersion.objects.using(self._using)

    # ── Reads ─────────────────────────────────────────────────

    def get(self, key: str) -> Optional[bytes]:
        row = self._rows().filter(key=key).order_by("-id").first()
        if row is None or row.deleted:
            return None
        return bytes(row.value)

    def history_of(self, key: str) -> LedgerIterator[HistoryRecord]:
        rows = self._rows().filter(key=key).order_by("id")
        return LedgerIterator([
            HistoryRecord(
                version=row.version,
                timestamp=row.timestamp,
                deleted=row.deleted,
                value=bytes(row.value),
            )
            for row in rows
        ])

    def query(self, predicate: str) -> LedgerIterator[QueryRecord]:
        selector = parse_selector(predicate)
        results: List[QueryRecord] = []
        current_key = None
        for row in self._rows().order_by("key", "-id").iterator():
            if row.key == current_key:
                continue
            current_key = row.key
            if row.deleted:
                continue
            value = bytes(row.value)
            try:
                document = json.loads(value.decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                if not selector:
                    results.append(QueryRecord(key=row.key, value=value))
                continue
            if isinstance(document, dict) and matches(document, selector):
                results.append(QueryRecord(key=row.key, value=value))
        return LedgerIterator(results)

    # ── Writes ────────────────────────────────────────────────

    def put(self, key: str, value: bytes) -> None:
        if not key or not isinstance(key, str):
            raise ValueError("key must be a non-empty string.")
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes.")
        self._write(key, bytes(value))

    def delete(self, key: str) -> None:
        """Append a tombstone. The custody core never deletes."""
        self._write(key, None)

    def _write(self, key: str, value: Optional[bytes]) -> None:
        if self._pending is not None:
            self._pending[key] = value
            return
        self._insert(
            {key: value}, uuid.uuid4().hex, ledger_timestamp(self._clock.now_utc()),
        )

    def _insert(self, writes: Dict[str, Optional[bytes]], version: str, timestamp: str) -> None:
        with db_transaction.atomic(using=self._using):
            for key, value in writes.items():
                LedgerVersion(
                    key=key,
                    version=version,
                    timestamp=timestamp,
                    deleted=value is None,
                    value=value if value is not None else b"",
                ).save(using=self._using)

    # ── Transaction boundary ──────────────────────────────────

    @contextmanager
    def transaction(
        self, tx_id: Optional[str] = None, timestamp: Optional[str] = None,
    ) -> Iterator["DjangoLedgerAccessor"]:
        if self._pending is not None:
            raise RuntimeError("Nested ledger transactions are not supported.")
        self._pending = {}
        try:
            yield self
        except BaseException:
            logger.debug("Ledger transaction %s discarded.", tx_id)
            raise
        else:
            version = tx_id or uuid.uuid4().hex
            self._insert(
                self._pending,
                version,
                timestamp or ledger_timestamp(self._clock.now_utc()),
            )
            logger.debug(
                "Ledger transaction %s committed %d write(s).", version, len(self._pending),
            )
        finally:
            self._pending = None
