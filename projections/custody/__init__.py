"""
Custody Projections — Query Projection
========================================
Read-only views over the custody ledger.

- read_unit / read_delivery: point lookups (NotFound if absent)
- history: lazy replay of a key's ledger versions, oldest first
- custody_events: a unit's embedded audit trail
- query: predicate search through the ledger's indexed-query engine

Depends only on the Ledger Accessor and the Canonical Encoder. Never
writes. Cursors are released on completion, early exit, or error.
"""

from __future__ import annotations

import json
import logging
from contextlib import closing
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from core.encoding import canonical_decode
from core.errors import InvalidRequest, MalformedRecord, QueryUnsupported
from core.ledger import LedgerAccessor
from core.ledger.selector import parse_selector
from engines.custody.models import CustodyEvent, Delivery, DocType, Unit, entity_from_record
from engines.custody.repository import CustodyRepository

logger = logging.getLogger("custody.projection")


Entity = Union[Unit, Delivery]


# ══════════════════════════════════════════════════════════════
# RESULT ROWS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HistoryEntry:
    """
    One ledger version of a key.

    value is the decoded entity, None for a deletion, or the raw bytes when
    the stored value could not be decoded.
    """

    version: str
    timestamp: str
    deleted: bool
    value: Union[Entity, bytes, None]

    @property
    def decoded(self) -> bool:
        return self.value is not None and not isinstance(self.value, bytes)

    def to_dict(self) -> dict:
        if isinstance(self.value, bytes):
            value: Any = self.value.decode("utf-8", errors="replace")
        elif self.value is None:
            value = None
        else:
            value = self.value.to_record()
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "is_delete": self.deleted,
            "value": value,
        }


@dataclass(frozen=True)
class QueryResult:
    """One matched record: decoded entity, or the raw string on decode failure."""

    key: str
    value: Union[Entity, str]

    @property
    def decoded(self) -> bool:
        return not isinstance(self.value, str)

    def to_dict(self) -> dict:
        value = self.value if isinstance(self.value, str) else self.value.to_record()
        return {"key": self.key, "record": value}


def _decode(raw: bytes) -> Entity:
    return entity_from_record(canonical_decode(raw))


# ══════════════════════════════════════════════════════════════
# PROJECTION
# ══════════════════════════════════════════════════════════════

class CustodyQueryProjection:
    """Read side of the custody ledger."""

    projection_name = "custody_query_projection"

    def __init__(self, ledger: LedgerAccessor):
        self._ledger = ledger
        self._repository = CustodyRepository(ledger)

    # ── Point reads ───────────────────────────────────────────

    def read_unit(self, unit_id: str) -> Unit:
        return self._repository.get_unit(unit_id)

    def read_delivery(self, delivery_id: str) -> Delivery:
        return self._repository.get_delivery(delivery_id)

    def custody_events(self, unit_id: str) -> Tuple[CustodyEvent, ...]:
        return self.read_unit(unit_id).history

    # ── History replay ────────────────────────────────────────

    def history(self, key: str) -> Iterator[HistoryEntry]:
        """
        Lazily replay every ledger version of key, oldest first.

        A version that fails to decode is yielded with its raw bytes; it
        does not end the sequence.
        """
        with closing(self._ledger.history_of(key)) as cursor:
            for record in cursor:
                if record.deleted:
                    yield HistoryEntry(record.version, record.timestamp, True, None)
                    continue
                try:
                    value: Union[Entity, bytes] = _decode(record.value)
                except MalformedRecord as exc:
                    logger.warning(
                        "History of %s: version %s not decodable: %s",
                        key, record.version, exc.message,
                    )
                    value = record.value
                yield HistoryEntry(record.version, record.timestamp, False, value)

    # ── Predicate query ───────────────────────────────────────

    def query(self, predicate: str) -> List[QueryResult]:
        """
        Pass predicate verbatim to the ledger's indexed-query engine and
        materialize every match.
        """
        query = getattr(self._ledger, "query", None)
        if not callable(query):
            raise QueryUnsupported()
        try:
            cursor = query(predicate)
        except NotImplementedError as exc:
            raise QueryUnsupported() from exc

        results: List[QueryResult] = []
        with closing(cursor):
            for record in cursor:
                try:
                    value: Union[Entity, str] = _decode(record.value)
                except MalformedRecord as exc:
                    logger.warning(
                        "Query result %s not decodable: %s", record.key, exc.message,
                    )
                    value = record.value.decode("utf-8", errors="replace")
                results.append(QueryResult(key=record.key, value=value))
        return results

    def query_units(self, selector: Optional[dict] = None) -> List[QueryResult]:
        return self.query(_typed_predicate(DocType.UNIT, selector))

    def query_deliveries(self, selector: Optional[dict] = None) -> List[QueryResult]:
        return self.query(_typed_predicate(DocType.DELIVERY, selector))


def _typed_predicate(doc_type: str, selector: Optional[dict]) -> str:
    if selector is not None and not isinstance(selector, dict):
        raise InvalidRequest("selector must be an object.")
    combined = dict(selector or {})
    combined["doc_type"] = doc_type
    predicate = json.dumps({"selector": combined}, sort_keys=True)
    parse_selector(predicate)
    return predicate


__all__ = [
    "CustodyQueryProjection",
    "HistoryEntry",
    "QueryResult",
]
