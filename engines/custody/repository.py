"""
Custody Engine — Entity Repository
====================================
Typed get/put over the Ledger Accessor and the Canonical Encoder.

- get_* raise NotFound for absent keys and MalformedRecord for values that
  fail decoding or schema checks
- require_absent() enforces the shared unit/delivery keyspace on create
- WriteSet stages every write of one operation and flushes them last:
  units first, then deliveries
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Union

from core.encoding import canonical_decode, canonical_encode
from core.errors import AlreadyExists, NotFound
from core.ledger import LedgerAccessor
from engines.custody.models import Delivery, DocType, Unit, entity_from_record


Entity = Union[Unit, Delivery]


def encode_entity(entity: Entity) -> bytes:
    return canonical_encode(entity.to_record())


def decode_entity(raw: bytes) -> Entity:
    return entity_from_record(canonical_decode(raw))


class CustodyRepository:
    """Typed access to custody records on one ledger."""

    def __init__(self, ledger: LedgerAccessor):
        self._ledger = ledger

    @property
    def ledger(self) -> LedgerAccessor:
        return self._ledger

    # ── Existence ─────────────────────────────────────────────

    def exists(self, key: str) -> bool:
        return self._ledger.get(key) is not None

    def require_absent(self, *keys: str) -> None:
        for key in keys:
            if self.exists(key):
                raise AlreadyExists(key)

    # ── Reads ─────────────────────────────────────────────────

    def _load(self, key: str, doc_type: str, kind: str) -> dict:
        raw = self._ledger.get(key)
        if raw is None:
            raise NotFound(key, kind)
        record = canonical_decode(raw)
        if record.get("doc_type") != doc_type:
            raise NotFound(key, kind)
        return record

    def get_unit(self, unit_id: str) -> Unit:
        return Unit.from_record(self._load(unit_id, DocType.UNIT, "Unit"))

    def get_delivery(self, delivery_id: str) -> Delivery:
        return Delivery.from_record(
            self._load(delivery_id, DocType.DELIVERY, "Delivery")
        )

    def get_entity(self, key: str) -> Entity:
        raw = self._ledger.get(key)
        if raw is None:
            raise NotFound(key)
        return decode_entity(raw)

    # ── Writes ────────────────────────────────────────────────

    def put_unit(self, unit: Unit) -> None:
        self._ledger.put(unit.unit_id, encode_entity(unit))

    def put_delivery(self, delivery: Delivery) -> None:
        self._ledger.put(delivery.delivery_id, encode_entity(delivery))


class WriteSet:
    """
    Writes staged by one operation.

    Nothing reaches the ledger until commit(). Staging the same key twice
    keeps the latest value in its original position.
    """

    def __init__(self):
        self._units: Dict[str, Unit] = {}
        self._deliveries: Dict[str, Delivery] = {}

    def stage_unit(self, unit: Unit) -> None:
        self._units[unit.unit_id] = unit

    def stage_delivery(self, delivery: Optional[Delivery]) -> None:
        if delivery is not None:
            self._deliveries[delivery.delivery_id] = delivery

    @property
    def units(self) -> Tuple[Unit, ...]:
        return tuple(self._units.values())

    @property
    def deliveries(self) -> Tuple[Delivery, ...]:
        return tuple(self._deliveries.values())

    def commit(self, repository: CustodyRepository) -> None:
        for unit in self._units.values():
            repository.put_unit(unit)
        for delivery in self._deliveries.values():
            repository.put_delivery(delivery)
