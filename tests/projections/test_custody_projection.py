"""
Custody Projections — Query Projection Tests
==============================================
Point reads, lazy history replay, and predicate queries.
"""

import json
from datetime import datetime, timezone

import pytest

from core.errors import InvalidRequest, NotFound, QueryUnsupported
from core.identity import StaticIdentityContext
from core.ledger import InMemoryLedger, LedgerIterator
from engines.custody.commands import HandOffRequest, RegisterUnitRequest
from engines.custody.models import Delivery, Unit, UnitStatus
from engines.custody.roles import RoleMap
from engines.custody.services import CustodyTransferEngine
from projections.custody import CustodyQueryProjection

ROLES = RoleMap(originator="Org1MSP", carrier="Org2MSP", recipient="Org3MSP")
SUPPLIER = StaticIdentityContext.at(
    "Org1MSP", "supplier-1", datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc),
)


def seeded(**ledger_kwargs):
    ledger = InMemoryLedger(**ledger_kwargs)
    engine = CustodyTransferEngine(ledger=ledger, roles=ROLES)
    engine.register(SUPPLIER, RegisterUnitRequest(
        unit_id="F001", product_type="UREA", quantity=50,
        delivery_id="D001", recipient_org="Org3MSP",
    ))
    engine.register(SUPPLIER, RegisterUnitRequest(
        unit_id="F002", product_type="NPK", quantity=10,
    ))
    return ledger, engine, CustodyQueryProjection(ledger)


class SpyLedger:
    """Wraps a ledger and records the cursors it hands out."""

    def __init__(self, inner):
        self._inner = inner
        self.cursors = []
        self.history_calls = 0

    def get(self, key):
        return self._inner.get(key)

    def put(self, key, value):
        self._inner.put(key, value)

    def history_of(self, key):
        self.history_calls += 1
        cursor = self._inner.history_of(key)
        self.cursors.append(cursor)
        return cursor

    def query(self, predicate):
        cursor = self._inner.query(predicate)
        self.cursors.append(cursor)
        return cursor


class KeyValueOnlyLedger:
    def __init__(self, inner):
        self._inner = inner

    def get(self, key):
        return self._inner.get(key)

    def history_of(self, key):
        return self._inner.history_of(key)


class NotImplementedQueryLedger(KeyValueOnlyLedger):
    def query(self, predicate):
        raise NotImplementedError


# ══════════════════════════════════════════════════════════════
# POINT READS
# ══════════════════════════════════════════════════════════════

class TestPointReads:

    def test_read_unit(self):
        _, _, projection = seeded()
        unit = projection.read_unit("F001")
        assert isinstance(unit, Unit)
        assert unit.delivery_id == "D001"

    def test_read_delivery(self):
        _, _, projection = seeded()
        delivery = projection.read_delivery("D001")
        assert isinstance(delivery, Delivery)
        assert delivery.unit_ids == ("F001",)

    def test_missing_key(self):
        _, _, projection = seeded()
        with pytest.raises(NotFound):
            projection.read_unit("F404")

    def test_wrong_kind_is_not_found(self):
        _, _, projection = seeded()
        with pytest.raises(NotFound):
            projection.read_unit("D001")
        with pytest.raises(NotFound):
            projection.read_delivery("F001")

    def test_custody_events(self):
        _, _, projection = seeded()
        events = projection.custody_events("F001")
        assert len(events) == 1
        assert events[0].actor_id == "supplier-1"


# ══════════════════════════════════════════════════════════════
# HISTORY
# ══════════════════════════════════════════════════════════════

class TestHistory:

    def test_versions_oldest_first(self):
        _, engine, projection = seeded()
        engine.hand_off(SUPPLIER, HandOffRequest(
            delivery_id="D001", target_org="Org2MSP", target_id="carrier-1",
        ))
        entries = list(projection.history("F001"))
        assert [e.value.status for e in entries] == [
            UnitStatus.REGISTERED, UnitStatus.IN_DELIVERY,
        ]
        assert entries[0].to_dict()["is_delete"] is False
        assert entries[0].to_dict()["value"]["unit_id"] == "F001"

    def test_absent_key_is_empty(self):
        _, _, projection = seeded()
        assert list(projection.history("F404")) == []

    def test_undecodable_version_does_not_end_sequence(self):
        ledger, engine, projection = seeded()
        good = ledger.get("F002")
        ledger.put("F002", b"{not json")
        ledger.put("F002", good)
        entries = list(projection.history("F002"))
        assert len(entries) == 3
        assert entries[0].decoded
        assert entries[1].value == b"{not json"
        assert not entries[1].decoded
        assert entries[1].to_dict()["value"] == "{not json"
        assert entries[2].decoded

    def test_deletion_entry(self):
        ledger, _, projection = seeded()
        ledger.delete("F002")
        entries = list(projection.history("F002"))
        assert entries[-1].deleted
        assert entries[-1].value is None
        assert entries[-1].to_dict()["is_delete"] is True

    def test_lazy(self):
        ledger, _, _ = seeded()
        spy = SpyLedger(ledger)
        entries = CustodyQueryProjection(spy).history("F001")
        assert spy.history_calls == 0
        next(entries)
        assert spy.history_calls == 1

    def test_cursor_released_on_early_exit(self):
        ledger, _, _ = seeded()
        ledger.put("F001", ledger.get("F001"))
        spy = SpyLedger(ledger)
        entries = CustodyQueryProjection(spy).history("F001")
        next(entries)
        assert not spy.cursors[0].closed
        entries.close()
        assert spy.cursors[0].closed

    def test_cursor_released_on_completion(self):
        ledger, _, _ = seeded()
        spy = SpyLedger(ledger)
        list(CustodyQueryProjection(spy).history("F001"))
        assert spy.cursors[0].closed


# ══════════════════════════════════════════════════════════════
# QUERY
# ══════════════════════════════════════════════════════════════

class TestQuery:

    def test_predicate_passed_through(self):
        _, _, projection = seeded()
        predicate = json.dumps({"selector": {"doc_type": "unit", "product_type": "UREA"}})
        results = projection.query(predicate)
        assert [r.key for r in results] == ["F001"]
        assert results[0].to_dict()["record"]["quantity"] == 50

    def test_query_units_and_deliveries(self):
        _, _, projection = seeded()
        assert [r.key for r in projection.query_units()] == ["F001", "F002"]
        assert [r.key for r in projection.query_units({"current_owner_org": "Org1MSP"})] == [
            "F001", "F002",
        ]
        assert [r.key for r in projection.query_deliveries({"status": "INITIATED"})] == ["D001"]
        assert projection.query_deliveries({"status": "COMPLETED"}) == []

    def test_selector_must_be_object(self):
        _, _, projection = seeded()
        with pytest.raises(InvalidRequest):
            projection.query_units(["F001"])

    def test_undecodable_match_returned_raw(self):
        ledger, _, projection = seeded()
        ledger.put("X001", b"not a record")
        results = projection.query(json.dumps({"selector": {}}))
        raw = [r for r in results if r.key == "X001"]
        assert raw[0].value == "not a record"
        assert not raw[0].decoded
        assert raw[0].to_dict() == {"key": "X001", "record": "not a record"}

    def test_cursor_released(self):
        ledger, _, _ = seeded()
        spy = SpyLedger(ledger)
        CustodyQueryProjection(spy).query_units()
        assert spy.cursors[0].closed

    def test_unindexed_ledger(self):
        _, _, projection = seeded(indexed=False)
        with pytest.raises(QueryUnsupported):
            projection.query_units()

    @pytest.mark.parametrize("wrapper", [KeyValueOnlyLedger, NotImplementedQueryLedger])
    def test_ledger_without_query_engine(self, wrapper):
        ledger, _, _ = seeded()
        projection = CustodyQueryProjection(wrapper(ledger))
        with pytest.raises(QueryUnsupported) as exc_info:
            projection.query(json.dumps({"selector": {}}))
        assert exc_info.value.code == "QUERY_UNSUPPORTED"
        assert projection.read_unit("F001").unit_id == "F001"
