"""
Custody Engine — Record Schema Tests
======================================
Stored records are validated against their schema on read.
"""

import pytest

from core.errors import InvalidRequest, MalformedRecord
from engines.custody.models import (
    CustodyAction,
    CustodyEvent,
    Delivery,
    DeliveryStatus,
    Unit,
    UnitStatus,
    entity_from_record,
)

TS = "2026-02-19T12:00:00.000Z"


def unit_record(**overrides):
    record = {
        "doc_type": "unit",
        "unit_id": "F001",
        "product_type": "UREA",
        "quantity": 50,
        "current_owner_org": "Org1MSP",
        "current_owner_id": "supplier-1",
        "delivery_id": None,
        "status": "REGISTERED",
        "history": [{
            "timestamp": TS,
            "actor_org": "Org1MSP",
            "actor_id": "supplier-1",
            "action": "INITIAL_REGISTRATION",
            "new_owner_org": "Org1MSP",
            "new_owner_id": "supplier-1",
        }],
    }
    record.update(overrides)
    return record


def delivery_record(**overrides):
    record = {
        "doc_type": "delivery",
        "delivery_id": "D001",
        "originator_org": "Org1MSP",
        "originator_id": "supplier-1",
        "carrier_org": None,
        "carrier_id": None,
        "recipient_org": "Org3MSP",
        "recipient_id": None,
        "unit_ids": ["F001"],
        "status": "INITIATED",
        "created_at": TS,
        "last_updated": TS,
    }
    record.update(overrides)
    return record


class TestUnitRecord:

    def test_from_record(self):
        unit = Unit.from_record(unit_record())
        assert unit.status is UnitStatus.REGISTERED
        assert unit.history[0].previous_owner_org is None
        assert unit.to_record() == unit_record()

    @pytest.mark.parametrize("overrides", [
        {"quantity": 0},
        {"quantity": "50"},
        {"quantity": True},
        {"status": "LOST"},
        {"doc_type": "delivery"},
        {"unit_id": ""},
        {"history": "none"},
        {"history": [{"timestamp": TS}]},
        {"extra": 1},
    ])
    def test_invalid_record(self, overrides):
        with pytest.raises(MalformedRecord):
            Unit.from_record(unit_record(**overrides))

    def test_missing_field(self):
        record = unit_record()
        del record["delivery_id"]
        with pytest.raises(MalformedRecord):
            Unit.from_record(record)

    def test_not_an_object(self):
        with pytest.raises(MalformedRecord):
            Unit.from_record(["F001"])


class TestDeliveryRecord:

    def test_from_record(self):
        delivery = Delivery.from_record(delivery_record())
        assert delivery.status is DeliveryStatus.INITIATED
        assert delivery.unit_ids == ("F001",)
        assert delivery.expected_unit_status is UnitStatus.REGISTERED
        assert delivery.to_record() == delivery_record()

    @pytest.mark.parametrize("overrides", [
        {"unit_ids": ["F001", "F001"]},
        {"unit_ids": "F001"},
        {"status": "SHIPPED"},
        {"carrier_org": 7},
        {"created_at": ""},
    ])
    def test_invalid_record(self, overrides):
        with pytest.raises(MalformedRecord):
            Delivery.from_record(delivery_record(**overrides))


class TestEntityFromRecord:

    def test_dispatch_on_doc_type(self):
        assert isinstance(entity_from_record(unit_record()), Unit)
        assert isinstance(entity_from_record(delivery_record()), Delivery)

    def test_unknown_doc_type(self):
        with pytest.raises(MalformedRecord):
            entity_from_record({"doc_type": "pallet"})


class TestCustodyEvent:

    def test_optional_owner_fields_omitted(self):
        event = CustodyEvent(
            timestamp=TS, actor_org="Org1MSP", actor_id="supplier-1",
            action=CustodyAction.INITIAL_REGISTRATION,
        )
        assert event.to_record() == {
            "timestamp": TS,
            "actor_org": "Org1MSP",
            "actor_id": "supplier-1",
            "action": "INITIAL_REGISTRATION",
        }

    def test_action_must_be_enum(self):
        with pytest.raises(InvalidRequest):
            CustodyEvent(timestamp=TS, actor_org="A", actor_id="a", action="MOVED")
