"""
Custody Core — Identity Context and Error Taxonomy Tests
==========================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import (
    AlreadyExists,
    CustodyError,
    InvalidRequest,
    NotFound,
    OwnershipMismatch,
    QueryUnsupported,
)
from core.identity import StaticIdentityContext
from core.time import FixedClock


class TestStaticIdentityContext:

    def test_accessors(self):
        ctx = StaticIdentityContext.at(
            "Org1MSP", "supplier-1", datetime(2026, 2, 19, 12, 0, tzinfo=timezone.utc),
        )
        assert ctx.caller_org() == "Org1MSP"
        assert ctx.caller_identity() == "supplier-1"
        assert ctx.logical_timestamp() == "2026-02-19T12:00:00.000Z"

    @pytest.mark.parametrize("org,identity,timestamp", [
        ("", "supplier-1", "2026-02-19T12:00:00.000Z"),
        ("Org1MSP", "", "2026-02-19T12:00:00.000Z"),
        ("Org1MSP", "supplier-1", ""),
    ])
    def test_fields_required(self, org, identity, timestamp):
        with pytest.raises(ValueError):
            StaticIdentityContext(org=org, identity=identity, timestamp=timestamp)


class TestFixedClock:

    def test_advance(self):
        start = datetime(2026, 2, 19, 12, 0, tzinfo=timezone.utc)
        clock = FixedClock(start)
        clock.advance(300)
        assert clock.now_utc() == start + timedelta(minutes=5)


class TestErrors:

    def test_codes(self):
        assert NotFound("F001", "Unit").code == "NOT_FOUND"
        assert AlreadyExists("F001").code == "ALREADY_EXISTS"
        assert QueryUnsupported().code == "QUERY_UNSUPPORTED"

    def test_to_dict(self):
        error = OwnershipMismatch("F001", "Org1MSP", "Org9MSP")
        assert error.to_dict() == {
            "code": "OWNERSHIP_MISMATCH",
            "message": "Unit F001 owner mismatch. Expected Org1MSP, found Org9MSP.",
            "key": "F001",
        }

    def test_not_found_message(self):
        assert NotFound("D404", "Delivery").message == "Delivery with ID D404 does not exist."

    def test_invalid_request_is_value_error(self):
        error = InvalidRequest("bad")
        assert isinstance(error, ValueError)
        assert isinstance(error, CustodyError)
        assert "key" not in error.to_dict()
