"""
Custody Engine — Entity Types
===============================
Tagged ledger entities: Unit | Delivery, plus the CustodyEvent history entry.

RULES (NON-NEGOTIABLE):
- Entities are immutable values; every change produces a new instance
- A Unit's delivery_id, once set, never changes
- A Unit's history is append-only, insertion order = chronological order
- Records are schema-checked at the repository boundary: unknown fields,
  missing fields, wrong types and unknown enum values are rejected

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.errors import InvalidRequest, MalformedRecord


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class DocType:
    """Record discriminator stored under 'doc_type'."""
    UNIT = "unit"
    DELIVERY = "delivery"


class UnitStatus(Enum):
    REGISTERED = "REGISTERED"
    IN_DELIVERY = "IN_DELIVERY"
    TRANSFERRED_TO_CARRIER = "TRANSFERRED_TO_CARRIER"
    DELIVERED_TO_RECIPIENT = "DELIVERED_TO_RECIPIENT"


class DeliveryStatus(Enum):
    INITIATED = "INITIATED"
    IN_TRANSIT_TO_CARRIER = "IN_TRANSIT_TO_CARRIER"
    TRANSFERRED_TO_CARRIER = "TRANSFERRED_TO_CARRIER"
    IN_TRANSIT_TO_RECIPIENT = "IN_TRANSIT_TO_RECIPIENT"
    COMPLETED = "COMPLETED"


class CustodyAction(Enum):
    INITIAL_REGISTRATION = "INITIAL_REGISTRATION"
    ADDED_TO_DELIVERY = "ADDED_TO_DELIVERY"
    TRANSFER_INITIATED = "TRANSFER_INITIATED"
    RECEIVED_BY_CARRIER = "RECEIVED_BY_CARRIER"
    RECEIVED_BY_RECIPIENT = "RECEIVED_BY_RECIPIENT"


# Member units of a delivery always carry the status paired with it here.
UNIT_STATUS_FOR_DELIVERY: Dict[DeliveryStatus, UnitStatus] = {
    DeliveryStatus.INITIATED: UnitStatus.REGISTERED,
    DeliveryStatus.IN_TRANSIT_TO_CARRIER: UnitStatus.IN_DELIVERY,
    DeliveryStatus.TRANSFERRED_TO_CARRIER: UnitStatus.TRANSFERRED_TO_CARRIER,
    DeliveryStatus.IN_TRANSIT_TO_RECIPIENT: UnitStatus.IN_DELIVERY,
    DeliveryStatus.COMPLETED: UnitStatus.DELIVERED_TO_RECIPIENT,
}


# ══════════════════════════════════════════════════════════════
# SCHEMA HELPERS
# ══════════════════════════════════════════════════════════════

_STR = (str,)
_NULLABLE_STR = (str, type(None))


def _check_fields(
    record: Any,
    kind: str,
    required: Dict[str, tuple],
    optional: Optional[Dict[str, tuple]] = None,
) -> None:
    optional = optional or {}
    if not isinstance(record, dict):
        raise MalformedRecord(f"{kind} record must be an object.")
    unknown = sorted(set(record) - set(required) - set(optional))
    if unknown:
        raise MalformedRecord(f"{kind} record has unknown field(s): {unknown}.")
    missing = sorted(set(required) - set(record))
    if missing:
        raise MalformedRecord(f"{kind} record is missing field(s): {missing}.")
    for name, types in {**required, **optional}.items():
        if name in record and not isinstance(record[name], types):
            raise MalformedRecord(
                f"{kind} field '{name}' has type {type(record[name]).__name__}."
            )


def _enum(enum_cls, value: str, kind: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise MalformedRecord(f"{kind} has unknown {enum_cls.__name__} '{value}'.") from exc


def _require_text(value: Any, name: str) -> None:
    if not value or not isinstance(value, str):
        raise InvalidRequest(f"{name} must be a non-empty string.")


def _require_quantity(value: Any) -> None:
    if type(value) is not int or value <= 0:
        raise InvalidRequest("quantity must be a positive integer.")


# ══════════════════════════════════════════════════════════════
# CUSTODY EVENT (history entry)
# ══════════════════════════════════════════════════════════════

_EVENT_OPTIONAL = (
    "previous_owner_org",
    "previous_owner_id",
    "new_owner_org",
    "new_owner_id",
)


@dataclass(frozen=True)
class CustodyEvent:
    """
    One entry in a Unit's append-only history.

    Fields:
        timestamp:  Ledger timestamp of the transaction
        actor_org:  Organization that performed the action
        actor_id:   Identity that performed the action
        action:     CustodyAction
        previous_owner_org / previous_owner_id:  Owner before (optional)
        new_owner_org / new_owner_id:            Owner after, or intended
                                                 owner on hand-off (optional)
    """

    timestamp: str
    actor_org: str
    actor_id: str
    action: CustodyAction
    previous_owner_org: Optional[str] = None
    previous_owner_id: Optional[str] = None
    new_owner_org: Optional[str] = None
    new_owner_id: Optional[str] = None

    def __post_init__(self):
        _require_text(self.timestamp, "timestamp")
        _require_text(self.actor_org, "actor_org")
        _require_text(self.actor_id, "actor_id")
        if not isinstance(self.action, CustodyAction):
            raise InvalidRequest("action must be CustodyAction.")

    def to_record(self) -> dict:
        record = {
            "timestamp": self.timestamp,
            "actor_org": self.actor_org,
            "actor_id": self.actor_id,
            "action": self.action.value,
        }
        for name in _EVENT_OPTIONAL:
            value = getattr(self, name)
            if value is not None:
                record[name] = value
        return record

    @classmethod
    def from_record(cls, record: Any) -> "CustodyEvent":
        _check_fields(
            record,
            "Event",
            required={
                "timestamp": _STR,
                "actor_org": _STR,
                "actor_id": _STR,
                "action": _STR,
            },
            optional={name: _STR for name in _EVENT_OPTIONAL},
        )
        try:
            return cls(
                timestamp=record["timestamp"],
                actor_org=record["actor_org"],
                actor_id=record["actor_id"],
                action=_enum(CustodyAction, record["action"], "Event"),
                **{name: record.get(name) for name in _EVENT_OPTIONAL},
            )
        except InvalidRequest as exc:
            raise MalformedRecord(f"Event record is invalid: {exc.message}") from exc


# ══════════════════════════════════════════════════════════════
# UNIT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Unit:
    """
    A single physical fertilizer batch.

    Fields:
        unit_id:            Unique ledger key (shared keyspace with deliveries)
        product_type:       Product code (e.g. "UREA")
        quantity:           Positive integer
        current_owner_org:  Organization holding custody
        current_owner_id:   Identity holding custody
        status:             UnitStatus
        delivery_id:        Owning delivery, None for standalone units
        history:            Append-only CustodyEvent sequence
    """

    unit_id: str
    product_type: str
    quantity: int
    current_owner_org: str
    current_owner_id: str
    status: UnitStatus
    delivery_id: Optional[str] = None
    history: Tuple[CustodyEvent, ...] = field(default_factory=tuple)

    def __post_init__(self):
        _require_text(self.unit_id, "unit_id")
        _require_text(self.product_type, "product_type")
        _require_quantity(self.quantity)
        _require_text(self.current_owner_org, "current_owner_org")
        _require_text(self.current_owner_id, "current_owner_id")
        if not isinstance(self.status, UnitStatus):
            raise InvalidRequest("status must be UnitStatus.")
        if self.delivery_id is not None:
            _require_text(self.delivery_id, "delivery_id")
        if not all(isinstance(e, CustodyEvent) for e in self.history):
            raise InvalidRequest("history entries must be CustodyEvent.")

    def with_event(
        self,
        event: CustodyEvent,
        *,
        status: Optional[UnitStatus] = None,
        owner_org: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> "Unit":
        """Return a new snapshot with event appended and fields updated."""
        return replace(
            self,
            status=status or self.status,
            current_owner_org=owner_org or self.current_owner_org,
            current_owner_id=owner_id or self.current_owner_id,
            history=self.history + (event,),
        )

    @property
    def last_event(self) -> Optional[CustodyEvent]:
        return self.history[-1] if self.history else None

    def to_record(self) -> dict:
        return {
            "doc_type": DocType.UNIT,
            "unit_id": self.unit_id,
            "product_type": self.product_type,
            "quantity": self.quantity,
            "current_owner_org": self.current_owner_org,
            "current_owner_id": self.current_owner_id,
            "delivery_id": self.delivery_id,
            "status": self.status.value,
            "history": [e.to_record() for e in self.history],
        }

    @classmethod
    def from_record(cls, record: Any) -> "Unit":
        _check_fields(
            record,
            "Unit",
            required={
                "doc_type": _STR,
                "unit_id": _STR,
                "product_type": _STR,
                "quantity": (int,),
                "current_owner_org": _STR,
                "current_owner_id": _STR,
                "delivery_id": _NULLABLE_STR,
                "status": _STR,
                "history": (list,),
            },
        )
        if record["doc_type"] != DocType.UNIT:
            raise MalformedRecord(f"Expected a unit record, got '{record['doc_type']}'.")
        history = tuple(CustodyEvent.from_record(e) for e in record["history"])
        try:
            return cls(
                unit_id=record["unit_id"],
                product_type=record["product_type"],
                quantity=record["quantity"],
                current_owner_org=record["current_owner_org"],
                current_owner_id=record["current_owner_id"],
                status=_enum(UnitStatus, record["status"], "Unit"),
                delivery_id=record["delivery_id"],
                history=history,
            )
        except InvalidRequest as exc:
            raise MalformedRecord(f"Unit record is invalid: {exc.message}") from exc


# ══════════════════════════════════════════════════════════════
# DELIVERY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Delivery:
    """
    A custody batch moving through the role chain.

    Fields:
        delivery_id:      Unique ledger key (shared keyspace with units)
        originator_org / originator_id:  Party that created the delivery
        recipient_org / recipient_id:    Final party; recipient_id may stay
                                         None until the recipient hop names it
        status:           DeliveryStatus
        created_at:       Ledger timestamp of creation
        last_updated:     Ledger timestamp of the latest change
        unit_ids:         Member unit keys, insertion order preserved
        carrier_org / carrier_id:        Assigned on hand-off to the carrier

    A Delivery keeps no history of its own. Its members' histories are
    the audit trail.
    """

    delivery_id: str
    originator_org: str
    originator_id: str
    recipient_org: str
    status: DeliveryStatus
    created_at: str
    last_updated: str
    unit_ids: Tuple[str, ...] = field(default_factory=tuple)
    recipient_id: Optional[str] = None
    carrier_org: Optional[str] = None
    carrier_id: Optional[str] = None

    def __post_init__(self):
        _require_text(self.delivery_id, "delivery_id")
        _require_text(self.originator_org, "originator_org")
        _require_text(self.originator_id, "originator_id")
        _require_text(self.recipient_org, "recipient_org")
        if not isinstance(self.status, DeliveryStatus):
            raise InvalidRequest("status must be DeliveryStatus.")
        _require_text(self.created_at, "created_at")
        _require_text(self.last_updated, "last_updated")
        for unit_id in self.unit_ids:
            _require_text(unit_id, "unit_ids entry")
        if len(set(self.unit_ids)) != len(self.unit_ids):
            raise InvalidRequest("unit_ids must not contain duplicates.")
        for name in ("recipient_id", "carrier_org", "carrier_id"):
            value = getattr(self, name)
            if value is not None:
                _require_text(value, name)

    def with_unit(self, unit_id: str, at: str) -> "Delivery":
        return replace(self, unit_ids=self.unit_ids + (unit_id,), last_updated=at)

    def with_status(self, status: DeliveryStatus, at: str, **changes) -> "Delivery":
        return replace(self, status=status, last_updated=at, **changes)

    @property
    def expected_unit_status(self) -> UnitStatus:
        return UNIT_STATUS_FOR_DELIVERY[self.status]

    def to_record(self) -> dict:
        return {
            "doc_type": DocType.DELIVERY,
            "delivery_id": self.delivery_id,
            "originator_org": self.originator_org,
            "originator_id": self.originator_id,
            "carrier_org": self.carrier_org,
            "carrier_id": self.carrier_id,
            "recipient_org": self.recipient_org,
            "recipient_id": self.recipient_id,
            "unit_ids": list(self.unit_ids),
            "status": self.status.value,
            "created_at": self.created_at,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_record(cls, record: Any) -> "Delivery":
        _check_fields(
            record,
            "Delivery",
            required={
                "doc_type": _STR,
                "delivery_id": _STR,
                "originator_org": _STR,
                "originator_id": _STR,
                "carrier_org": _NULLABLE_STR,
                "carrier_id": _NULLABLE_STR,
                "recipient_org": _STR,
                "recipient_id": _NULLABLE_STR,
                "unit_ids": (list,),
                "status": _STR,
                "created_at": _STR,
                "last_updated": _STR,
            },
        )
        if record["doc_type"] != DocType.DELIVERY:
            raise MalformedRecord(f"Expected a delivery record, got '{record['doc_type']}'.")
        try:
            return cls(
                delivery_id=record["delivery_id"],
                originator_org=record["originator_org"],
                originator_id=record["originator_id"],
                recipient_org=record["recipient_org"],
                status=_enum(DeliveryStatus, record["status"], "Delivery"),
                created_at=record["created_at"],
                last_updated=record["last_updated"],
                unit_ids=tuple(record["unit_ids"]),
                recipient_id=record["recipient_id"],
                carrier_org=record["carrier_org"],
                carrier_id=record["carrier_id"],
            )
        except InvalidRequest as exc:
            raise MalformedRecord(f"Delivery record is invalid: {exc.message}") from exc


def entity_from_record(record: Any):
    """Decode a tagged record into Unit or Delivery."""
    doc_type = record.get("doc_type") if isinstance(record, dict) else None
    if doc_type == DocType.UNIT:
        return Unit.from_record(record)
    if doc_type == DocType.DELIVERY:
        return Delivery.from_record(record)
    raise MalformedRecord(f"Unknown doc_type '{doc_type}'.")
