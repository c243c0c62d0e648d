"""
Custody Engine — Request Commands
===================================
Typed requests for the five mutating custody operations.

Each request validates its own shape at construction (empty ids,
non-positive quantities, malformed scan lists) and raises InvalidRequest.
Ledger-dependent checks (existence, status, ownership) belong to the
engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Mapping, Optional, Tuple

from core.errors import InvalidRequest


# ══════════════════════════════════════════════════════════════
# COMMAND TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

CUSTODY_UNIT_REGISTER_REQUEST = "custody.unit.register.request"
CUSTODY_DELIVERY_AUGMENT_REQUEST = "custody.delivery.augment.request"
CUSTODY_DELIVERY_HANDOFF_REQUEST = "custody.delivery.handoff.request"
CUSTODY_DELIVERY_ACCEPT_REQUEST = "custody.delivery.accept.request"
CUSTODY_LEDGER_INITIALIZE_REQUEST = "custody.ledger.initialize.request"

CUSTODY_COMMAND_TYPES = frozenset({
    CUSTODY_UNIT_REGISTER_REQUEST,
    CUSTODY_DELIVERY_AUGMENT_REQUEST,
    CUSTODY_DELIVERY_HANDOFF_REQUEST,
    CUSTODY_DELIVERY_ACCEPT_REQUEST,
    CUSTODY_LEDGER_INITIALIZE_REQUEST,
})


def _text(value: Any, name: str) -> None:
    if not value or not isinstance(value, str):
        raise InvalidRequest(f"{name} must be non-empty.")


def _optional_text(value: Any, name: str) -> None:
    if value is not None:
        _text(value, name)


def _quantity(value: Any) -> None:
    if type(value) is not int or value <= 0:
        raise InvalidRequest("quantity must be positive integer.")


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RegisterUnitRequest:
    """
    Register a unit, optionally into a delivery.

    - No delivery_id: a standalone unit.
    - delivery_id with recipient_org: create that delivery with this unit.
    - delivery_id alone: join an existing INITIATED delivery.
    """
    command_type: ClassVar[str] = CUSTODY_UNIT_REGISTER_REQUEST

    unit_id: str
    product_type: str
    quantity: int
    delivery_id: Optional[str] = None
    recipient_org: Optional[str] = None
    recipient_id: Optional[str] = None

    def __post_init__(self):
        _text(self.unit_id, "unit_id")
        _text(self.product_type, "product_type")
        _quantity(self.quantity)
        _optional_text(self.delivery_id, "delivery_id")
        _optional_text(self.recipient_org, "recipient_org")
        _optional_text(self.recipient_id, "recipient_id")
        if self.recipient_org is not None and self.delivery_id is None:
            raise InvalidRequest("recipient_org requires delivery_id.")
        if self.recipient_id is not None and self.recipient_org is None:
            raise InvalidRequest("recipient_id requires recipient_org.")

    @property
    def creates_delivery(self) -> bool:
        return self.delivery_id is not None and self.recipient_org is not None


@dataclass(frozen=True)
class AugmentDeliveryRequest:
    """Add a new unit to an INITIATED delivery."""
    command_type: ClassVar[str] = CUSTODY_DELIVERY_AUGMENT_REQUEST

    delivery_id: str
    unit_id: str
    product_type: str
    quantity: int

    def __post_init__(self):
        _text(self.delivery_id, "delivery_id")
        _text(self.unit_id, "unit_id")
        _text(self.product_type, "product_type")
        _quantity(self.quantity)


@dataclass(frozen=True)
class HandOffRequest:
    """Mark a delivery as in transit to the next party."""
    command_type: ClassVar[str] = CUSTODY_DELIVERY_HANDOFF_REQUEST

    delivery_id: str
    target_org: str
    target_id: str

    def __post_init__(self):
        _text(self.delivery_id, "delivery_id")
        _text(self.target_org, "target_org")
        _text(self.target_id, "target_id")


@dataclass(frozen=True)
class AcceptDeliveryRequest:
    """Confirm physical receipt of every unit in a delivery."""
    command_type: ClassVar[str] = CUSTODY_DELIVERY_ACCEPT_REQUEST

    delivery_id: str
    scanned_unit_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        _text(self.delivery_id, "delivery_id")
        if not isinstance(self.scanned_unit_ids, (list, tuple)):
            raise InvalidRequest("scanned_unit_ids must be a sequence of ids.")
        scanned = tuple(self.scanned_unit_ids)
        for unit_id in scanned:
            if not isinstance(unit_id, str):
                raise InvalidRequest("scanned_unit_ids entries must be strings.")
        object.__setattr__(self, "scanned_unit_ids", scanned)


@dataclass(frozen=True)
class SeedUnit:
    unit_id: str
    product_type: str
    quantity: int

    def __post_init__(self):
        _text(self.unit_id, "unit_id")
        _text(self.product_type, "product_type")
        _quantity(self.quantity)


@dataclass(frozen=True)
class SeedDelivery:
    delivery_id: str
    recipient_org: str
    units: Tuple[SeedUnit, ...]
    recipient_id: Optional[str] = None

    def __post_init__(self):
        _text(self.delivery_id, "delivery_id")
        _text(self.recipient_org, "recipient_org")
        _optional_text(self.recipient_id, "recipient_id")
        if not self.units:
            raise InvalidRequest(f"Seed delivery {self.delivery_id} has no units.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SeedDelivery":
        if not isinstance(data, Mapping):
            raise InvalidRequest("Seed delivery must be an object.")
        units = data.get("units") or ()
        if not isinstance(units, (list, tuple)):
            raise InvalidRequest("Seed units must be a list.")
        try:
            return cls(
                delivery_id=data.get("delivery_id"),
                recipient_org=data.get("recipient_org"),
                recipient_id=data.get("recipient_id"),
                units=tuple(
                    SeedUnit(
                        unit_id=u.get("unit_id"),
                        product_type=u.get("product_type"),
                        quantity=u.get("quantity"),
                    )
                    for u in units
                ),
            )
        except AttributeError as exc:
            raise InvalidRequest("Seed units must be objects.") from exc


@dataclass(frozen=True)
class InitializeLedgerRequest:
    """Bootstrap the ledger with pre-defined deliveries."""
    command_type: ClassVar[str] = CUSTODY_LEDGER_INITIALIZE_REQUEST

    deliveries: Tuple[SeedDelivery, ...] = field(default_factory=tuple)

    def __post_init__(self):
        deliveries = tuple(self.deliveries)
        if not deliveries:
            raise InvalidRequest("Initialization requires at least one delivery.")
        keys = [d.delivery_id for d in deliveries]
        keys += [u.unit_id for d in deliveries for u in d.units]
        if len(set(keys)) != len(keys):
            raise InvalidRequest("Seed ids must be unique across units and deliveries.")
        object.__setattr__(self, "deliveries", deliveries)

    @property
    def keys(self) -> Tuple[str, ...]:
        out = []
        for delivery in self.deliveries:
            out.append(delivery.delivery_id)
            out.extend(u.unit_id for u in delivery.units)
        return tuple(out)

    @classmethod
    def from_config(cls, seed: Iterable[Mapping[str, Any]]) -> "InitializeLedgerRequest":
        return cls(deliveries=tuple(SeedDelivery.from_mapping(d) for d in seed))
