"""
Custody Engine — Custody Transfer Engine
==========================================
Validates and applies the custody lifecycle operations:

    register    — create a unit (optionally creating or joining a delivery)
    augment     — add a new unit to an INITIATED delivery
    hand_off    — mark a delivery in transit to the next party
    accept      — confirm receipt, move ownership of every member unit
    initialize  — bootstrap the ledger with pre-defined deliveries

Atomicity: every precondition is checked against values read up front.
Writes are staged and flushed only after all checks pass, units first,
then the delivery. A rejected operation writes nothing.

The engine holds no caller state. The Identity Context arrives with each
call; the role mapping and ledger arrive at construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from core.errors import (
    AlreadyExists,
    ContentMismatch,
    InvalidRequest,
    InvalidState,
    OwnershipMismatch,
    RecipientMismatch,
    Unauthorized,
)
from core.identity import IdentityContext
from core.ledger import LedgerAccessor
from engines.custody.commands import (
    AcceptDeliveryRequest,
    AugmentDeliveryRequest,
    CUSTODY_DELIVERY_ACCEPT_REQUEST,
    CUSTODY_DELIVERY_AUGMENT_REQUEST,
    CUSTODY_DELIVERY_HANDOFF_REQUEST,
    CUSTODY_LEDGER_INITIALIZE_REQUEST,
    CUSTODY_UNIT_REGISTER_REQUEST,
    HandOffRequest,
    InitializeLedgerRequest,
    RegisterUnitRequest,
)
from engines.custody.events import (
    build_received_event,
    build_registration_event,
    build_transfer_initiated_event,
)
from engines.custody.models import (
    CustodyAction,
    Delivery,
    DeliveryStatus,
    Unit,
    UnitStatus,
)
from engines.custody.policies import (
    originator_only_policy,
    party_of,
    resolve_accept,
    resolve_handoff,
)
from engines.custody.repository import CustodyRepository, WriteSet
from engines.custody.roles import Role, RoleMap

logger = logging.getLogger("custody.engine")


# ══════════════════════════════════════════════════════════════
# EXECUTION RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CustodyExecutionResult:
    """Entities written by one successful operation."""

    command_type: str
    units: Tuple[Unit, ...]
    deliveries: Tuple[Delivery, ...]

    @property
    def delivery(self) -> Optional[Delivery]:
        return self.deliveries[0] if self.deliveries else None

    @property
    def unit(self) -> Optional[Unit]:
        return self.units[0] if self.units else None


# ══════════════════════════════════════════════════════════════
# ENGINE
# ══════════════════════════════════════════════════════════════

class CustodyTransferEngine:
    """
    Custody state machine over one ledger.

    Usage:
        engine = CustodyTransferEngine(ledger=ledger, roles=RoleMap(...))
        engine.register(ctx, RegisterUnitRequest(...))
    """

    def __init__(self, *, ledger: LedgerAccessor, roles: RoleMap):
        self._repository = CustodyRepository(ledger)
        self._roles = roles
        self._handlers = {
            CUSTODY_UNIT_REGISTER_REQUEST: self.register,
            CUSTODY_DELIVERY_AUGMENT_REQUEST: self.augment,
            CUSTODY_DELIVERY_HANDOFF_REQUEST: self.hand_off,
            CUSTODY_DELIVERY_ACCEPT_REQUEST: self.accept,
            CUSTODY_LEDGER_INITIALIZE_REQUEST: self.initialize,
        }

    @property
    def roles(self) -> RoleMap:
        return self._roles

    @property
    def repository(self) -> CustodyRepository:
        return self._repository

    def execute(self, ctx: IdentityContext, request) -> CustodyExecutionResult:
        """Dispatch a request object to its operation."""
        handler = self._handlers.get(getattr(request, "command_type", None))
        if handler is None:
            raise InvalidRequest(f"Unknown custody request {type(request).__name__}.")
        return handler(ctx, request)

    def _commit(self, command_type: str, writes: WriteSet) -> CustodyExecutionResult:
        writes.commit(self._repository)
        return CustodyExecutionResult(
            command_type=command_type,
            units=writes.units,
            deliveries=writes.deliveries,
        )

    # ── Shared checks ─────────────────────────────────────────

    def _check_open_for_units(self, delivery: Delivery, caller_org: str) -> None:
        """Units may join a delivery only while INITIATED, only by its originator."""
        if delivery.status is not DeliveryStatus.INITIATED:
            raise InvalidState(
                f"Units can only be added to a delivery in 'INITIATED' status. "
                f"Current status: {delivery.status.value}",
                key=delivery.delivery_id,
                status=delivery.status.value,
            )
        if caller_org != delivery.originator_org:
            raise Unauthorized(
                f"Delivery {delivery.delivery_id} was not initiated by {caller_org}.",
                key=delivery.delivery_id,
            )

    def _check_recipient_org(self, recipient_org: str) -> None:
        if recipient_org != self._roles.recipient:
            raise InvalidRequest(
                f"recipient_org {recipient_org} is not the recipient organization "
                f"{self._roles.recipient}."
            )

    def _load_members(self, delivery: Delivery) -> List[Unit]:
        return [self._repository.get_unit(unit_id) for unit_id in delivery.unit_ids]

    # ══════════════════════════════════════════════════════════
    # REGISTER
    # ══════════════════════════════════════════════════════════

    def register(self, ctx: IdentityContext, request: RegisterUnitRequest) -> CustodyExecutionResult:
        org = ctx.caller_org()
        identity = ctx.caller_identity()
        timestamp = ctx.logical_timestamp()

        originator_only_policy(self._roles, org, "register units")
        if request.delivery_id == request.unit_id:
            raise AlreadyExists(request.unit_id)
        self._repository.require_absent(request.unit_id)

        delivery: Optional[Delivery] = None
        if request.creates_delivery:
            self._repository.require_absent(request.delivery_id)
            self._check_recipient_org(request.recipient_org)
            delivery = Delivery(
                delivery_id=request.delivery_id,
                originator_org=org,
                originator_id=identity,
                recipient_org=request.recipient_org,
                recipient_id=request.recipient_id,
                status=DeliveryStatus.INITIATED,
                created_at=timestamp,
                last_updated=timestamp,
                unit_ids=(request.unit_id,),
            )
        elif request.delivery_id is not None:
            delivery = self._repository.get_delivery(request.delivery_id)
            self._check_open_for_units(delivery, org)
            delivery = delivery.with_unit(request.unit_id, timestamp)

        unit = Unit(
            unit_id=request.unit_id,
            product_type=request.product_type,
            quantity=request.quantity,
            current_owner_org=org,
            current_owner_id=identity,
            status=UnitStatus.REGISTERED,
            delivery_id=request.delivery_id,
            history=(build_registration_event(ctx),),
        )

        writes = WriteSet()
        writes.stage_unit(unit)
        writes.stage_delivery(delivery)
        result = self._commit(request.command_type, writes)

        if delivery is None:
            logger.info("Unit %s registered by %s", unit.unit_id, identity)
        else:
            logger.info(
                "Unit %s registered into delivery %s by %s",
                unit.unit_id, delivery.delivery_id, identity,
            )
        return result

    # ══════════════════════════════════════════════════════════
    # AUGMENT
    # ══════════════════════════════════════════════════════════

    def augment(self, ctx: IdentityContext, request: AugmentDeliveryRequest) -> CustodyExecutionResult:
        org = ctx.caller_org()
        identity = ctx.caller_identity()
        timestamp = ctx.logical_timestamp()

        delivery = self._repository.get_delivery(request.delivery_id)
        self._check_open_for_units(delivery, org)
        originator_only_policy(self._roles, org, "add units to deliveries")
        self._repository.require_absent(request.unit_id)

        unit = Unit(
            unit_id=request.unit_id,
            product_type=request.product_type,
            quantity=request.quantity,
            current_owner_org=org,
            current_owner_id=identity,
            status=UnitStatus.REGISTERED,
            delivery_id=delivery.delivery_id,
            history=(build_registration_event(ctx, CustodyAction.ADDED_TO_DELIVERY),),
        )

        writes = WriteSet()
        writes.stage_unit(unit)
        writes.stage_delivery(delivery.with_unit(unit.unit_id, timestamp))
        result = self._commit(request.command_type, writes)

        logger.info(
            "Unit %s added to delivery %s by %s",
            unit.unit_id, delivery.delivery_id, identity,
        )
        return result

    # ══════════════════════════════════════════════════════════
    # HAND OFF
    # ══════════════════════════════════════════════════════════

    def hand_off(self, ctx: IdentityContext, request: HandOffRequest) -> CustodyExecutionResult:
        org = ctx.caller_org()
        identity = ctx.caller_identity()
        timestamp = ctx.logical_timestamp()

        delivery = self._repository.get_delivery(request.delivery_id)
        rule = resolve_handoff(self._roles, org, delivery)

        holder_org, _ = party_of(delivery, rule.actor)
        if holder_org != org:
            raise Unauthorized(
                f"Caller {org} does not hold delivery {delivery.delivery_id}.",
                key=delivery.delivery_id,
            )

        expected_target = self._roles.org_for(rule.target)
        if request.target_org != expected_target:
            raise Unauthorized(
                f"Cannot hand off delivery {delivery.delivery_id} to "
                f"{request.target_org}. Expected {rule.target.value} ({expected_target}).",
                key=delivery.delivery_id,
            )

        changes = {}
        if rule.target is Role.CARRIER:
            changes = {"carrier_org": request.target_org, "carrier_id": request.target_id}
        else:
            if request.target_org != delivery.recipient_org:
                raise Unauthorized(
                    f"Delivery {delivery.delivery_id} is bound for "
                    f"{delivery.recipient_org}, not {request.target_org}.",
                    key=delivery.delivery_id,
                )
            if delivery.recipient_id is not None and request.target_id != delivery.recipient_id:
                raise RecipientMismatch(
                    delivery.delivery_id, delivery.recipient_id, request.target_id,
                )
            changes = {"recipient_id": request.target_id}

        members = self._load_members(delivery)
        writes = WriteSet()
        for unit in members:
            if unit.current_owner_org != org:
                raise OwnershipMismatch(unit.unit_id, org, unit.current_owner_org)
            if unit.status is not delivery.expected_unit_status:
                raise InvalidState(
                    f"Unit {unit.unit_id} is {unit.status.value}, expected "
                    f"{delivery.expected_unit_status.value}.",
                    key=unit.unit_id,
                    status=unit.status.value,
                )
            event = build_transfer_initiated_event(
                ctx, unit, request.target_org, request.target_id,
            )
            writes.stage_unit(unit.with_event(event, status=UnitStatus.IN_DELIVERY))

        writes.stage_delivery(delivery.with_status(rule.to_status, timestamp, **changes))
        result = self._commit(request.command_type, writes)

        logger.info(
            "Transfer of delivery %s initiated by %s to %s. Status: %s",
            delivery.delivery_id, identity, request.target_id, rule.to_status.value,
        )
        return result

    # ══════════════════════════════════════════════════════════
    # ACCEPT
    # ══════════════════════════════════════════════════════════

    def accept(self, ctx: IdentityContext, request: AcceptDeliveryRequest) -> CustodyExecutionResult:
        org = ctx.caller_org()
        identity = ctx.caller_identity()
        timestamp = ctx.logical_timestamp()

        delivery = self._repository.get_delivery(request.delivery_id)
        rule = resolve_accept(self._roles, org, delivery)

        designated_org, designated_id = party_of(delivery, rule.actor)
        if designated_org != org:
            raise Unauthorized(
                f"Caller {org} is not designated for delivery {delivery.delivery_id}.",
                key=delivery.delivery_id,
            )
        if designated_id != identity:
            raise RecipientMismatch(delivery.delivery_id, designated_id, identity)

        scanned = request.scanned_unit_ids
        if len(scanned) != len(delivery.unit_ids) or set(scanned) != set(delivery.unit_ids):
            raise ContentMismatch(delivery.delivery_id, len(delivery.unit_ids), len(scanned))

        previous_org, previous_id = party_of(delivery, rule.previous_owner)
        members = self._load_members(delivery)
        writes = WriteSet()
        for unit in members:
            if unit.current_owner_org != previous_org:
                raise OwnershipMismatch(unit.unit_id, previous_org, unit.current_owner_org)
            if unit.status is not UnitStatus.IN_DELIVERY:
                raise InvalidState(
                    f"Unit {unit.unit_id} is not marked as 'IN_DELIVERY' and cannot be accepted.",
                    key=unit.unit_id,
                    status=unit.status.value,
                )
            event = build_received_event(ctx, rule.action, previous_org, previous_id)
            writes.stage_unit(
                unit.with_event(
                    event, status=rule.unit_status, owner_org=org, owner_id=identity,
                )
            )

        writes.stage_delivery(delivery.with_status(rule.to_status, timestamp))
        result = self._commit(request.command_type, writes)

        logger.info(
            "Delivery %s accepted by %s. New status: %s",
            delivery.delivery_id, identity, rule.to_status.value,
        )
        return result

    # ══════════════════════════════════════════════════════════
    # INITIALIZE
    # ══════════════════════════════════════════════════════════

    def initialize(self, ctx: IdentityContext, request: InitializeLedgerRequest) -> CustodyExecutionResult:
        org = ctx.caller_org()
        identity = ctx.caller_identity()
        timestamp = ctx.logical_timestamp()

        originator_only_policy(self._roles, org, "initialize the ledger")
        for seed in request.deliveries:
            self._check_recipient_org(seed.recipient_org)
        self._repository.require_absent(*request.keys)

        writes = WriteSet()
        for seed in request.deliveries:
            for seed_unit in seed.units:
                writes.stage_unit(
                    Unit(
                        unit_id=seed_unit.unit_id,
                        product_type=seed_unit.product_type,
                        quantity=seed_unit.quantity,
                        current_owner_org=org,
                        current_owner_id=identity,
                        status=UnitStatus.REGISTERED,
                        delivery_id=seed.delivery_id,
                        history=(build_registration_event(ctx),),
                    )
                )
            writes.stage_delivery(
                Delivery(
                    delivery_id=seed.delivery_id,
                    originator_org=org,
                    originator_id=identity,
                    recipient_org=seed.recipient_org,
                    recipient_id=seed.recipient_id,
                    status=DeliveryStatus.INITIATED,
                    created_at=timestamp,
                    last_updated=timestamp,
                    unit_ids=tuple(u.unit_id for u in seed.units),
                )
            )
        result = self._commit(request.command_type, writes)

        logger.info(
            "Ledger initialized by %s with %d delivery(ies) and %d unit(s)",
            identity, len(result.deliveries), len(result.units),
        )
        return result
