"""
Custody Engine — Transition Policies
======================================
The permission matrix and delivery state machine.

A transition is selected solely from (caller role, delivery status):

    actor        from status              to status                 action
    originator   INITIATED                IN_TRANSIT_TO_CARRIER     hand off → carrier
    carrier      IN_TRANSIT_TO_CARRIER    TRANSFERRED_TO_CARRIER    accept
    carrier      TRANSFERRED_TO_CARRIER   IN_TRANSIT_TO_RECIPIENT   hand off → recipient
    recipient    IN_TRANSIT_TO_RECIPIENT  COMPLETED                 accept (terminal)

Without a carrier the chain reduces to:

    originator   INITIATED                IN_TRANSIT_TO_RECIPIENT   hand off → recipient
    recipient    IN_TRANSIT_TO_RECIPIENT  COMPLETED                 accept (terminal)

A caller whose role has no rule for the operation is Unauthorized.
A caller whose role has a rule, but not for the current status, hits
InvalidState.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from core.errors import InvalidState, Unauthorized
from engines.custody.models import (
    CustodyAction,
    Delivery,
    DeliveryStatus,
    UnitStatus,
)
from engines.custody.roles import Role, RoleMap


# ══════════════════════════════════════════════════════════════
# RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HandOffRule:
    actor: Role
    from_status: DeliveryStatus
    to_status: DeliveryStatus
    target: Role


@dataclass(frozen=True)
class AcceptRule:
    actor: Role
    from_status: DeliveryStatus
    to_status: DeliveryStatus
    previous_owner: Role
    action: CustodyAction
    unit_status: UnitStatus


_THREE_ROLE_HANDOFFS = (
    HandOffRule(Role.ORIGINATOR, DeliveryStatus.INITIATED,
                DeliveryStatus.IN_TRANSIT_TO_CARRIER, Role.CARRIER),
    HandOffRule(Role.CARRIER, DeliveryStatus.TRANSFERRED_TO_CARRIER,
                DeliveryStatus.IN_TRANSIT_TO_RECIPIENT, Role.RECIPIENT),
)

_THREE_ROLE_ACCEPTS = (
    AcceptRule(Role.CARRIER, DeliveryStatus.IN_TRANSIT_TO_CARRIER,
               DeliveryStatus.TRANSFERRED_TO_CARRIER, Role.ORIGINATOR,
               CustodyAction.RECEIVED_BY_CARRIER, UnitStatus.TRANSFERRED_TO_CARRIER),
    AcceptRule(Role.RECIPIENT, DeliveryStatus.IN_TRANSIT_TO_RECIPIENT,
               DeliveryStatus.COMPLETED, Role.CARRIER,
               CustodyAction.RECEIVED_BY_RECIPIENT, UnitStatus.DELIVERED_TO_RECIPIENT),
)

_TWO_ROLE_HANDOFFS = (
    HandOffRule(Role.ORIGINATOR, DeliveryStatus.INITIATED,
                DeliveryStatus.IN_TRANSIT_TO_RECIPIENT, Role.RECIPIENT),
)

_TWO_ROLE_ACCEPTS = (
    AcceptRule(Role.RECIPIENT, DeliveryStatus.IN_TRANSIT_TO_RECIPIENT,
               DeliveryStatus.COMPLETED, Role.ORIGINATOR,
               CustodyAction.RECEIVED_BY_RECIPIENT, UnitStatus.DELIVERED_TO_RECIPIENT),
)


def handoff_rules(roles: RoleMap) -> Tuple[HandOffRule, ...]:
    return _THREE_ROLE_HANDOFFS if roles.has_carrier else _TWO_ROLE_HANDOFFS


def accept_rules(roles: RoleMap) -> Tuple[AcceptRule, ...]:
    return _THREE_ROLE_ACCEPTS if roles.has_carrier else _TWO_ROLE_ACCEPTS


# ══════════════════════════════════════════════════════════════
# POLICIES
# ══════════════════════════════════════════════════════════════

def originator_only_policy(roles: RoleMap, caller_org: str, operation: str) -> None:
    """Only the originator organization may create units and deliveries."""
    if roles.role_of(caller_org) is not Role.ORIGINATOR:
        raise Unauthorized(
            f"Caller {caller_org} is not authorized to {operation}."
        )


def _resolve(rules, roles: RoleMap, caller_org: str, delivery: Delivery, operation: str):
    role = roles.role_of(caller_org)
    candidates = [rule for rule in rules if rule.actor is role]
    if not candidates:
        raise Unauthorized(
            f"Caller {caller_org} is not authorized to {operation} "
            f"delivery {delivery.delivery_id}.",
            key=delivery.delivery_id,
        )
    for rule in candidates:
        if rule.from_status is delivery.status:
            return rule
    raise InvalidState(
        f"Cannot {operation} delivery {delivery.delivery_id} in status "
        f"{delivery.status.value}.",
        key=delivery.delivery_id,
        status=delivery.status.value,
    )


def resolve_handoff(roles: RoleMap, caller_org: str, delivery: Delivery) -> HandOffRule:
    return _resolve(handoff_rules(roles), roles, caller_org, delivery, "hand off")


def resolve_accept(roles: RoleMap, caller_org: str, delivery: Delivery) -> AcceptRule:
    return _resolve(accept_rules(roles), roles, caller_org, delivery, "accept")


def party_of(delivery: Delivery, role: Role) -> Tuple[str, str]:
    """(org, identity) recorded on the delivery for a role."""
    if role is Role.ORIGINATOR:
        return delivery.originator_org, delivery.originator_id
    if role is Role.CARRIER:
        return delivery.carrier_org, delivery.carrier_id
    return delivery.recipient_org, delivery.recipient_id
