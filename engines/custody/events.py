"""
Custody Engine — History Event Builders
=========================================
Every status transition on a Unit appends exactly one CustodyEvent.
Builders take the caller's Identity Context so actor and timestamp are
always the ledger's, never wall-clock.
"""

from __future__ import annotations

from core.identity import IdentityContext
from engines.custody.models import CustodyAction, CustodyEvent, Unit


def _actor(ctx: IdentityContext) -> dict:
    return {
        "timestamp": ctx.logical_timestamp(),
        "actor_org": ctx.caller_org(),
        "actor_id": ctx.caller_identity(),
    }


def build_registration_event(
    ctx: IdentityContext,
    action: CustodyAction = CustodyAction.INITIAL_REGISTRATION,
) -> CustodyEvent:
    """First event of a unit: the registering party becomes owner."""
    return CustodyEvent(
        action=action,
        new_owner_org=ctx.caller_org(),
        new_owner_id=ctx.caller_identity(),
        **_actor(ctx),
    )


def build_transfer_initiated_event(
    ctx: IdentityContext, unit: Unit, target_org: str, target_id: str,
) -> CustodyEvent:
    """Hand-off: new owner is the intended one; ownership moves on accept."""
    return CustodyEvent(
        action=CustodyAction.TRANSFER_INITIATED,
        previous_owner_org=unit.current_owner_org,
        previous_owner_id=unit.current_owner_id,
        new_owner_org=target_org,
        new_owner_id=target_id,
        **_actor(ctx),
    )


def build_received_event(
    ctx: IdentityContext,
    action: CustodyAction,
    previous_owner_org: str,
    previous_owner_id: str,
) -> CustodyEvent:
    return CustodyEvent(
        action=action,
        previous_owner_org=previous_owner_org,
        previous_owner_id=previous_owner_id,
        new_owner_org=ctx.caller_org(),
        new_owner_id=ctx.caller_identity(),
        **_actor(ctx),
    )
