"""
Custody Contract — Gateway Boundary
=====================================
The surface an external gateway (HTTP, CLI, chaincode shim) calls.

Every operation takes primitive arguments (strings, integers, lists of
strings or a JSON array string) plus the caller's Identity Context, and
returns plain dicts or raises a typed CustodyError. No transport concern
crosses this boundary.

Mutating operations run inside the ledger's transaction boundary when the
ledger offers one, so a rejected call commits nothing.
"""

from __future__ import annotations

import json
import logging
from contextlib import nullcontext
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from core.errors import CustodyError, InvalidRequest
from core.identity import IdentityContext
from core.ledger import LedgerAccessor
from engines.custody.commands import (
    AcceptDeliveryRequest,
    AugmentDeliveryRequest,
    HandOffRequest,
    InitializeLedgerRequest,
    RegisterUnitRequest,
)
from engines.custody.roles import RoleMap
from engines.custody.services import CustodyExecutionResult, CustodyTransferEngine
from projections.custody import CustodyQueryProjection

logger = logging.getLogger("custody.contract")


MUTATING_OPERATIONS = frozenset({
    "register", "augment", "hand_off", "accept", "initialize",
})


# ══════════════════════════════════════════════════════════════
# ARGUMENT PARSING
# ══════════════════════════════════════════════════════════════

def parse_quantity(value: Any) -> int:
    """Accept an int or a base-10 integer string."""
    if isinstance(value, bool):
        raise InvalidRequest("quantity must be positive integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise InvalidRequest(f"quantity '{value}' is not an integer.") from exc
    raise InvalidRequest("quantity must be positive integer.")


def parse_id_list(value: Any) -> List[str]:
    """Accept a list of ids or a JSON array string of ids."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise InvalidRequest(f"scanned ids are not valid JSON: {exc}") from exc
    if not isinstance(value, (list, tuple)):
        raise InvalidRequest("scanned ids must be an array.")
    return list(value)


def parse_seed(value: Any) -> List[dict]:
    """Accept a seed list or its JSON string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise InvalidRequest(f"seed is not valid JSON: {exc}") from exc
    if not isinstance(value, (list, tuple)):
        raise InvalidRequest("seed must be an array of deliveries.")
    return list(value)


def _records(result: CustodyExecutionResult) -> dict:
    return {
        "units": [u.to_record() for u in result.units],
        "deliveries": [d.to_record() for d in result.deliveries],
    }


# ══════════════════════════════════════════════════════════════
# CONTRACT
# ══════════════════════════════════════════════════════════════

class CustodyContract:
    """
    Gateway-facing facade over the engine and the query projection.

    Usage:
        contract = CustodyContract(ledger=ledger, roles=roles)
        contract.invoke(ctx, "register", "F001", "UREA", 50, "D001", "Org3MSP")
    """

    def __init__(
        self,
        *,
        ledger: LedgerAccessor,
        roles: RoleMap,
        default_seed: Optional[Sequence[dict]] = None,
    ):
        self._ledger = ledger
        self._engine = CustodyTransferEngine(ledger=ledger, roles=roles)
        self._projection = CustodyQueryProjection(ledger)
        self._default_seed = list(default_seed or ())
        self._operations: Dict[str, Callable[..., Any]] = {
            "register": self.register,
            "augment": self.augment,
            "hand_off": self.hand_off,
            "accept": self.accept,
            "initialize": self.initialize,
            "read_unit": self.read_unit,
            "read_delivery": self.read_delivery,
            "history": self.history,
            "custody_events": self.custody_events,
            "query": self.query,
        }

    @classmethod
    def from_settings(cls, ledger: LedgerAccessor, settings=None) -> "CustodyContract":
        """Build with CUSTODY_ROLES and CUSTODY_SEED from Django settings."""
        if settings is None:
            from django.conf import settings
        return cls(
            ledger=ledger,
            roles=RoleMap.from_settings(settings),
            default_seed=getattr(settings, "CUSTODY_SEED", ()),
        )

    @property
    def operations(self) -> Iterable[str]:
        return sorted(self._operations)

    # ── Dispatch ──────────────────────────────────────────────

    def invoke(self, ctx: IdentityContext, operation: str, *args, **kwargs) -> Any:
        """Run one operation by name, logging rejections."""
        handler = self._operations.get(operation)
        if handler is None:
            raise InvalidRequest(f"Unknown operation '{operation}'.")
        try:
            if operation in MUTATING_OPERATIONS:
                with self._transaction(ctx):
                    return handler(ctx, *args, **kwargs)
            return handler(*args, **kwargs)
        except CustodyError as exc:
            logger.warning(
                "%s by %s rejected: %s %s",
                operation, ctx.caller_identity(), exc.code, exc.message,
            )
            raise

    def _transaction(self, ctx: IdentityContext):
        begin = getattr(self._ledger, "transaction", None)
        if begin is None:
            return nullcontext()
        return begin(timestamp=ctx.logical_timestamp())

    # ── Mutations ─────────────────────────────────────────────

    def register(
        self,
        ctx: IdentityContext,
        unit_id: str,
        product_type: str,
        quantity: Any,
        delivery_id: Optional[str] = None,
        recipient_org: Optional[str] = None,
        recipient_id: Optional[str] = None,
    ) -> dict:
        request = RegisterUnitRequest(
            unit_id=unit_id,
            product_type=product_type,
            quantity=parse_quantity(quantity),
            delivery_id=delivery_id or None,
            recipient_org=recipient_org or None,
            recipient_id=recipient_id or None,
        )
        return _records(self._engine.register(ctx, request))

    def augment(
        self, ctx: IdentityContext, delivery_id: str, unit_id: str,
        product_type: str, quantity: Any,
    ) -> dict:
        request = AugmentDeliveryRequest(
            delivery_id=delivery_id,
            unit_id=unit_id,
            product_type=product_type,
            quantity=parse_quantity(quantity),
        )
        return _records(self._engine.augment(ctx, request))

    def hand_off(
        self, ctx: IdentityContext, delivery_id: str, target_org: str, target_id: str,
    ) -> dict:
        request = HandOffRequest(
            delivery_id=delivery_id, target_org=target_org, target_id=target_id,
        )
        return _records(self._engine.hand_off(ctx, request))

    def accept(self, ctx: IdentityContext, delivery_id: str, scanned_unit_ids: Any) -> dict:
        request = AcceptDeliveryRequest(
            delivery_id=delivery_id,
            scanned_unit_ids=tuple(parse_id_list(scanned_unit_ids)),
        )
        return _records(self._engine.accept(ctx, request))

    def initialize(self, ctx: IdentityContext, seed: Any = None) -> dict:
        deliveries = parse_seed(seed) if seed is not None else self._default_seed
        request = InitializeLedgerRequest.from_config(deliveries)
        return _records(self._engine.initialize(ctx, request))

    # ── Reads ─────────────────────────────────────────────────

    def read_unit(self, unit_id: str) -> dict:
        return self._projection.read_unit(unit_id).to_record()

    def read_delivery(self, delivery_id: str) -> dict:
        return self._projection.read_delivery(delivery_id).to_record()

    def history(self, key: str) -> List[dict]:
        return [entry.to_dict() for entry in self._projection.history(key)]

    def custody_events(self, unit_id: str) -> List[dict]:
        return [event.to_record() for event in self._projection.custody_events(unit_id)]

    def query(self, predicate: str) -> List[dict]:
        return [result.to_dict() for result in self._projection.query(predicate)]
