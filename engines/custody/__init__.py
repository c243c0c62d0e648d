"""
Custody Engine
==============
Custody-transfer state machine for units moving through the
originator → carrier → recipient chain.
"""

from engines.custody.models import (
    CustodyAction,
    CustodyEvent,
    Delivery,
    DeliveryStatus,
    Unit,
    UnitStatus,
)
from engines.custody.roles import Role, RoleMap
from engines.custody.services import CustodyExecutionResult, CustodyTransferEngine

__all__ = [
    "CustodyAction",
    "CustodyEvent",
    "Delivery",
    "DeliveryStatus",
    "Unit",
    "UnitStatus",
    "Role",
    "RoleMap",
    "CustodyExecutionResult",
    "CustodyTransferEngine",
]
