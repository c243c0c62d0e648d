"""
Custody Engine — Role Mapping
===============================
Rule: No hardcoded organization ids in engine logic.

The role chain (originator → carrier → recipient) is fixed; which
organization plays each role is configuration, handed to the engine at
construction. Leaving the carrier unset gives the reduced two-role chain
(originator → recipient).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class Role(Enum):
    ORIGINATOR = "originator"
    CARRIER = "carrier"
    RECIPIENT = "recipient"


@dataclass(frozen=True)
class RoleMap:
    """
    Role → organization id.

    Fields:
        originator: Organization allowed to register units and start deliveries
        recipient:  Organization that takes final custody
        carrier:    Intermediate organization, None for a two-role chain
    """

    originator: str
    recipient: str
    carrier: Optional[str] = None

    def __post_init__(self):
        if not self.originator or not isinstance(self.originator, str):
            raise ValueError("originator must be a non-empty string.")
        if not self.recipient or not isinstance(self.recipient, str):
            raise ValueError("recipient must be a non-empty string.")
        if self.carrier is not None and (not self.carrier or not isinstance(self.carrier, str)):
            raise ValueError("carrier must be a non-empty string or None.")
        orgs = [o for o in (self.originator, self.carrier, self.recipient) if o]
        if len(set(orgs)) != len(orgs):
            raise ValueError("Each role must map to a distinct organization.")

    @property
    def has_carrier(self) -> bool:
        return self.carrier is not None

    def org_for(self, role: Role) -> Optional[str]:
        return {
            Role.ORIGINATOR: self.originator,
            Role.CARRIER: self.carrier,
            Role.RECIPIENT: self.recipient,
        }[role]

    def role_of(self, org: str) -> Optional[Role]:
        for role in Role:
            if org and self.org_for(role) == org:
                return role
        return None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RoleMap":
        """Build from {'originator': ..., 'carrier': ..., 'recipient': ...}."""
        unknown = sorted(set(mapping) - {r.value for r in Role})
        if unknown:
            raise ValueError(f"Unknown role(s): {unknown}.")
        return cls(
            originator=mapping.get("originator"),
            recipient=mapping.get("recipient"),
            carrier=mapping.get("carrier") or None,
        )

    @classmethod
    def from_settings(cls, settings=None) -> "RoleMap":
        """Build from the CUSTODY_ROLES setting."""
        if settings is None:
            from django.conf import settings
        return cls.from_mapping(settings.CUSTODY_ROLES)
