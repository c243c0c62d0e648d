"""
Custody Identity — Caller Context
===================================
The Identity Context tells an operation WHO is calling and WHEN.

Supplied by the execution environment, already authenticated:
    caller_org()         — organization id of the caller (e.g. an MSP id)
    caller_identity()    — unique identity string of the calling user
    logical_timestamp()  — ledger-assigned transaction time (not wall-clock)

One context per invocation. There is no process-wide "current caller".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from core.time import ledger_timestamp


class IdentityContext(Protocol):
    """Caller identity for one invocation."""

    def caller_org(self) -> str:
        ...  # pragma: no cover

    def caller_identity(self) -> str:
        ...  # pragma: no cover

    def logical_timestamp(self) -> str:
        ...  # pragma: no cover


@dataclass(frozen=True)
class StaticIdentityContext:
    """
    Identity Context as a plain value.

    Fields:
        org:        Caller organization id
        identity:   Caller identity string
        timestamp:  Ledger timestamp string for this transaction
    """

    org: str
    identity: str
    timestamp: str

    def __post_init__(self):
        if not self.org or not isinstance(self.org, str):
            raise ValueError("org must be a non-empty string.")
        if not self.identity or not isinstance(self.identity, str):
            raise ValueError("identity must be a non-empty string.")
        if not self.timestamp or not isinstance(self.timestamp, str):
            raise ValueError("timestamp must be a non-empty string.")

    @classmethod
    def at(cls, org: str, identity: str, when: datetime) -> "StaticIdentityContext":
        """Build a context whose timestamp is rendered from an aware datetime."""
        return cls(org=org, identity=identity, timestamp=ledger_timestamp(when))

    def caller_org(self) -> str:
        return self.org

    def caller_identity(self) -> str:
        return self.identity

    def logical_timestamp(self) -> str:
        return self.timestamp
