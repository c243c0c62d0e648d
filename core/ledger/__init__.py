"""
Custody Core — Ledger Accessor
================================
Key-value contract consumed by the custody core, plus the in-memory
reference ledger and the selector matcher shared by reference ledgers.
"""

from core.ledger.accessor import (
    HistoryRecord,
    LedgerAccessor,
    LedgerIterator,
    QueryRecord,
)
from core.ledger.memory import InMemoryLedger
from core.ledger.selector import matches, parse_selector

__all__ = [
    "HistoryRecord",
    "QueryRecord",
    "LedgerAccessor",
    "LedgerIterator",
    "InMemoryLedger",
    "parse_selector",
    "matches",
]
