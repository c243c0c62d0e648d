"""
Custody Core Time — Public API
================================
Explicit clock protocol and ledger timestamp helpers.
Rule: NO datetime.now() in engine logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
)
from core.time.temporal import (
    from_epoch_seconds,
    ledger_timestamp,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "ledger_timestamp",
    "from_epoch_seconds",
]
