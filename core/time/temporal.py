"""
Custody Core Time — Ledger Timestamps
=======================================
Pure functions that render transaction time in the ledger's logical
timestamp form: ISO-8601, UTC, millisecond precision, 'Z' suffix.

    2024-05-01T10:00:00.000Z

The same instant always renders to the same string, so replicas that
agree on the transaction time agree on the stored bytes.
"""

from __future__ import annotations

from datetime import datetime, timezone


def ledger_timestamp(dt: datetime) -> str:
    """Render an aware datetime as a ledger timestamp string."""
    if dt.tzinfo is None:
        raise ValueError("ledger_timestamp requires timezone-aware datetime.")
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def from_epoch_seconds(seconds: int) -> str:
    """Render a transaction timestamp given in whole seconds since epoch."""
    if not isinstance(seconds, int) or isinstance(seconds, bool):
        raise ValueError("seconds must be an integer.")
    return ledger_timestamp(datetime.fromtimestamp(seconds, tz=timezone.utc))
