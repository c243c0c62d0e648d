"""
Custody Core — Canonical Encoding
===================================
Deterministic byte serialization for ledger values.
"""

from core.encoding.canonical import (
    canonical_decode,
    canonical_encode,
    canonical_serialize,
    is_canonical,
)

__all__ = [
    "canonical_serialize",
    "canonical_encode",
    "canonical_decode",
    "is_canonical",
]
