"""
Custody Core — Canonical Encoder
==================================
Serializes entity records to bytes in one fixed form.

Rules:
- Keys sorted lexicographically at all levels
- No whitespace variability (separators=(',', ':'))
- ensure_ascii=True for cross-platform consistency
- NaN / Infinity rejected, no str() fallback for foreign types
- No salt, no randomness, no wall-clock — determinism is mandatory

Same logical value ALWAYS produces the same bytes, regardless of the order
in which the caller inserted fields. Independent replicas executing the same
operation must agree bit-for-bit on the stored value.

This module ONLY encodes and decodes. Schema checks live with the entity
types that own each record shape.
"""

from __future__ import annotations

import json
from typing import Any

from core.errors import MalformedRecord


ENCODING = "utf-8"


# ══════════════════════════════════════════════════════════════
# ENCODE
# ══════════════════════════════════════════════════════════════

def canonical_serialize(value: Any) -> str:
    """
    Produce a deterministic JSON string from value.

    Raises ValueError / TypeError for values without a lossless JSON form
    (floats that are not finite, sets, datetimes, ...).
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        allow_nan=False,
    )


def canonical_encode(value: Any) -> bytes:
    """Canonical byte form of value."""
    return canonical_serialize(value).encode(ENCODING)


# ══════════════════════════════════════════════════════════════
# DECODE
# ══════════════════════════════════════════════════════════════

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def canonical_decode(data: bytes) -> dict:
    """
    Decode a stored record.

    Raises MalformedRecord on empty, truncated, or non-JSON input, and on
    any top-level value that is not an object.
    """
    if isinstance(data, str):
        data = data.encode(ENCODING)
    if not data:
        raise MalformedRecord("Stored value is empty.")
    try:
        value = json.loads(data.decode(ENCODING), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedRecord(f"Stored value is not canonical JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise MalformedRecord(
            f"Stored value must be a JSON object, got {type(value).__name__}."
        )
    return value


def is_canonical(data: bytes) -> bool:
    """True if data decodes and re-encodes to exactly the same bytes."""
    try:
        return canonical_encode(canonical_decode(data)) == data
    except MalformedRecord:
        return False
