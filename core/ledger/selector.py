"""
Custody Core — Selector Matching
==================================
Predicate strings are JSON selector documents:

    {"selector": {"doc_type": "unit", "current_owner_org": "Org1MSP"}}

Supported:
- field equality (dotted paths reach into nested objects)
- $eq $ne $in $nin $exists $gt $gte $lt $lte

Used by the reference ledgers. A production ledger's own indexed-query
engine takes the same strings verbatim.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict

from core.errors import InvalidRequest


_MISSING = object()


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        if actual is _MISSING or actual is None:
            return False
        try:
            return op(actual, expected)
        except TypeError:
            return False
    return check


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda actual, expected: actual is not _MISSING and actual == expected,
    "$ne": lambda actual, expected: actual is _MISSING or actual != expected,
    "$in": lambda actual, expected: actual is not _MISSING and actual in expected,
    "$nin": lambda actual, expected: actual is _MISSING or actual not in expected,
    "$exists": lambda actual, expected: (actual is not _MISSING) == bool(expected),
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
}


def parse_selector(predicate: str) -> dict:
    """Parse a predicate string into its selector mapping."""
    try:
        document = json.loads(predicate)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Query string is not valid JSON: {exc}") from exc
    if not isinstance(document, dict) or not isinstance(document.get("selector"), dict):
        raise InvalidRequest("Query string must be an object with a 'selector' object.")
    _check_operators(document["selector"])
    return document["selector"]


def _check_operators(selector: dict) -> None:
    for field, condition in selector.items():
        if field.startswith("$"):
            raise InvalidRequest(f"Unsupported top-level operator '{field}'.")
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if op not in OPERATORS:
                    raise InvalidRequest(f"Unsupported operator '{op}' on field '{field}'.")
                if op in ("$in", "$nin") and not isinstance(operand, list):
                    raise InvalidRequest(f"Operator '{op}' requires a list.")


def _lookup(document: dict, path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def matches(document: dict, selector: dict) -> bool:
    """True if document satisfies every condition in selector."""
    for field, condition in selector.items():
        actual = _lookup(document, field)
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if not OPERATORS[op](actual, operand):
                    return False
        elif actual is _MISSING or actual != condition:
            return False
    return True
