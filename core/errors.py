"""
Custody Core — Error Taxonomy
===============================
Typed errors raised by the custody layers.

Every error is:
- Synchronous (raised by the failing operation, never retried internally)
- Non-fatal (the failing operation leaves ledger state untouched)
- Machine-readable (code) and human-readable (message)
"""

from __future__ import annotations

from typing import Any, Optional


# ══════════════════════════════════════════════════════════════
# ERROR CODES
# ══════════════════════════════════════════════════════════════

class ErrorCode:
    """Known error codes. Convention: SCREAMING_SNAKE_CASE."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    OWNERSHIP_MISMATCH = "OWNERSHIP_MISMATCH"
    RECIPIENT_MISMATCH = "RECIPIENT_MISMATCH"
    CONTENT_MISMATCH = "CONTENT_MISMATCH"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    QUERY_UNSUPPORTED = "QUERY_UNSUPPORTED"
    INVALID_REQUEST = "INVALID_REQUEST"


# ══════════════════════════════════════════════════════════════
# BASE ERROR
# ══════════════════════════════════════════════════════════════

class CustodyError(Exception):
    """Base error for all custody operations."""

    code: str = "CUSTODY_ERROR"

    def __init__(self, message: str, *, key: Optional[str] = None):
        self.message = message
        self.key = key
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for the gateway boundary."""
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.key is not None:
            out["key"] = self.key
        return out


# ══════════════════════════════════════════════════════════════
# TAXONOMY
# ══════════════════════════════════════════════════════════════

class NotFound(CustodyError):
    """Referenced key is absent from the ledger."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, key: str, kind: str = "Record"):
        self.kind = kind
        super().__init__(f"{kind} with ID {key} does not exist.", key=key)


class AlreadyExists(CustodyError):
    """Id collision on create. Units and deliveries share one keyspace."""

    code = ErrorCode.ALREADY_EXISTS

    def __init__(self, key: str):
        super().__init__(f"A record with ID {key} already exists.", key=key)


class Unauthorized(CustodyError):
    """Caller org/role is not permitted for this transition."""

    code = ErrorCode.UNAUTHORIZED


class InvalidState(CustodyError):
    """Entity is not in a state that accepts this operation."""

    code = ErrorCode.INVALID_STATE

    def __init__(self, message: str, *, key: Optional[str] = None, status: Optional[str] = None):
        self.status = status
        super().__init__(message, key=key)


class OwnershipMismatch(CustodyError):
    """Current owner does not match the expected party."""

    code = ErrorCode.OWNERSHIP_MISMATCH

    def __init__(self, key: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Unit {key} owner mismatch. Expected {expected}, found {actual}.",
            key=key,
        )


class RecipientMismatch(CustodyError):
    """Accepting identity is not the designated one."""

    code = ErrorCode.RECIPIENT_MISMATCH

    def __init__(self, key: str, expected: Optional[str], actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Identity {actual} is not designated for delivery {key}. "
            f"Designated: {expected}.",
            key=key,
        )


class ContentMismatch(CustodyError):
    """Scanned id set differs from the delivery's member set."""

    code = ErrorCode.CONTENT_MISMATCH

    def __init__(self, key: str, expected_count: int, scanned_count: int):
        self.expected_count = expected_count
        self.scanned_count = scanned_count
        super().__init__(
            f"Scanned units do not match expected contents of delivery {key}. "
            f"Expected count: {expected_count}, scanned count: {scanned_count}.",
            key=key,
        )


class MalformedRecord(CustodyError):
    """A stored value failed to decode or did not match its schema."""

    code = ErrorCode.MALFORMED_RECORD


class QueryUnsupported(CustodyError):
    """Predicate query attempted against a store without an index."""

    code = ErrorCode.QUERY_UNSUPPORTED

    def __init__(self, message: str = None):
        super().__init__(
            message or "The underlying ledger offers no indexed-query capability."
        )


class InvalidRequest(CustodyError, ValueError):
    """Argument failed validation at the boundary."""

    code = ErrorCode.INVALID_REQUEST
