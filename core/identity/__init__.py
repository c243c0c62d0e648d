"""
Custody Identity - Public API
=============================
Caller identity contract and its value implementation.
"""

from core.identity.context import (
    IdentityContext,
    StaticIdentityContext,
)

__all__ = [
    "IdentityContext",
    "StaticIdentityContext",
]
